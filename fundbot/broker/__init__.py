"""交易通道适配器"""

from .client import BrokerClient
from .paper import PaperBroker

__all__ = ["BrokerClient", "PaperBroker"]
