"""通知渠道"""

from .feishu import FeishuNotifier
from .service import NotifyService
from .telegram import TelegramNotifier

__all__ = ["FeishuNotifier", "NotifyService", "TelegramNotifier"]
