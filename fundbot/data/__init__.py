"""数据层：本地 SQLite 存储与天天基金净值获取"""

from .fetcher import EastMoneyFetcher
from .local_db import LocalDB

__all__ = ["EastMoneyFetcher", "LocalDB"]
