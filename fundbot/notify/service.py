"""
通知分发

同时发往所有渠道；单个渠道失败只记日志，不影响其他渠道，也不向调用方抛出。
"""

import logging
from typing import List, Optional

from fundbot.core.ports import NotificationPort

from .feishu import FeishuNotifier
from .telegram import TelegramNotifier

logger = logging.getLogger(__name__)


class NotifyService(NotificationPort):
    """多渠道通知"""

    def __init__(self, channels: Optional[List] = None):
        self.channels = channels if channels is not None else [TelegramNotifier(), FeishuNotifier()]

    def send(self, title: str, content: str, level: str = "info") -> bool:
        sent = False
        for channel in self.channels:
            name = getattr(channel, "name", type(channel).__name__)
            try:
                sent = channel.send(title, content, level) or sent
            except Exception as e:
                logger.error(f"Notification channel {name} failed: {e}")
        return sent
