"""Telegram Bot API 通知"""

import logging
import os
from typing import Optional

import requests

logger = logging.getLogger(__name__)

API_URL = "https://api.telegram.org/bot{token}/sendMessage"
DEFAULT_TIMEOUT = 10

LEVEL_EMOJI = {
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
}


class TelegramNotifier:
    """Telegram 机器人"""

    name = "telegram"

    def __init__(self, token: Optional[str] = None, chat_id: Optional[str] = None,
                 timeout: int = DEFAULT_TIMEOUT):
        """
        Args:
            token: 机器人 token，默认从 TELEGRAM_BOT_TOKEN 环境变量获取
            chat_id: 目标会话，默认从 TELEGRAM_CHAT_ID 环境变量获取
        """
        self.token = token or os.getenv("TELEGRAM_BOT_TOKEN", "")
        self.chat_id = chat_id or os.getenv("TELEGRAM_CHAT_ID", "")
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.token and self.chat_id)

    def send(self, title: str, content: str, level: str = "info") -> bool:
        if not self.is_configured:
            logger.warning("Telegram not configured, skipping notification")
            return False

        emoji = LEVEL_EMOJI.get(level, LEVEL_EMOJI["info"])
        payload = {
            "chat_id": self.chat_id,
            "text": f"{emoji} *{title}*\n\n{content}",
            "parse_mode": "Markdown",
        }
        try:
            response = requests.post(API_URL.format(token=self.token), json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to send Telegram message: {e}")
            return False

        if response.status_code != 200:
            logger.error(f"Failed to send Telegram message: {response.status_code} - {response.text}")
            return False
        return True
