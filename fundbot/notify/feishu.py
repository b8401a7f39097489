"""飞书自定义机器人 webhook 通知"""

import logging
import os
from typing import Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


class FeishuNotifier:
    """飞书群机器人"""

    name = "feishu"

    def __init__(self, webhook_url: Optional[str] = None, timeout: int = DEFAULT_TIMEOUT):
        """
        Args:
            webhook_url: 机器人 webhook，默认从 FEISHU_WEBHOOK_URL 环境变量获取
        """
        self.webhook_url = webhook_url or os.getenv("FEISHU_WEBHOOK_URL", "")
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.webhook_url)

    def send(self, title: str, content: str, level: str = "info") -> bool:
        if not self.is_configured:
            logger.warning("Feishu not configured, skipping notification")
            return False

        payload = {
            "msg_type": "text",
            "content": {"text": f"{title}\n{content}"},
        }
        try:
            response = requests.post(self.webhook_url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to send Feishu message: {e}")
            return False

        if response.status_code != 200:
            logger.error(f"Failed to send Feishu message: {response.status_code} - {response.text}")
            return False

        # 飞书在 HTTP 200 里用 code 表示业务错误
        try:
            code = response.json().get("code", 0)
        except ValueError:
            code = 0
        if code != 0:
            logger.error(f"Failed to send Feishu message: {response.text}")
            return False
        return True
