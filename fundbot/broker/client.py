"""
交易通道客户端

HTTP 客户端，把买入/卖出/查询请求转发给券商网关（由网关负责登录会话与下单）。
"""

import logging
import os
from typing import Any, Dict, Optional

import requests

from fundbot.core.errors import BrokerTransportError
from fundbot.core.models import BrokerOrder, OrderStatus, TransactionStatus
from fundbot.core.ports import BrokerPort

logger = logging.getLogger(__name__)


# 默认配置
DEFAULT_BROKER_URL = "http://localhost:8788"
DEFAULT_TIMEOUT = 30


class BrokerClient(BrokerPort):
    """券商网关 HTTP 客户端"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        """
        初始化客户端

        Args:
            base_url: 网关 URL，默认从 BROKER_URL 环境变量获取
            token: 认证 token，默认从 BROKER_TOKEN 环境变量获取
            timeout: 请求超时秒数
        """
        self.base_url = base_url or os.getenv("BROKER_URL", DEFAULT_BROKER_URL)
        self.token = token or os.getenv("BROKER_TOKEN", "")
        self.timeout = timeout

        # 移除末尾斜杠
        self.base_url = self.base_url.rstrip("/")

    def _make_headers(self) -> Dict[str, str]:
        """构建请求头"""
        headers = {
            "Content-Type": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """发送请求并返回 JSON；任何传输层或 HTTP 错误统一转为 BrokerTransportError"""
        url = f"{self.base_url}{path}"
        try:
            if method == "POST":
                response = requests.post(url, json=payload, headers=self._make_headers(), timeout=self.timeout)
            else:
                response = requests.get(url, headers=self._make_headers(), timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.error(f"Broker {method} {path} timeout after {self.timeout}s")
            raise BrokerTransportError(f"Timeout after {self.timeout}s")
        except requests.exceptions.ConnectionError as e:
            logger.error(f"Broker {method} {path} connection error: {e}")
            raise BrokerTransportError(f"Connection error: {e}")

        if response.status_code == 403:
            logger.error(f"Broker {method} {path} unauthorized (403)")
            raise BrokerTransportError("Unauthorized: invalid or missing token", status_code=403)
        if response.status_code != 200:
            logger.error(f"Broker {method} {path} failed: {response.status_code} - {response.text}")
            raise BrokerTransportError(response.text or "Broker request failed", status_code=response.status_code)

        try:
            return response.json()
        except ValueError:
            raise BrokerTransportError("Invalid JSON from broker", status_code=response.status_code)

    def _order(self, data: Dict[str, Any]) -> BrokerOrder:
        order_id = data.get("order_id")
        if not order_id:
            raise BrokerTransportError(f"Broker response missing order_id: {data}")
        return BrokerOrder(order_id=str(order_id))

    def buy(self, fund_code: str, amount: float) -> BrokerOrder:
        logger.info(f"Submitting BUY {fund_code} amount={amount:.2f}")
        return self._order(self._request("POST", "/api/orders/buy", {"fund_code": fund_code, "amount": amount}))

    def sell(self, fund_code: str, shares: float) -> BrokerOrder:
        logger.info(f"Submitting SELL {fund_code} shares={shares:.2f}")
        return self._order(self._request("POST", "/api/orders/sell", {"fund_code": fund_code, "shares": shares}))

    def order_status(self, broker_order_id: str) -> OrderStatus:
        data = self._request("GET", f"/api/orders/{broker_order_id}")
        try:
            status = TransactionStatus(str(data.get("status", "")).upper())
        except ValueError:
            raise BrokerTransportError(f"Unknown order status: {data.get('status')}")
        return OrderStatus(
            status=status,
            shares=data.get("shares"),
            price=data.get("price"),
            reason=data.get("reason"),
        )

    def health_check(self) -> bool:
        """
        检查网关是否可用

        Returns:
            是否可用
        """
        try:
            response = requests.get(f"{self.base_url}/api/health", timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False
