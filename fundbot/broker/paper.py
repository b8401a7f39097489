"""
模拟交易通道

不连券商，下单即记账，查询时按最新净值确认。用于 --paper 演练和集成测试。

订单内容编码在订单号里（paper:BUY:110022:1000.0:<随机串>），
下单和 T+1 确认通常在两次不同的定时任务中，确认时不依赖进程内状态。
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from fundbot.core.errors import BrokerTransportError
from fundbot.core.models import BrokerOrder, OrderStatus, TransactionStatus, TransactionType
from fundbot.core.ports import BrokerPort, MarketDataPort

logger = logging.getLogger(__name__)

ORDER_PREFIX = "paper"


@dataclass
class PaperOrder:
    fund_code: str
    type: TransactionType
    amount: Optional[float] = None
    shares: Optional[float] = None

    def to_order_id(self) -> str:
        quantity = self.amount if self.type == TransactionType.BUY else self.shares
        return f"{ORDER_PREFIX}:{self.type.value}:{self.fund_code}:{float(quantity)!r}:{uuid.uuid4().hex[:12]}"

    @classmethod
    def from_order_id(cls, order_id: str) -> "PaperOrder":
        """解析订单号；格式不对时按未知订单处理"""
        parts = order_id.split(":")
        try:
            prefix, order_type, fund_code, quantity, _ = parts
            if prefix != ORDER_PREFIX:
                raise ValueError(prefix)
            order_type = TransactionType(order_type)
            quantity = float(quantity)
        except ValueError:
            raise BrokerTransportError(f"Unknown paper order: {order_id}", status_code=404)

        if order_type == TransactionType.BUY:
            return cls(fund_code, order_type, amount=quantity)
        return cls(fund_code, order_type, shares=quantity)


class PaperBroker(BrokerPort):
    """按最新净值成交的模拟通道"""

    def __init__(self, market: MarketDataPort):
        self.market = market

    def buy(self, fund_code: str, amount: float) -> BrokerOrder:
        order_id = PaperOrder(fund_code, TransactionType.BUY, amount=amount).to_order_id()
        logger.info(f"[paper] BUY {fund_code} amount={amount:.2f} -> {order_id}")
        return BrokerOrder(order_id)

    def sell(self, fund_code: str, shares: float) -> BrokerOrder:
        order_id = PaperOrder(fund_code, TransactionType.SELL, shares=shares).to_order_id()
        logger.info(f"[paper] SELL {fund_code} shares={shares:.2f} -> {order_id}")
        return BrokerOrder(order_id)

    def order_status(self, broker_order_id: str) -> OrderStatus:
        order = PaperOrder.from_order_id(broker_order_id)

        point = self.market.latest_nav(order.fund_code)
        if point is None or point.nav <= 0:
            return OrderStatus(TransactionStatus.PENDING)

        if order.type == TransactionType.BUY:
            shares = order.amount / point.nav
        else:
            shares = order.shares
        return OrderStatus(TransactionStatus.CONFIRMED, shares=shares, price=point.nav)
