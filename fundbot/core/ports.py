"""
外部协作方接口

核心逻辑只依赖这些抽象类，具体实现见 data / broker / notify。
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Optional

from .models import (
    BrokerOrder,
    NavPoint,
    OrderStatus,
    Position,
    StrategyInstance,
    StrategyType,
    Transaction,
)


class MarketDataPort(ABC):
    """行情数据"""

    @abstractmethod
    def latest_nav(self, fund_code: str) -> Optional[NavPoint]:
        """最新净值，没有时返回 None"""

    @abstractmethod
    def historical_nav(self, fund_code: str, start: Optional[date] = None,
                       end: Optional[date] = None) -> List[NavPoint]:
        """区间内净值，按日期升序，可能为空"""


class BrokerPort(ABC):
    """
    交易通道

    三个方法都可能抛出 BrokerTransportError，核心逻辑不重试，原样抛给调用方。
    """

    @abstractmethod
    def buy(self, fund_code: str, amount: float) -> BrokerOrder:
        """按金额买入"""

    @abstractmethod
    def sell(self, fund_code: str, shares: float) -> BrokerOrder:
        """按份额卖出"""

    @abstractmethod
    def order_status(self, broker_order_id: str) -> OrderStatus:
        """查询订单确认状态"""


class NotificationPort(ABC):
    """通知；实现不得抛出异常"""

    @abstractmethod
    def send(self, title: str, content: str, level: str = "info") -> bool:
        """发送通知，返回是否成功"""


class TradingStore(ABC):
    """策略、持仓、交易记录的持久化"""

    @abstractmethod
    def get_position(self, owner: str, fund_code: str) -> Optional[Position]:
        pass

    @abstractmethod
    def save_position(self, position: Position) -> None:
        pass

    @abstractmethod
    def list_positions(self, owner: Optional[str] = None) -> List[Position]:
        pass

    @abstractmethod
    def save_transaction(self, transaction: Transaction) -> None:
        pass

    @abstractmethod
    def list_pending_transactions(self, submitted_before: Optional[datetime] = None) -> List[Transaction]:
        pass

    @abstractmethod
    def has_active_transaction(self, strategy_id: str, day: date) -> bool:
        """该策略当天是否已有 PENDING / CONFIRMED 交易"""

    @abstractmethod
    def save_strategy(self, strategy: StrategyInstance) -> None:
        pass

    @abstractmethod
    def list_strategies(self, strategy_type: Optional[StrategyType] = None,
                        enabled_only: bool = True) -> List[StrategyInstance]:
        pass
