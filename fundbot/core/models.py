"""领域数据模型"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional


class TransactionType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


class StrategyType(str, Enum):
    AUTO_INVEST = "AUTO_INVEST"
    TAKE_PROFIT_STOP_LOSS = "TAKE_PROFIT_STOP_LOSS"
    GRID_TRADING = "GRID_TRADING"
    REBALANCE = "REBALANCE"


class InvestFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class NavPoint:
    """单只基金某一日的净值"""
    fund_code: str
    date: date
    nav: float
    accumulated_nav: Optional[float] = None
    growth_rate: Optional[float] = None


@dataclass
class Position:
    """
    单个用户在单只基金上的持仓

    不变量：shares > 0 时 avg_price = cost / shares，否则为 0；
    max_profit_rate 只在刷新时单调不减。
    """
    owner: str
    fund_code: str
    shares: float = 0.0
    cost: float = 0.0
    avg_price: float = 0.0
    market_value: float = 0.0
    profit: float = 0.0
    profit_rate: float = 0.0
    max_profit_rate: float = 0.0
    updated_at: Optional[datetime] = None


@dataclass
class Transaction:
    """一笔提交到交易通道的订单"""
    id: str
    owner: str
    fund_code: str
    type: TransactionType
    amount: float  # 提交时的金额（卖出时为按持仓均价估算的临时值）
    submitted_at: datetime
    status: TransactionStatus = TransactionStatus.PENDING
    shares: Optional[float] = None  # 卖出时提交的份额
    broker_order_id: Optional[str] = None
    strategy_id: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    confirmed_shares: Optional[float] = None
    confirmed_price: Optional[float] = None
    failure_reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != TransactionStatus.PENDING

    @property
    def amount_is_provisional(self) -> bool:
        """未确认的卖出单金额只是估算"""
        return self.type == TransactionType.SELL and self.status == TransactionStatus.PENDING

    @property
    def confirmed_amount(self) -> Optional[float]:
        if self.confirmed_shares is None or self.confirmed_price is None:
            return None
        return self.confirmed_shares * self.confirmed_price


@dataclass
class StrategyInstance:
    """
    用户的一条策略

    config 是不可变配置，state 是运行时状态（目前只有网格的 last_grid_level），
    两者分开持久化。
    """
    id: str
    owner: str
    name: str
    type: StrategyType
    fund_code: str
    config: Any
    state: Dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    last_executed_at: Optional[datetime] = None


@dataclass(frozen=True)
class BrokerOrder:
    """交易通道受理的订单"""
    order_id: str


@dataclass(frozen=True)
class OrderStatus:
    """交易通道返回的订单状态"""
    status: TransactionStatus
    shares: Optional[float] = None
    price: Optional[float] = None
    reason: Optional[str] = None
