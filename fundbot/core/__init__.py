"""策略信号、持仓对账、再平衡等核心逻辑（无 I/O）"""

from .configs import (
    AutoInvestConfig,
    GridState,
    GridTradingConfig,
    RebalanceConfig,
    StrategyConfig,
    TakeProfitStopLossConfig,
    TargetAllocation,
    config_to_dict,
    parse_strategy_config,
)
from .errors import (
    BrokerTransportError,
    FundbotError,
    InvalidConfig,
    NoHistoricalData,
    PositionNotFound,
)
from .lifecycle import ConfirmationReport, confirm_all, confirm_pending
from .models import (
    BrokerOrder,
    InvestFrequency,
    NavPoint,
    OrderStatus,
    Position,
    StrategyInstance,
    StrategyType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from .position import apply_buy, apply_sell, refresh_position
from .rebalance import RebalanceOrder, compute_rebalance_orders, current_allocations
from .signals import MarketState, Signal, SignalAction, evaluate_signal

__all__ = [
    # 配置
    "AutoInvestConfig",
    "TakeProfitStopLossConfig",
    "GridTradingConfig",
    "RebalanceConfig",
    "TargetAllocation",
    "StrategyConfig",
    "GridState",
    "parse_strategy_config",
    "config_to_dict",
    # 异常
    "FundbotError",
    "NoHistoricalData",
    "PositionNotFound",
    "BrokerTransportError",
    "InvalidConfig",
    # 模型
    "NavPoint",
    "Position",
    "Transaction",
    "StrategyInstance",
    "BrokerOrder",
    "OrderStatus",
    "StrategyType",
    "InvestFrequency",
    "TransactionType",
    "TransactionStatus",
    # 信号
    "Signal",
    "SignalAction",
    "MarketState",
    "evaluate_signal",
    # 持仓与订单
    "apply_buy",
    "apply_sell",
    "refresh_position",
    "confirm_pending",
    "confirm_all",
    "ConfirmationReport",
    # 再平衡
    "RebalanceOrder",
    "compute_rebalance_orders",
    "current_allocations",
]
