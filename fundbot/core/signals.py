"""
信号计算

evaluate_signal 是纯函数：只依据传入的配置、行情点和持仓状态给出 BUY / SELL / HOLD，
不读时钟、不做 I/O。"当前日期"就是行情点上的日期，实盘传今天，回测传模拟日期。
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import List, Optional

from .calendar import config_weekday_to_python
from .configs import (
    AutoInvestConfig,
    GridTradingConfig,
    RebalanceConfig,
    StrategyConfig,
    TakeProfitStopLossConfig,
)
from .errors import InvalidConfig
from .models import InvestFrequency, NavPoint

# 浮点比较容差
EPSILON = 1e-9


class SignalAction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


@dataclass(frozen=True)
class Signal:
    """
    交易信号

    BUY 带 amount；SELL 带 ratio（按持仓比例）或 shares（按份额，网格用）。
    grid_level 是网格策略算出的新层级，由调用方和配置分开持久化。
    """
    action: SignalAction
    amount: Optional[float] = None
    ratio: Optional[float] = None
    shares: Optional[float] = None
    reason: Optional[str] = None
    grid_level: Optional[int] = None

    @classmethod
    def buy(cls, amount: float, reason: Optional[str] = None, grid_level: Optional[int] = None) -> "Signal":
        return cls(SignalAction.BUY, amount=amount, reason=reason, grid_level=grid_level)

    @classmethod
    def sell(cls, ratio: Optional[float] = None, shares: Optional[float] = None,
             reason: Optional[str] = None, grid_level: Optional[int] = None) -> "Signal":
        return cls(SignalAction.SELL, ratio=ratio, shares=shares, reason=reason, grid_level=grid_level)

    @classmethod
    def hold(cls, grid_level: Optional[int] = None) -> "Signal":
        return cls(SignalAction.HOLD, grid_level=grid_level)

    @property
    def is_hold(self) -> bool:
        return self.action == SignalAction.HOLD


@dataclass(frozen=True)
class MarketState:
    """评估时的持仓状态；cash 为 None 表示不跟踪现金（实盘由交易通道控制）"""
    cash: Optional[float] = None
    shares: float = 0.0
    profit_rate: float = 0.0
    max_profit_rate: float = 0.0
    last_grid_level: Optional[int] = None


def is_due(frequency: InvestFrequency, d: date, day_of_week: int = 1, day_of_month: int = 1) -> bool:
    """按频率判断某日是否执行"""
    if frequency == InvestFrequency.DAILY:
        return True
    if frequency == InvestFrequency.WEEKLY:
        return d.weekday() == config_weekday_to_python(day_of_week)
    if frequency == InvestFrequency.MONTHLY:
        # 没有该日期的月份（如 2 月 30 日）当月跳过
        return d.day == day_of_month
    return False


def grid_lines(config: GridTradingConfig) -> List[float]:
    """[price_low, price_high] 等分为 grid_count 格，共 grid_count + 1 条网格线"""
    step = (config.price_high - config.price_low) / config.grid_count
    return [config.price_low + step * i for i in range(config.grid_count + 1)]


def current_grid_level(nav: float, lines: List[float]) -> int:
    """不高于 nav 的最高网格线下标，低于全部网格线时为 0"""
    for i in range(len(lines) - 1, -1, -1):
        if nav + EPSILON >= lines[i]:
            return i
    return 0


def evaluate_auto_invest(config: AutoInvestConfig, point: NavPoint, state: MarketState) -> Signal:
    d = point.date
    if config.start_date and d < config.start_date:
        return Signal.hold()
    if config.end_date and d > config.end_date:
        return Signal.hold()
    if not is_due(config.frequency, d, config.day_of_week, config.day_of_month):
        return Signal.hold()
    if state.cash is not None and state.cash < config.amount:
        return Signal.hold()
    return Signal.buy(config.amount, reason="auto_invest")


def evaluate_take_profit_stop_loss(config: TakeProfitStopLossConfig, point: NavPoint,
                                   state: MarketState) -> Signal:
    if state.shares <= 0:
        return Signal.hold()

    profit_rate = state.profit_rate
    if config.target_rate is not None and profit_rate >= config.target_rate:
        return Signal.sell(ratio=config.sell_ratio, reason="take_profit")
    if config.trailing_stop_rate is not None:
        if state.max_profit_rate - profit_rate + EPSILON >= config.trailing_stop_rate:
            return Signal.sell(ratio=config.sell_ratio, reason="trailing_stop")
    if config.stop_loss_rate is not None and profit_rate <= config.stop_loss_rate:
        return Signal.sell(ratio=config.sell_ratio, reason="stop_loss")
    return Signal.hold()


def evaluate_grid_trading(config: GridTradingConfig, point: NavPoint, state: MarketState) -> Signal:
    nav = point.nav
    last_level = state.last_grid_level
    if nav < config.price_low or nav > config.price_high:
        return Signal.hold(grid_level=last_level)

    level = current_grid_level(nav, grid_lines(config))
    if last_level is None:
        # 首次观察：建底仓
        return Signal.buy(config.amount_per_grid, reason="grid_seed", grid_level=level)
    if level < last_level:
        return Signal.buy(config.amount_per_grid, reason="grid_down", grid_level=level)
    if level > last_level:
        return Signal.sell(shares=config.amount_per_grid / nav, reason="grid_up", grid_level=level)
    return Signal.hold(grid_level=level)


def evaluate_signal(config: StrategyConfig, point: NavPoint, state: MarketState) -> Signal:
    """
    计算单只基金在某个行情点上的信号

    Args:
        config: 已校验的策略配置（单基金策略）
        point: 当前行情点，其日期即"当前日期"
        state: 当前持仓状态

    Returns:
        Signal

    Raises:
        InvalidConfig: 传入再平衡等非单点策略（调用方编程错误）
    """
    if isinstance(config, AutoInvestConfig):
        return evaluate_auto_invest(config, point, state)
    if isinstance(config, TakeProfitStopLossConfig):
        return evaluate_take_profit_stop_loss(config, point, state)
    if isinstance(config, GridTradingConfig):
        return evaluate_grid_trading(config, point, state)
    if isinstance(config, RebalanceConfig):
        raise InvalidConfig("Rebalance is evaluated over a set of positions, use compute_rebalance_orders")
    raise InvalidConfig(f"Unknown strategy config: {type(config).__name__}")
