"""
策略配置

四种策略各自一个不可变 dataclass，StrategyConfig 是它们的联合类型。
parse_strategy_config 是配置入口：所有数值范围在这里校验，
信号计算层拿到的配置一律视为合法。
"""

import math
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Tuple, Union

from .calendar import format_date, to_date
from .errors import InvalidConfig
from .models import InvestFrequency, StrategyType

FUND_CODE_PATTERN = re.compile(r"^[0-9]{6}$")
WEIGHT_TOLERANCE = 0.001


@dataclass(frozen=True)
class AutoInvestConfig:
    """定投"""
    amount: float
    frequency: InvestFrequency
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    day_of_week: int = 1  # 1=周一 .. 7=周日
    day_of_month: int = 1


@dataclass(frozen=True)
class TakeProfitStopLossConfig:
    """止盈止损；target_rate / stop_loss_rate 可只配置其一"""
    sell_ratio: float
    target_rate: Optional[float] = None
    stop_loss_rate: Optional[float] = None
    trailing_stop_rate: Optional[float] = None


@dataclass(frozen=True)
class GridTradingConfig:
    """网格交易"""
    price_low: float
    price_high: float
    grid_count: int
    amount_per_grid: float


@dataclass(frozen=True)
class TargetAllocation:
    fund_code: str
    target_weight: float


@dataclass(frozen=True)
class RebalanceConfig:
    """多基金再平衡"""
    target_allocations: Tuple[TargetAllocation, ...]
    rebalance_threshold: float
    frequency: InvestFrequency

    @property
    def fund_codes(self) -> List[str]:
        return [a.fund_code for a in self.target_allocations]


StrategyConfig = Union[AutoInvestConfig, TakeProfitStopLossConfig, GridTradingConfig, RebalanceConfig]

CONFIG_TYPES = {
    AutoInvestConfig: StrategyType.AUTO_INVEST,
    TakeProfitStopLossConfig: StrategyType.TAKE_PROFIT_STOP_LOSS,
    GridTradingConfig: StrategyType.GRID_TRADING,
    RebalanceConfig: StrategyType.REBALANCE,
}


@dataclass
class GridState:
    """网格的运行时状态，和配置分开保存"""
    last_grid_level: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GridState":
        level = (data or {}).get("last_grid_level")
        return cls(last_grid_level=int(level) if level is not None else None)

    def to_dict(self) -> Dict[str, Any]:
        return {"last_grid_level": self.last_grid_level}


def strategy_type_of(config: StrategyConfig) -> StrategyType:
    """配置对应的策略类型"""
    try:
        return CONFIG_TYPES[type(config)]
    except KeyError:
        raise InvalidConfig(f"Unknown strategy config: {type(config).__name__}")


# ============================================================
# 解析与校验
# ============================================================

def _is_finite_number(value) -> bool:
    """int / float 且不是 NaN、inf（json.loads 会接受 NaN 和 Infinity）"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


class _Checker:
    """收集全部错误后一次性抛出"""

    def __init__(self, raw: Dict[str, Any]):
        self.raw = raw
        self.errors: List[str] = []

    def number(self, key: str, required: bool = True, minimum=None, maximum=None,
               exclusive_min: bool = False) -> Optional[float]:
        value = self.raw.get(key)
        if value is None:
            if required:
                self.errors.append(f"{key} is required")
            return None
        if not _is_finite_number(value):
            self.errors.append(f"{key} must be a number")
            return None
        if minimum is not None:
            if exclusive_min and value <= minimum:
                self.errors.append(f"{key} must be greater than {minimum}")
            elif not exclusive_min and value < minimum:
                self.errors.append(f"{key} must not be less than {minimum}")
        if maximum is not None and value > maximum:
            self.errors.append(f"{key} must not be greater than {maximum}")
        return float(value)

    def integer(self, key: str, default: Optional[int] = None, minimum=None, maximum=None) -> Optional[int]:
        value = self.raw.get(key, default)
        if value is None:
            self.errors.append(f"{key} is required")
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            self.errors.append(f"{key} must be an integer")
            return None
        if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
            self.errors.append(f"{key} must be between {minimum} and {maximum}")
        return value

    def frequency(self, key: str = "frequency") -> Optional[InvestFrequency]:
        value = self.raw.get(key)
        try:
            return InvestFrequency(value)
        except ValueError:
            self.errors.append(f"{key} must be one of daily, weekly, monthly")
            return None

    def iso_date(self, key: str) -> Optional[date]:
        value = self.raw.get(key)
        try:
            return to_date(value)
        except (TypeError, ValueError):
            self.errors.append(f"{key} must be an ISO date (YYYY-MM-DD)")
            return None

    def raise_if_failed(self):
        if self.errors:
            raise InvalidConfig("Invalid strategy config", self.errors)


def _parse_auto_invest(raw: Dict[str, Any]) -> AutoInvestConfig:
    c = _Checker(raw)
    amount = c.number("amount", minimum=10)
    frequency = c.frequency()
    day_of_week = c.integer("day_of_week", default=1, minimum=1, maximum=7)
    day_of_month = c.integer("day_of_month", default=1, minimum=1, maximum=31)
    start_date = c.iso_date("start_date")
    end_date = c.iso_date("end_date")
    if start_date and end_date and start_date > end_date:
        c.errors.append("start_date must not be after end_date")
    c.raise_if_failed()
    return AutoInvestConfig(
        amount=amount, frequency=frequency,
        start_date=start_date, end_date=end_date,
        day_of_week=day_of_week, day_of_month=day_of_month,
    )


def _parse_take_profit_stop_loss(raw: Dict[str, Any]) -> TakeProfitStopLossConfig:
    c = _Checker(raw)
    sell_ratio = c.number("sell_ratio", minimum=0, maximum=1, exclusive_min=True)
    target_rate = c.number("target_rate", required=False, minimum=0)
    stop_loss_rate = c.number("stop_loss_rate", required=False, maximum=0)
    trailing = c.number("trailing_stop_rate", required=False, minimum=0, exclusive_min=True)
    if raw.get("target_rate") is None and raw.get("stop_loss_rate") is None:
        c.errors.append("one of target_rate or stop_loss_rate is required")
    c.raise_if_failed()
    return TakeProfitStopLossConfig(
        sell_ratio=sell_ratio, target_rate=target_rate,
        stop_loss_rate=stop_loss_rate, trailing_stop_rate=trailing,
    )


def _parse_grid_trading(raw: Dict[str, Any]) -> GridTradingConfig:
    c = _Checker(raw)
    if "last_grid_level" in raw:
        c.errors.append("last_grid_level is runtime state, not configuration")
    price_low = c.number("price_low", minimum=0)
    price_high = c.number("price_high", minimum=0)
    grid_count = c.integer("grid_count", minimum=2, maximum=100)
    amount_per_grid = c.number("amount_per_grid", minimum=0)
    if price_low is not None and price_high is not None and price_high <= price_low:
        c.errors.append("price_high must be greater than price_low")
    c.raise_if_failed()
    return GridTradingConfig(
        price_low=price_low, price_high=price_high,
        grid_count=grid_count, amount_per_grid=amount_per_grid,
    )


def _parse_rebalance(raw: Dict[str, Any]) -> RebalanceConfig:
    c = _Checker(raw)
    allocations: List[TargetAllocation] = []
    items = raw.get("target_allocations") or []
    if not isinstance(items, list):
        c.errors.append("target_allocations must be a list")
        items = []
    elif len(items) < 2:
        c.errors.append("target_allocations must contain at least 2 funds")
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            c.errors.append(f"target_allocations[{i}] must be an object")
            continue
        code = str(item.get("fund_code", ""))
        weight = item.get("target_weight")
        if not FUND_CODE_PATTERN.match(code):
            c.errors.append(f"target_allocations[{i}].fund_code must be a 6-digit number")
        if not _is_finite_number(weight) or not 0 <= weight <= 1:
            c.errors.append(f"target_allocations[{i}].target_weight must be between 0 and 1")
            continue
        allocations.append(TargetAllocation(fund_code=code, target_weight=float(weight)))
    if allocations and abs(sum(a.target_weight for a in allocations) - 1.0) > WEIGHT_TOLERANCE:
        c.errors.append("target_allocations weights must sum to 1.0 (±0.001 tolerance)")
    threshold = c.number("rebalance_threshold", minimum=0.01, maximum=0.5)
    frequency = c.frequency()
    c.raise_if_failed()
    return RebalanceConfig(
        target_allocations=tuple(allocations),
        rebalance_threshold=threshold,
        frequency=frequency,
    )


PARSERS = {
    StrategyType.AUTO_INVEST: _parse_auto_invest,
    StrategyType.TAKE_PROFIT_STOP_LOSS: _parse_take_profit_stop_loss,
    StrategyType.GRID_TRADING: _parse_grid_trading,
    StrategyType.REBALANCE: _parse_rebalance,
}


def parse_strategy_config(strategy_type: Union[StrategyType, str], raw: Dict[str, Any]) -> StrategyConfig:
    """
    校验并构造策略配置

    Args:
        strategy_type: 策略类型（枚举或其字符串值）
        raw: JSON 配置对象

    Returns:
        对应的配置 dataclass

    Raises:
        InvalidConfig: 类型未知或参数不合法
    """
    try:
        strategy_type = StrategyType(strategy_type)
    except ValueError:
        raise InvalidConfig(f"Unknown strategy type: {strategy_type}")
    if not isinstance(raw, dict):
        raise InvalidConfig("Strategy config must be a JSON object")
    return PARSERS[strategy_type](raw)


def config_to_dict(config: StrategyConfig) -> Dict[str, Any]:
    """配置转为可 JSON 序列化的 dict（parse_strategy_config 的逆操作）"""
    if isinstance(config, AutoInvestConfig):
        return {
            "amount": config.amount,
            "frequency": config.frequency.value,
            "day_of_week": config.day_of_week,
            "day_of_month": config.day_of_month,
            "start_date": format_date(config.start_date) if config.start_date else None,
            "end_date": format_date(config.end_date) if config.end_date else None,
        }
    if isinstance(config, TakeProfitStopLossConfig):
        return {
            "sell_ratio": config.sell_ratio,
            "target_rate": config.target_rate,
            "stop_loss_rate": config.stop_loss_rate,
            "trailing_stop_rate": config.trailing_stop_rate,
        }
    if isinstance(config, GridTradingConfig):
        return {
            "price_low": config.price_low,
            "price_high": config.price_high,
            "grid_count": config.grid_count,
            "amount_per_grid": config.amount_per_grid,
        }
    if isinstance(config, RebalanceConfig):
        return {
            "target_allocations": [
                {"fund_code": a.fund_code, "target_weight": a.target_weight}
                for a in config.target_allocations
            ],
            "rebalance_threshold": config.rebalance_threshold,
            "frequency": config.frequency.value,
        }
    raise InvalidConfig(f"Unknown strategy config: {type(config).__name__}")
