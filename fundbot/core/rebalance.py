"""再平衡：计算当前权重与目标权重的偏离，生成调仓指令"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping

from .configs import TargetAllocation
from .models import TransactionType

# 浮点比较容差
EPSILON = 1e-9


@dataclass(frozen=True)
class RebalanceOrder:
    fund_code: str
    action: TransactionType
    amount: float


def position_values(shares: Mapping[str, float], navs: Mapping[str, float],
                    fund_codes: Iterable[str]) -> Dict[str, float]:
    """各基金市值 shares * nav；没有持仓或没有净值记为 0"""
    return {
        code: shares.get(code, 0.0) * navs.get(code, 0.0)
        for code in fund_codes
    }


def current_allocations(values: Mapping[str, float]) -> Dict[str, float]:
    """市值占比；总市值为 0 时全部为 0"""
    total = sum(values.values())
    return {
        code: (value / total if total > 0 else 0.0)
        for code, value in values.items()
    }


def compute_rebalance_orders(
    current_weights: Mapping[str, float],
    targets: Iterable[TargetAllocation],
    total_value: float,
    threshold: float,
) -> List[RebalanceOrder]:
    """
    生成调仓指令

    偏离 = 当前权重 - 目标权重，|偏离| >= threshold 时调仓，金额 = |偏离| * 总市值；
    偏离为正卖出，为负买入。没有持仓的基金当前权重按 0 计。
    """
    orders: List[RebalanceOrder] = []
    for target in targets:
        deviation = current_weights.get(target.fund_code, 0.0) - target.target_weight
        if abs(deviation) + EPSILON < threshold:
            continue
        action = TransactionType.SELL if deviation > 0 else TransactionType.BUY
        orders.append(RebalanceOrder(
            fund_code=target.fund_code,
            action=action,
            amount=abs(deviation) * total_value,
        ))
    return orders
