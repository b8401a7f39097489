"""绩效指标计算"""

from datetime import date
from typing import Dict, Sequence

import numpy as np

TRADING_DAYS_PER_YEAR = 252


def calc_total_return(initial_capital: float, final_value: float) -> float:
    return (final_value - initial_capital) / initial_capital


def calc_annual_return(total_return: float, elapsed_days: int) -> float:
    """
    年化收益率 (1 + total_return) ^ (365 / elapsed_days) - 1

    区间为 0 天时无法年化，返回 0；全部亏光时返回 -1。
    """
    if elapsed_days <= 0:
        return 0.0
    growth = 1 + total_return
    if growth <= 0:
        return -1.0
    return growth ** (365 / elapsed_days) - 1


def calc_max_drawdown(values: Sequence[float]) -> float:
    """相对历史最高点的最大回撤比例"""
    if len(values) == 0:
        return 0.0
    series = np.asarray(values, dtype=float)
    peaks = np.maximum.accumulate(series)
    with np.errstate(divide="ignore", invalid="ignore"):
        drawdowns = np.where(peaks > 0, (peaks - series) / peaks, 0.0)
    return float(max(drawdowns.max(), 0.0))


def calc_sharpe_ratio(values: Sequence[float]) -> float:
    """日收益率均值 / 标准差 * sqrt(252)，无风险利率按 0"""
    if len(values) < 2:
        return 0.0
    series = np.asarray(values, dtype=float)
    previous = series[:-1]
    if np.any(previous == 0):
        return 0.0
    returns = np.diff(series) / previous
    std = returns.std()
    if std == 0 or not np.isfinite(std):
        return 0.0
    return float(returns.mean() / std * np.sqrt(TRADING_DAYS_PER_YEAR))


def calc_metrics(
    values: Sequence[float],
    initial_capital: float,
    final_value: float,
    start_date: date,
    end_date: date,
) -> Dict[str, float]:
    """
    计算回测绩效指标

    Args:
        values: 逐日组合价值
        initial_capital: 初始资金
        final_value: 期末价值
        start_date: 首个交易日
        end_date: 最后交易日

    Returns:
        total_return / annual_return / max_drawdown / sharpe_ratio
    """
    total_return = calc_total_return(initial_capital, final_value)
    return {
        "total_return": total_return,
        "annual_return": calc_annual_return(total_return, (end_date - start_date).days),
        "max_drawdown": calc_max_drawdown(values),
        "sharpe_ratio": calc_sharpe_ratio(values),
    }
