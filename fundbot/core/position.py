"""
持仓成本计算

买入按加权平均更新成本；卖出按持仓均价扣减成本，均价不变；
刷新按最新净值计算市值、收益率和最高收益率。
"""

from datetime import datetime
from typing import Optional

from .models import Position

# 份额归零判定容差
SHARES_EPSILON = 1e-6


def apply_buy(position: Position, shares: float, price: float) -> Position:
    """确认买入：new_avg = (old_cost + shares * price) / (old_shares + shares)"""
    new_shares = position.shares + shares
    new_cost = position.cost + shares * price
    position.shares = new_shares
    position.cost = new_cost
    position.avg_price = new_cost / new_shares if new_shares > 0 else 0.0
    return position


def apply_sell(position: Position, shares: float) -> Position:
    """
    确认卖出

    成本按持仓均价扣减（不是成交价），不计算已实现盈亏。
    份额卖空时份额、成本强制归零，避免浮点残留；清仓后最高收益率也一并清零。
    """
    sell_cost = shares * position.avg_price
    new_shares = position.shares - shares
    new_cost = position.cost - sell_cost

    if new_shares <= SHARES_EPSILON:
        position.shares = 0.0
        position.cost = 0.0
        position.avg_price = 0.0
        position.market_value = 0.0
        position.profit = 0.0
        position.profit_rate = 0.0
        position.max_profit_rate = 0.0
        return position

    position.shares = new_shares
    position.cost = new_cost
    return position


def refresh_position(position: Position, nav: float, now: Optional[datetime] = None) -> Position:
    """按最新净值刷新市值与收益，max_profit_rate 只增不减"""
    market_value = position.shares * nav
    profit = market_value - position.cost
    profit_rate = profit / position.cost if position.cost > 0 else 0.0

    position.market_value = market_value
    position.profit = profit
    position.profit_rate = profit_rate
    position.max_profit_rate = max(position.max_profit_rate, profit_rate)
    if now is not None:
        position.updated_at = now
    return position
