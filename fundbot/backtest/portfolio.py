"""回测账本：现金、份额、累计成本"""

from typing import List, Optional

from .models import Trade

# 份额归零判定容差
SHARES_EPSILON = 1e-9


class Portfolio:
    """单基金回测账本，成本按加权平均计"""

    def __init__(self, initial_capital: float = 100_000):
        self.initial_capital = initial_capital
        self.cash = initial_capital
        self.shares = 0.0
        self.total_cost = 0.0
        self.trades: List[Trade] = []

    @property
    def avg_cost(self) -> float:
        """持仓均价，无持仓时为 0"""
        if self.shares <= 0:
            return 0.0
        return self.total_cost / self.shares

    def profit_rate(self, price: float) -> float:
        avg_cost = self.avg_cost
        if avg_cost <= 0:
            return 0.0
        return (price - avg_cost) / avg_cost

    def get_value(self, price: float) -> float:
        """现金 + 持仓市值"""
        return self.cash + self.shares * price

    def buy(self, amount: float, price: float, date: str, reason: Optional[str] = None) -> bool:
        """按金额买入，现金不足时不成交"""
        if amount <= 0 or price <= 0 or self.cash < amount:
            return False

        shares = amount / price
        self.shares += shares
        self.cash -= amount
        self.total_cost += amount
        self.trades.append(Trade(
            date=date, type="BUY", price=price,
            amount=amount, shares=shares, reason=reason,
        ))
        return True

    def sell(self, ratio: float, price: float, date: str, reason: Optional[str] = None) -> bool:
        """按持仓比例卖出，成本按同一比例扣减"""
        if self.shares <= 0 or ratio <= 0:
            return False

        ratio = min(ratio, 1.0)
        sell_shares = self.shares * ratio
        proceeds = sell_shares * price
        self.shares -= sell_shares
        self.cash += proceeds
        self.total_cost -= self.total_cost * ratio

        if self.shares <= SHARES_EPSILON:
            self.shares = 0.0
            self.total_cost = 0.0

        self.trades.append(Trade(
            date=date, type="SELL", price=price,
            shares=sell_shares, reason=reason,
        ))
        return True

    def sell_shares(self, shares: float, price: float, date: str, reason: Optional[str] = None) -> bool:
        """按份额卖出，超出持仓部分截断"""
        if self.shares <= 0 or shares <= 0:
            return False
        return self.sell(min(shares / self.shares, 1.0), price, date, reason)
