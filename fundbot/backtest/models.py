"""回测数据模型"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class Trade:
    """回测中的一笔成交"""
    date: str
    type: str  # "BUY" / "SELL"
    price: float
    amount: Optional[float] = None  # 买入金额
    shares: Optional[float] = None  # 成交份额
    reason: Optional[str] = None

    @property
    def value(self) -> float:
        """成交金额"""
        if self.amount is not None:
            return self.amount
        return (self.shares or 0.0) * self.price


@dataclass
class BacktestResult:
    """回测结果"""
    fund_code: str
    start_date: str
    end_date: str
    initial_capital: float
    final_value: float
    total_return: float
    annual_return: float
    max_drawdown: float
    sharpe_ratio: float
    trades: List[Trade] = field(default_factory=list)
    value_history: List[Tuple[str, float]] = field(default_factory=list)

    @property
    def trades_count(self) -> int:
        return len(self.trades)

    def to_dict(self) -> Dict[str, Any]:
        """汇总指标（不含逐日序列）"""
        return {
            "fund_code": self.fund_code,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "initial_capital": self.initial_capital,
            "final_value": self.final_value,
            "total_return": self.total_return,
            "annual_return": self.annual_return,
            "max_drawdown": self.max_drawdown,
            "sharpe_ratio": self.sharpe_ratio,
            "trades_count": self.trades_count,
        }
