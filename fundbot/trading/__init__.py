"""实盘执行：策略执行器与定时任务"""

from .executor import StrategyExecutor, rebalance_due
from .jobs import JobReport, TradingJobs

__all__ = ["JobReport", "StrategyExecutor", "TradingJobs", "rebalance_due"]
