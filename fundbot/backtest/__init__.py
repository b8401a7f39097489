"""历史净值回测"""

from .engine import BacktestEngine, nav_points_from_frame, run_backtest
from .models import BacktestResult, Trade

__all__ = ["BacktestEngine", "BacktestResult", "Trade", "run_backtest", "nav_points_from_frame"]
