"""
回测引擎

逐日回放净值序列：先记录当日组合价值，再按顺序评估每个策略配置并在账本上成交，
最后统一计算收益与风险指标。不访问持久化，也不调用交易通道。
"""

import logging
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from fundbot.core.calendar import format_date, to_date
from fundbot.core.configs import GridTradingConfig, RebalanceConfig, StrategyConfig
from fundbot.core.errors import InvalidConfig, NoHistoricalData
from fundbot.core.models import NavPoint
from fundbot.core.ports import MarketDataPort
from fundbot.core.signals import MarketState, Signal, SignalAction, evaluate_signal
from fundbot.backtest.metrics import calc_metrics
from fundbot.backtest.models import BacktestResult
from fundbot.backtest.portfolio import Portfolio

logger = logging.getLogger(__name__)


class BacktestEngine:
    """单基金回测引擎"""

    def __init__(
        self,
        config: Union[StrategyConfig, Sequence[StrategyConfig]],
        initial_capital: float = 100_000,
    ):
        if isinstance(config, (list, tuple)):
            self.configs: List[StrategyConfig] = list(config)
        else:
            self.configs = [config]

        if not self.configs:
            raise InvalidConfig("At least one strategy config is required")
        for c in self.configs:
            if isinstance(c, RebalanceConfig):
                raise InvalidConfig("Rebalance strategies are not supported by the single-fund backtest")
        if initial_capital <= 0:
            raise InvalidConfig("initial_capital must be positive")

        self.initial_capital = initial_capital

    def run(
        self,
        nav_series: Sequence[NavPoint],
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> BacktestResult:
        """
        回放净值序列

        Args:
            nav_series: 单只基金的净值序列，必须按日期严格升序（不做排序）
            progress_callback: 进度回调 (current, total)

        Raises:
            NoHistoricalData: 序列为空
        """
        if not nav_series:
            raise NoHistoricalData()

        portfolio = Portfolio(self.initial_capital)
        value_history: List[Tuple[str, float]] = []
        grid_levels: Dict[int, Optional[int]] = {}
        max_profit_rate = 0.0
        total = len(nav_series)

        for step, point in enumerate(nav_series, start=1):
            nav = point.nav
            day = format_date(point.date)
            value_history.append((day, portfolio.get_value(nav)))

            for i, config in enumerate(self.configs):
                profit_rate = portfolio.profit_rate(nav)
                if portfolio.shares > 0:
                    max_profit_rate = max(max_profit_rate, profit_rate)

                state = MarketState(
                    cash=portfolio.cash,
                    shares=portfolio.shares,
                    profit_rate=profit_rate,
                    max_profit_rate=max_profit_rate,
                    last_grid_level=grid_levels.get(i),
                )
                signal = evaluate_signal(config, point, state)
                if isinstance(config, GridTradingConfig):
                    grid_levels[i] = signal.grid_level

                self._apply_signal(portfolio, signal, nav, day)
                if portfolio.shares == 0:
                    max_profit_rate = 0.0

            if progress_callback:
                progress_callback(step, total)

        start, end = nav_series[0], nav_series[-1]
        final_value = portfolio.get_value(end.nav)
        metrics = calc_metrics(
            [v for _, v in value_history],
            self.initial_capital,
            final_value,
            start.date,
            end.date,
        )

        logger.info(
            f"Backtest {start.fund_code} {format_date(start.date)} ~ {format_date(end.date)}: "
            f"{len(portfolio.trades)} trades, final value {final_value:,.2f}"
        )

        return BacktestResult(
            fund_code=start.fund_code,
            start_date=format_date(start.date),
            end_date=format_date(end.date),
            initial_capital=self.initial_capital,
            final_value=final_value,
            total_return=metrics["total_return"],
            annual_return=metrics["annual_return"],
            max_drawdown=metrics["max_drawdown"],
            sharpe_ratio=metrics["sharpe_ratio"],
            trades=portfolio.trades,
            value_history=value_history,
        )

    def run_for_fund(
        self,
        market: MarketDataPort,
        fund_code: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> BacktestResult:
        """从行情接口取区间净值后回测"""
        nav_series = market.historical_nav(fund_code, start_date, end_date)
        if not nav_series:
            raise NoHistoricalData(fund_code)
        return self.run(nav_series, progress_callback=progress_callback)

    def _apply_signal(self, portfolio: Portfolio, signal: Signal, nav: float, day: str):
        if signal.action == SignalAction.BUY:
            portfolio.buy(signal.amount, nav, day, reason=signal.reason)
        elif signal.action == SignalAction.SELL:
            if signal.shares is not None:
                portfolio.sell_shares(signal.shares, nav, day, reason=signal.reason)
            else:
                portfolio.sell(signal.ratio, nav, day, reason=signal.reason)


def run_backtest(
    nav_series: Sequence[NavPoint],
    config: Union[StrategyConfig, Sequence[StrategyConfig]],
    initial_capital: float,
) -> BacktestResult:
    """回测入口"""
    return BacktestEngine(config, initial_capital).run(nav_series)


def nav_points_from_frame(df: pd.DataFrame) -> List[NavPoint]:
    """
    净值 DataFrame 转为 NavPoint 列表

    需要 fund_code, date, nav 列，acc_nav / growth_rate 可选；按日期升序排列后转换。
    """
    if df.empty:
        return []

    df = df.sort_values("date").reset_index(drop=True)
    has_acc = "acc_nav" in df.columns
    has_growth = "growth_rate" in df.columns

    points = []
    for row in df.itertuples(index=False):
        acc = getattr(row, "acc_nav") if has_acc else None
        growth = getattr(row, "growth_rate") if has_growth else None
        points.append(NavPoint(
            fund_code=str(row.fund_code),
            date=to_date(row.date),
            nav=float(row.nav),
            accumulated_nav=None if acc is None or pd.isna(acc) else float(acc),
            growth_rate=None if growth is None or pd.isna(growth) else float(growth),
        ))
    return points
