"""绩效指标单元测试"""

from datetime import date

import numpy as np
import pytest

from fundbot.backtest.metrics import (
    calc_annual_return,
    calc_max_drawdown,
    calc_metrics,
    calc_sharpe_ratio,
    calc_total_return,
)


class TestReturns:
    """收益率"""

    def test_total_return(self):
        assert calc_total_return(100_000, 112_500) == pytest.approx(0.125)

    def test_annual_return_one_year(self):
        assert calc_annual_return(0.1, 365) == pytest.approx(0.1)

    def test_annual_return_half_year(self):
        assert calc_annual_return(0.1, 182) == pytest.approx(1.1 ** (365 / 182) - 1)

    def test_annual_return_zero_days(self):
        assert calc_annual_return(0.1, 0) == 0.0

    def test_annual_return_total_loss(self):
        assert calc_annual_return(-1.0, 100) == -1.0


class TestMaxDrawdown:
    """最大回撤"""

    def test_drawdown_from_peak(self):
        assert calc_max_drawdown([10000, 12000, 9000]) == pytest.approx(0.25)

    def test_monotonic_rise(self):
        assert calc_max_drawdown([100, 110, 120]) == 0.0

    def test_uses_running_peak(self):
        """回撤以当时的最高点为基准，而非全局最高点"""
        assert calc_max_drawdown([100, 50, 200, 150]) == pytest.approx(0.5)

    def test_empty(self):
        assert calc_max_drawdown([]) == 0.0


class TestSharpeRatio:
    """夏普比率"""

    def test_constant_series(self):
        assert calc_sharpe_ratio([100, 100, 100]) == 0.0

    def test_single_point(self):
        assert calc_sharpe_ratio([100]) == 0.0

    def test_population_std(self):
        values = [100, 102, 101, 104]
        returns = np.diff(values) / np.array(values[:-1])
        expected = returns.mean() / returns.std(ddof=0) * np.sqrt(252)
        assert calc_sharpe_ratio(values) == pytest.approx(expected)


class TestCalcMetrics:
    def test_keys(self):
        metrics = calc_metrics([100, 110], 100, 110, date(2026, 1, 1), date(2026, 1, 2))
        assert set(metrics) == {"total_return", "annual_return", "max_drawdown", "sharpe_ratio"}
        assert metrics["total_return"] == pytest.approx(0.1)
