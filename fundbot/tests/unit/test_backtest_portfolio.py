"""回测账本单元测试"""

import pytest

from fundbot.backtest.portfolio import Portfolio


class TestPortfolioBuy:
    """买入"""

    def test_buy_updates_cash_and_cost(self):
        p = Portfolio(10_000)
        assert p.buy(1000, 2.0, "2026-03-02", reason="auto_invest") is True
        assert p.cash == 9000
        assert p.shares == 500
        assert p.total_cost == 1000
        assert p.avg_cost == 2.0
        assert p.trades[0].type == "BUY"
        assert p.trades[0].value == 1000

    def test_insufficient_cash(self):
        p = Portfolio(500)
        assert p.buy(1000, 1.0, "2026-03-02") is False
        assert p.cash == 500
        assert p.trades == []

    def test_weighted_average_cost(self):
        p = Portfolio(10_000)
        p.buy(1000, 1.0, "2026-03-02")
        p.buy(1000, 2.0, "2026-03-03")
        assert p.avg_cost == pytest.approx(2000 / 1500)
        assert p.profit_rate(2.0) == pytest.approx(2.0 / (2000 / 1500) - 1)


class TestPortfolioSell:
    """卖出"""

    def test_sell_ratio_reduces_cost_proportionally(self):
        p = Portfolio(10_000)
        p.buy(2000, 1.0, "2026-03-02")
        assert p.sell(0.25, 1.5, "2026-03-03", reason="take_profit") is True
        assert p.shares == pytest.approx(1500)
        assert p.total_cost == pytest.approx(1500)
        assert p.avg_cost == pytest.approx(1.0)
        assert p.cash == pytest.approx(8000 + 750)
        assert p.trades[-1].value == pytest.approx(750)

    def test_full_sell_zeroes(self):
        p = Portfolio(10_000)
        p.buy(1000, 3.0, "2026-03-02")
        p.sell(1.0, 3.0, "2026-03-03")
        assert p.shares == 0
        assert p.total_cost == 0
        assert p.avg_cost == 0

    def test_sell_shares_clipped(self):
        p = Portfolio(10_000)
        p.buy(1000, 1.0, "2026-03-02")
        assert p.sell_shares(5000, 1.2, "2026-03-03") is True
        assert p.shares == 0
        assert p.trades[-1].shares == pytest.approx(1000)

    def test_sell_without_shares(self):
        p = Portfolio(10_000)
        assert p.sell(0.5, 1.0, "2026-03-02") is False
        assert p.sell_shares(10, 1.0, "2026-03-02") is False

    def test_get_value(self):
        p = Portfolio(10_000)
        p.buy(1000, 1.0, "2026-03-02")
        assert p.get_value(1.5) == pytest.approx(9000 + 1500)
