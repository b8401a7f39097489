"""
Layer 1 单元测试 - LocalDB
测试净值 upsert、策略/持仓/交易读写与待确认查询
"""

import os
import tempfile
from datetime import date, datetime

import pandas as pd
import pytest

from fundbot.backtest.engine import nav_points_from_frame
from fundbot.core.configs import GridTradingConfig, parse_strategy_config
from fundbot.core.models import (
    Position,
    StrategyInstance,
    StrategyType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from fundbot.data.local_db import LocalDB


@pytest.fixture
def temp_db():
    """创建临时数据库"""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = os.path.join(tmpdir, "test.db")
        db = LocalDB(db_path)
        yield db


@pytest.fixture
def sample_nav_df():
    """样本净值数据"""
    return pd.DataFrame({
        "fund_code": ["110022", "110022", "110022", "000001"],
        "date": ["2026-02-26", "2026-02-27", "2026-03-02", "2026-03-02"],
        "nav": [1.50, 1.52, 1.49, 2.10],
        "acc_nav": [3.1, 3.12, 3.09, None],
        "growth_rate": [0.5, 1.33, -1.97, None],
    })


def make_tx(tx_id, submitted_at, status=TransactionStatus.PENDING, strategy_id="s1"):
    return Transaction(
        id=tx_id, owner="alice", fund_code="110022", type=TransactionType.BUY,
        amount=1000, submitted_at=submitted_at, status=status,
        broker_order_id=f"o-{tx_id}", strategy_id=strategy_id,
    )


class TestLocalDBInit:
    """测试初始化"""

    def test_init_creates_db_file(self, temp_db):
        assert temp_db.db_path.exists()

    def test_init_creates_schema(self, temp_db):
        with temp_db._get_conn() as conn:
            names = {
                r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
            }
        assert {"fund_nav", "strategies", "positions", "transactions"} <= names


class TestNav:
    """净值读写"""

    def test_upsert_empty_df(self, temp_db):
        assert temp_db.upsert_nav(pd.DataFrame()) == 0

    def test_upsert_and_latest(self, temp_db, sample_nav_df):
        assert temp_db.upsert_nav(sample_nav_df) == 4
        latest = temp_db.latest_nav("110022")
        assert latest.date == date(2026, 3, 2)
        assert latest.nav == 1.49
        assert temp_db.latest_nav("000001").accumulated_nav is None
        assert temp_db.latest_nav("999999") is None

    def test_upsert_replaces(self, temp_db, sample_nav_df):
        temp_db.upsert_nav(sample_nav_df)
        temp_db.upsert_nav(pd.DataFrame({"fund_code": ["110022"], "date": ["2026-03-02"], "nav": [1.55]}))
        assert temp_db.latest_nav("110022").nav == 1.55
        assert len(temp_db.historical_nav("110022")) == 3

    def test_historical_range(self, temp_db, sample_nav_df):
        temp_db.upsert_nav(sample_nav_df)
        points = temp_db.historical_nav("110022", start=date(2026, 2, 27), end=date(2026, 3, 2))
        assert [p.date for p in points] == [date(2026, 2, 27), date(2026, 3, 2)]

    def test_nav_frame(self, temp_db, sample_nav_df):
        temp_db.upsert_nav(sample_nav_df)
        df = temp_db.get_nav_frame("110022", days=2)
        assert list(df["date"]) == ["2026-02-27", "2026-03-02"]
        points = nav_points_from_frame(df)
        assert points[-1].nav == 1.49


class TestStrategies:
    """策略读写"""

    def test_config_and_state_stored_separately(self, temp_db):
        config = GridTradingConfig(price_low=1.0, price_high=2.0, grid_count=5, amount_per_grid=1000)
        strategy = StrategyInstance(
            id="s1", owner="alice", name="网格", type=StrategyType.GRID_TRADING,
            fund_code="110022", config=config, state={"last_grid_level": 2},
            last_executed_at=datetime(2026, 3, 2, 10, 0),
        )
        temp_db.save_strategy(strategy)

        loaded = temp_db.get_strategy("s1")
        assert loaded.config == config
        assert loaded.state == {"last_grid_level": 2}
        assert loaded.last_executed_at == datetime(2026, 3, 2, 10, 0)

    def test_list_filters(self, temp_db):
        auto = parse_strategy_config("AUTO_INVEST", {"amount": 100, "frequency": "daily"})
        temp_db.save_strategy(StrategyInstance("a", "alice", "定投", StrategyType.AUTO_INVEST, "110022", auto))
        temp_db.save_strategy(StrategyInstance(
            "b", "alice", "停用", StrategyType.AUTO_INVEST, "000001", auto, enabled=False,
        ))
        assert [s.id for s in temp_db.list_strategies()] == ["a"]
        assert [s.id for s in temp_db.list_strategies(enabled_only=False)] == ["a", "b"]
        assert temp_db.list_strategies(strategy_type=StrategyType.GRID_TRADING) == []


class TestPositions:
    """持仓读写"""

    def test_save_and_get(self, temp_db):
        position = Position(owner="alice", fund_code="110022", shares=1000, cost=1500, avg_price=1.5)
        temp_db.save_position(position)
        position.shares = 500
        temp_db.save_position(position)

        loaded = temp_db.get_position("alice", "110022")
        assert loaded.shares == 500
        assert len(temp_db.list_positions("alice")) == 1
        assert temp_db.get_position("bob", "110022") is None


class TestTransactions:
    """交易记录"""

    def test_pending_before_cutoff(self, temp_db):
        temp_db.save_transaction(make_tx("t1", datetime(2026, 3, 2, 10, 0)))
        temp_db.save_transaction(make_tx("t2", datetime(2026, 3, 3, 9, 0)))
        temp_db.save_transaction(make_tx("t3", datetime(2026, 3, 1, 9, 0), status=TransactionStatus.FAILED))

        pending = temp_db.list_pending_transactions(submitted_before=datetime(2026, 3, 3))
        assert [t.id for t in pending] == ["t1"]
        assert len(temp_db.list_pending_transactions()) == 2

    def test_round_trip_fields(self, temp_db):
        tx = make_tx("t1", datetime(2026, 3, 2, 10, 0))
        tx.status = TransactionStatus.CONFIRMED
        tx.confirmed_shares = 800
        tx.confirmed_price = 1.25
        tx.confirmed_at = datetime(2026, 3, 3, 10, 0)
        temp_db.save_transaction(tx)
        assert temp_db.get_transaction("t1") == tx

    def test_has_active_transaction(self, temp_db):
        temp_db.save_transaction(make_tx("t1", datetime(2026, 3, 2, 10, 0)))
        temp_db.save_transaction(make_tx(
            "t2", datetime(2026, 3, 3, 10, 0), status=TransactionStatus.FAILED,
        ))
        assert temp_db.has_active_transaction("s1", date(2026, 3, 2)) is True
        assert temp_db.has_active_transaction("s1", date(2026, 3, 3)) is False
        assert temp_db.has_active_transaction("s2", date(2026, 3, 2)) is False


class TestDatabaseInfo:
    def test_info(self, temp_db, sample_nav_df):
        temp_db.upsert_nav(sample_nav_df)
        temp_db.save_transaction(make_tx("t1", datetime(2026, 3, 2, 10, 0)))
        info = temp_db.get_database_info()
        assert info["exists"] is True
        assert info["fund_count"] == 2
        assert info["nav_count"] == 4
        assert info["latest_date"] == "2026-03-02"
        assert info["pending_transactions"] == 1
