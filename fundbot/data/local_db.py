"""
本地 SQLite 存储
- 基金净值（fund_code + date 唯一）
- 策略（配置与运行时状态分两列 JSON 保存）
- 持仓、交易记录
"""

import json
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional

import pandas as pd

from fundbot.core.calendar import format_date, to_date
from fundbot.core.configs import config_to_dict, parse_strategy_config
from fundbot.core.models import (
    NavPoint,
    Position,
    StrategyInstance,
    StrategyType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from fundbot.core.ports import MarketDataPort, TradingStore

NAV_COLUMNS = ["fund_code", "date", "nav", "acc_nav", "growth_rate"]


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(sep=" ") if value else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class LocalDB(MarketDataPort, TradingStore):
    """本地 SQLite 数据库管理器"""

    def __init__(self, db_path: str = "data/fundbot.db"):
        """
        初始化数据库

        Args:
            db_path: 数据库文件路径
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """获取数据库连接"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self):
        """初始化数据库 Schema"""
        with self._get_conn() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS fund_nav (
                    fund_code   TEXT NOT NULL,
                    date        TEXT NOT NULL,
                    nav         REAL NOT NULL,
                    acc_nav     REAL,
                    growth_rate REAL,
                    PRIMARY KEY (fund_code, date)
                );

                CREATE TABLE IF NOT EXISTS strategies (
                    id               TEXT PRIMARY KEY,
                    owner            TEXT NOT NULL,
                    name             TEXT NOT NULL DEFAULT '',
                    type             TEXT NOT NULL,
                    fund_code        TEXT NOT NULL,
                    config           TEXT NOT NULL,
                    state            TEXT NOT NULL DEFAULT '{}',
                    enabled          INTEGER NOT NULL DEFAULT 1,
                    last_executed_at TEXT
                );

                CREATE TABLE IF NOT EXISTS positions (
                    owner           TEXT NOT NULL,
                    fund_code       TEXT NOT NULL,
                    shares          REAL NOT NULL DEFAULT 0,
                    cost            REAL NOT NULL DEFAULT 0,
                    avg_price       REAL NOT NULL DEFAULT 0,
                    market_value    REAL NOT NULL DEFAULT 0,
                    profit          REAL NOT NULL DEFAULT 0,
                    profit_rate     REAL NOT NULL DEFAULT 0,
                    max_profit_rate REAL NOT NULL DEFAULT 0,
                    updated_at      TEXT,
                    PRIMARY KEY (owner, fund_code)
                );

                CREATE TABLE IF NOT EXISTS transactions (
                    id               TEXT PRIMARY KEY,
                    owner            TEXT NOT NULL,
                    fund_code        TEXT NOT NULL,
                    type             TEXT NOT NULL,
                    amount           REAL NOT NULL,
                    shares           REAL,
                    status           TEXT NOT NULL,
                    broker_order_id  TEXT,
                    strategy_id      TEXT,
                    submitted_at     TEXT NOT NULL,
                    confirmed_at     TEXT,
                    confirmed_shares REAL,
                    confirmed_price  REAL,
                    failure_reason   TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_nav_date ON fund_nav(date);
                CREATE INDEX IF NOT EXISTS idx_tx_status ON transactions(status, submitted_at);
                CREATE INDEX IF NOT EXISTS idx_tx_strategy ON transactions(strategy_id, submitted_at);
            """)
            conn.commit()

    # ============================================================
    # 净值
    # ============================================================

    def upsert_nav(self, df: pd.DataFrame) -> int:
        """
        插入或更新净值数据

        Args:
            df: 需包含 fund_code, date, nav 列，acc_nav / growth_rate 可缺省

        Returns:
            插入/更新的行数
        """
        if df.empty:
            return 0

        df = df.copy()
        for col in NAV_COLUMNS:
            if col not in df.columns:
                df[col] = None
        df = df[NAV_COLUMNS].astype(object).where(pd.notna(df[NAV_COLUMNS]), None)

        with self._get_conn() as conn:
            conn.executemany(
                """
                INSERT OR REPLACE INTO fund_nav (fund_code, date, nav, acc_nav, growth_rate)
                VALUES (?, ?, ?, ?, ?)
                """,
                df.values.tolist(),
            )
            conn.commit()
        return len(df)

    def latest_nav(self, fund_code: str) -> Optional[NavPoint]:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM fund_nav WHERE fund_code = ? ORDER BY date DESC LIMIT 1",
                (fund_code,),
            ).fetchone()
        return self._row_to_nav(row) if row else None

    def historical_nav(self, fund_code: str, start: Optional[date] = None,
                       end: Optional[date] = None) -> List[NavPoint]:
        sql = "SELECT * FROM fund_nav WHERE fund_code = ?"
        params: list = [fund_code]
        if start:
            sql += " AND date >= ?"
            params.append(format_date(start))
        if end:
            sql += " AND date <= ?"
            params.append(format_date(end))
        sql += " ORDER BY date ASC"

        with self._get_conn() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_nav(r) for r in rows]

    def get_nav_frame(self, fund_code: str, days: int = 300) -> pd.DataFrame:
        """单只基金最近 days 条净值，按日期升序"""
        with self._get_conn() as conn:
            df = pd.read_sql(
                """
                SELECT * FROM fund_nav
                WHERE fund_code = ?
                ORDER BY date DESC
                LIMIT ?
                """,
                conn,
                params=(fund_code, days),
            )
        return df.sort_values("date").reset_index(drop=True)

    @staticmethod
    def _row_to_nav(row: sqlite3.Row) -> NavPoint:
        return NavPoint(
            fund_code=row["fund_code"],
            date=to_date(row["date"]),
            nav=row["nav"],
            accumulated_nav=row["acc_nav"],
            growth_rate=row["growth_rate"],
        )

    # ============================================================
    # 策略
    # ============================================================

    def save_strategy(self, strategy: StrategyInstance) -> None:
        with self._get_conn() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO strategies
                (id, owner, name, type, fund_code, config, state, enabled, last_executed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    strategy.id, strategy.owner, strategy.name, strategy.type.value,
                    strategy.fund_code,
                    json.dumps(config_to_dict(strategy.config), ensure_ascii=False),
                    json.dumps(strategy.state or {}, ensure_ascii=False),
                    int(strategy.enabled), _ts(strategy.last_executed_at),
                ),
            )
            conn.commit()

    def get_strategy(self, strategy_id: str) -> Optional[StrategyInstance]:
        with self._get_conn() as conn:
            row = conn.execute("SELECT * FROM strategies WHERE id = ?", (strategy_id,)).fetchone()
        return self._row_to_strategy(row) if row else None

    def list_strategies(self, strategy_type: Optional[StrategyType] = None,
                        enabled_only: bool = True) -> List[StrategyInstance]:
        sql = "SELECT * FROM strategies WHERE 1 = 1"
        params: list = []
        if strategy_type is not None:
            sql += " AND type = ?"
            params.append(StrategyType(strategy_type).value)
        if enabled_only:
            sql += " AND enabled = 1"
        sql += " ORDER BY id"

        with self._get_conn() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_strategy(r) for r in rows]

    @staticmethod
    def _row_to_strategy(row: sqlite3.Row) -> StrategyInstance:
        strategy_type = StrategyType(row["type"])
        return StrategyInstance(
            id=row["id"],
            owner=row["owner"],
            name=row["name"],
            type=strategy_type,
            fund_code=row["fund_code"],
            config=parse_strategy_config(strategy_type, json.loads(row["config"])),
            state=json.loads(row["state"] or "{}"),
            enabled=bool(row["enabled"]),
            last_executed_at=_parse_ts(row["last_executed_at"]),
        )

    # ============================================================
    # 持仓
    # ============================================================

    def get_position(self, owner: str, fund_code: str) -> Optional[Position]:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM positions WHERE owner = ? AND fund_code = ?",
                (owner, fund_code),
            ).fetchone()
        return self._row_to_position(row) if row else None

    def save_position(self, position: Position) -> None:
        with self._get_conn() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO positions
                (owner, fund_code, shares, cost, avg_price, market_value,
                 profit, profit_rate, max_profit_rate, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    position.owner, position.fund_code, position.shares, position.cost,
                    position.avg_price, position.market_value, position.profit,
                    position.profit_rate, position.max_profit_rate, _ts(position.updated_at),
                ),
            )
            conn.commit()

    def list_positions(self, owner: Optional[str] = None) -> List[Position]:
        sql = "SELECT * FROM positions"
        params: list = []
        if owner is not None:
            sql += " WHERE owner = ?"
            params.append(owner)
        sql += " ORDER BY owner, fund_code"
        with self._get_conn() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_position(r) for r in rows]

    @staticmethod
    def _row_to_position(row: sqlite3.Row) -> Position:
        return Position(
            owner=row["owner"],
            fund_code=row["fund_code"],
            shares=row["shares"],
            cost=row["cost"],
            avg_price=row["avg_price"],
            market_value=row["market_value"],
            profit=row["profit"],
            profit_rate=row["profit_rate"],
            max_profit_rate=row["max_profit_rate"],
            updated_at=_parse_ts(row["updated_at"]),
        )

    # ============================================================
    # 交易记录
    # ============================================================

    def save_transaction(self, transaction: Transaction) -> None:
        t = transaction
        with self._get_conn() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO transactions
                (id, owner, fund_code, type, amount, shares, status, broker_order_id,
                 strategy_id, submitted_at, confirmed_at, confirmed_shares,
                 confirmed_price, failure_reason)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    t.id, t.owner, t.fund_code, t.type.value, t.amount, t.shares,
                    t.status.value, t.broker_order_id, t.strategy_id,
                    _ts(t.submitted_at), _ts(t.confirmed_at), t.confirmed_shares,
                    t.confirmed_price, t.failure_reason,
                ),
            )
            conn.commit()

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        with self._get_conn() as conn:
            row = conn.execute("SELECT * FROM transactions WHERE id = ?", (transaction_id,)).fetchone()
        return self._row_to_transaction(row) if row else None

    def list_transactions(self, strategy_id: Optional[str] = None) -> List[Transaction]:
        sql = "SELECT * FROM transactions"
        params: list = []
        if strategy_id is not None:
            sql += " WHERE strategy_id = ?"
            params.append(strategy_id)
        sql += " ORDER BY submitted_at, id"
        with self._get_conn() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_transaction(r) for r in rows]

    def list_pending_transactions(self, submitted_before: Optional[datetime] = None) -> List[Transaction]:
        sql = "SELECT * FROM transactions WHERE status = ?"
        params: list = [TransactionStatus.PENDING.value]
        if submitted_before is not None:
            sql += " AND submitted_at < ?"
            params.append(_ts(submitted_before))
        sql += " ORDER BY submitted_at, id"
        with self._get_conn() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_transaction(r) for r in rows]

    def has_active_transaction(self, strategy_id: str, day: date) -> bool:
        with self._get_conn() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) FROM transactions
                WHERE strategy_id = ? AND substr(submitted_at, 1, 10) = ? AND status IN (?, ?)
                """,
                (
                    strategy_id, format_date(day),
                    TransactionStatus.PENDING.value, TransactionStatus.CONFIRMED.value,
                ),
            ).fetchone()
        return row[0] > 0

    @staticmethod
    def _row_to_transaction(row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=row["id"],
            owner=row["owner"],
            fund_code=row["fund_code"],
            type=TransactionType(row["type"]),
            amount=row["amount"],
            shares=row["shares"],
            status=TransactionStatus(row["status"]),
            broker_order_id=row["broker_order_id"],
            strategy_id=row["strategy_id"],
            submitted_at=_parse_ts(row["submitted_at"]),
            confirmed_at=_parse_ts(row["confirmed_at"]),
            confirmed_shares=row["confirmed_shares"],
            confirmed_price=row["confirmed_price"],
            failure_reason=row["failure_reason"],
        )

    # ============================================================
    # 统计
    # ============================================================

    def get_database_info(self) -> dict:
        """获取数据库信息"""
        if not self.db_path.exists():
            return {"exists": False, "path": str(self.db_path)}

        with self._get_conn() as conn:
            fund_count = conn.execute("SELECT COUNT(DISTINCT fund_code) FROM fund_nav").fetchone()[0]
            nav_count = conn.execute("SELECT COUNT(*) FROM fund_nav").fetchone()[0]
            latest = conn.execute("SELECT MAX(date) FROM fund_nav").fetchone()[0]
            strategy_count = conn.execute("SELECT COUNT(*) FROM strategies").fetchone()[0]
            pending_count = conn.execute(
                "SELECT COUNT(*) FROM transactions WHERE status = ?",
                (TransactionStatus.PENDING.value,),
            ).fetchone()[0]

        return {
            "exists": True,
            "path": str(self.db_path),
            "size_mb": round(self.db_path.stat().st_size / 1024 / 1024, 2),
            "fund_count": fund_count,
            "nav_count": nav_count,
            "latest_date": latest,
            "strategy_count": strategy_count,
            "pending_transactions": pending_count,
        }
