"""
定时任务

由外部调度器（cron / systemd timer）通过 fundbot.main 调用：
- sync_nav: 同步净值
- run_strategies: 执行到期策略（同一策略同一天只执行一次）
- confirm_pending_transactions: T+1 确认
- refresh_position_values: 按最新净值刷新持仓
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from fundbot.core.calendar import start_of_day
from fundbot.core.lifecycle import confirm_all
from fundbot.core.models import (
    StrategyType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from fundbot.core.ports import BrokerPort, MarketDataPort, NotificationPort, TradingStore
from fundbot.core.position import refresh_position

from .executor import StrategyExecutor

logger = logging.getLogger(__name__)


@dataclass
class JobReport:
    """任务执行统计"""
    job: str
    total: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    rejected: int = 0  # 交易通道确认失败的交易（终态 FAILED，不算任务错误）
    errors: Dict[str, str] = field(default_factory=dict)  # 条目 id -> 错误信息
    transactions: List[Transaction] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"{self.job}: total={self.total} succeeded={self.succeeded} "
            f"skipped={self.skipped} failed={self.failed} rejected={self.rejected}"
        )


class TradingJobs:
    """定时任务集合"""

    def __init__(
        self,
        store: TradingStore,
        broker: BrokerPort,
        notifier: Optional[NotificationPort] = None,
        market: Optional[MarketDataPort] = None,
    ):
        """
        Args:
            store: 持久化
            broker: 交易通道
            notifier: 通知，可为空
            market: 行情，默认使用 store（LocalDB 同时实现两个接口）
        """
        self.store = store
        self.broker = broker
        self.notifier = notifier
        self.market = market if market is not None else store
        self.executor = StrategyExecutor(self.market, broker, store, notifier)

    def _notify(self, title: str, content: str, level: str = "info"):
        if self.notifier is None:
            return
        try:
            self.notifier.send(title, content, level)
        except Exception as e:
            logger.warning(f"Notification '{title}' failed: {e}")

    # ============================================================
    # 净值同步
    # ============================================================

    def tracked_fund_codes(self) -> List[str]:
        """策略、再平衡目标、持仓涉及的全部基金代码"""
        codes = set()
        for strategy in self.store.list_strategies(enabled_only=False):
            codes.add(strategy.fund_code)
            codes.update(getattr(strategy.config, "fund_codes", []))
        for position in self.store.list_positions():
            codes.add(position.fund_code)
        return sorted(codes)

    def sync_nav(
        self,
        fetcher,
        fund_codes: Optional[Iterable[str]] = None,
        days: int = 30,
        now: Optional[datetime] = None,
        progress_callback: Optional[Callable[[int, int, str], None]] = None,
    ) -> JobReport:
        """
        拉取最近 days 天净值写入本地库

        Args:
            fetcher: EastMoneyFetcher（或任何有 get_nav_history 的对象）
            fund_codes: 指定基金，默认同步全部涉及的基金
            days: 回看天数
            now: 当前时间
            progress_callback: 进度回调函数 (current, total, code)
        """
        now = now or datetime.now()
        codes = list(fund_codes) if fund_codes is not None else self.tracked_fund_codes()
        start = (now - timedelta(days=days)).strftime("%Y-%m-%d")
        end = now.strftime("%Y-%m-%d")

        report = JobReport(job="sync-nav", total=len(codes))
        for idx, code in enumerate(codes, start=1):
            if progress_callback:
                progress_callback(idx, len(codes), code)
            try:
                df = fetcher.get_nav_history(code, start, end)
                if df.empty:
                    logger.warning(f"基金 {code} 无净值数据，跳过")
                    report.skipped += 1
                    continue
                self.store.upsert_nav(df)
                report.succeeded += 1
            except Exception as e:
                logger.error(f"同步 {code} 净值失败: {e}")
                report.failed += 1
                report.errors[code] = str(e)

        logger.info(report.summary())
        return report

    # ============================================================
    # 策略执行
    # ============================================================

    def _already_ran_today(self, strategy, now: datetime) -> bool:
        if strategy.last_executed_at and strategy.last_executed_at.date() == now.date():
            return True
        return self.store.has_active_transaction(strategy.id, now.date())

    def run_strategies(self, now: datetime, strategy_type: Optional[StrategyType] = None) -> JobReport:
        """
        执行所有到期的启用策略

        同一策略当天已执行过（last_executed_at 为今天，或已有今天提交的 PENDING/CONFIRMED 交易）时跳过。
        单个策略失败只记录，不影响其他策略。
        """
        strategies = self.store.list_strategies(strategy_type=strategy_type, enabled_only=True)
        report = JobReport(job="run", total=len(strategies))

        for strategy in strategies:
            try:
                if self._already_ran_today(strategy, now):
                    logger.info(f"Strategy {strategy.id} already executed today, skipping")
                    report.skipped += 1
                    continue
                if not self.executor.should_execute(strategy, now):
                    report.skipped += 1
                    continue
                transactions = self.executor.execute(strategy, now)
            except Exception as e:
                logger.error(f"Strategy {strategy.id} failed: {e}")
                report.failed += 1
                report.errors[strategy.id] = str(e)
                continue

            report.succeeded += 1
            report.transactions.extend(transactions)

        logger.info(report.summary())
        return report

    # ============================================================
    # 交易确认
    # ============================================================

    def _notify_confirmation(self, transaction: Transaction):
        action = "买入" if transaction.type == TransactionType.BUY else "卖出"
        if transaction.status == TransactionStatus.CONFIRMED:
            self._notify(
                "交易确认成功",
                f"基金 {transaction.fund_code} {action}确认\n"
                f"份额: {transaction.confirmed_shares:.4f}\n"
                f"净值: {transaction.confirmed_price:.4f}\n"
                f"金额: {transaction.confirmed_amount:.2f} 元",
                "info",
            )
        else:
            self._notify(
                "交易确认失败",
                f"基金 {transaction.fund_code} {action}失败\n原因: {transaction.failure_reason}",
                "error",
            )

    def confirm_pending_transactions(self, now: datetime) -> JobReport:
        """确认今天之前提交的 PENDING 交易（T+1）"""
        pending = self.store.list_pending_transactions(submitted_before=start_of_day(now))
        result = confirm_all(pending, self.broker, self.store, now, on_result=self._notify_confirmation)

        report = JobReport(
            job="confirm",
            total=len(pending),
            succeeded=len(result.confirmed),
            skipped=len(result.pending) + len(result.skipped),
            failed=len(result.errors),
            rejected=len(result.failed),
            errors=dict(result.errors),
            transactions=result.confirmed + result.failed,
        )
        logger.info(report.summary())
        return report

    # ============================================================
    # 持仓刷新
    # ============================================================

    def refresh_position_values(self, now: Optional[datetime] = None) -> JobReport:
        """按最新净值刷新全部持仓的市值、收益和最高收益率"""
        now = now or datetime.now()
        positions = self.store.list_positions()
        report = JobReport(job="refresh", total=len(positions))

        for position in positions:
            key = f"{position.owner}/{position.fund_code}"
            try:
                point = self.market.latest_nav(position.fund_code)
                if point is None:
                    logger.warning(f"基金 {position.fund_code} 无净值，跳过持仓 {key}")
                    report.skipped += 1
                    continue
                refresh_position(position, point.nav, now)
                self.store.save_position(position)
                report.succeeded += 1
            except Exception as e:
                logger.error(f"刷新持仓 {key} 失败: {e}")
                report.failed += 1
                report.errors[key] = str(e)

        logger.info(report.summary())
        return report
