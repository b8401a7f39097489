#!/usr/bin/env python3
"""
基金自动交易 - 定时任务入口

功能：
1. sync-nav: 同步策略/持仓涉及基金的最近净值到本地 SQLite
2. run: 执行到期策略（交易时间内）
3. confirm: 确认昨日及更早提交的交易，并更新持仓
4. refresh: 按最新净值刷新持仓市值与收益
5. all: 依次执行 sync-nav / confirm / refresh / run

用法：
    python -m fundbot.main --job sync-nav
    python -m fundbot.main --job run --paper
    python -m fundbot.main --job confirm --now "2026-03-03 10:00"
"""

import argparse
import logging
import sys
import time
from datetime import datetime

from tqdm import tqdm

from fundbot.broker import BrokerClient, PaperBroker
from fundbot.core.models import StrategyType
from fundbot.data.fetcher import EastMoneyFetcher
from fundbot.data.local_db import LocalDB
from fundbot.notify import NotifyService
from fundbot.trading.jobs import JobReport, TradingJobs

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

JOBS = ["sync-nav", "run", "confirm", "refresh", "all"]
# 需要交易通道的任务
BROKER_JOBS = ("confirm", "run", "all")


def parse_now(value: str) -> datetime:
    """--now 支持 "YYYY-MM-DD" 和 "YYYY-MM-DD HH:MM[:SS]" """
    for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise argparse.ArgumentTypeError(f"无效时间: {value}")


def run_sync_nav(jobs: TradingJobs, args, now: datetime):
    fetcher = EastMoneyFetcher()
    codes = args.fund or jobs.tracked_fund_codes()
    if not codes:
        logger.warning("没有需要同步的基金（无策略、无持仓，且未指定 --fund）")
        return jobs.sync_nav(fetcher, fund_codes=[], days=args.days, now=now)

    pbar = tqdm(total=len(codes), desc="同步净值")

    def progress_callback(current, total, code):
        pbar.set_postfix_str(code)
        pbar.update(1)

    try:
        return jobs.sync_nav(
            fetcher, fund_codes=codes, days=args.days, now=now,
            progress_callback=progress_callback,
        )
    finally:
        pbar.close()


def main():
    parser = argparse.ArgumentParser(description="基金自动交易定时任务")
    parser.add_argument("--job", choices=JOBS, required=True, help="要执行的任务")
    parser.add_argument("--db-path", type=str, default="data/fundbot.db", help="本地数据库路径")
    parser.add_argument("--now", type=parse_now, help="模拟当前时间 (YYYY-MM-DD[ HH:MM])")
    parser.add_argument("--paper", action="store_true", help="使用模拟交易通道，不真实下单")
    parser.add_argument("--fund", action="append", help="sync-nav 只同步指定基金，可重复")
    parser.add_argument("--days", type=int, default=30, help="sync-nav 回看天数（默认 30）")
    parser.add_argument(
        "--strategy-type", choices=[t.value for t in StrategyType],
        help="run 只执行指定类型的策略",
    )
    args = parser.parse_args()

    now = args.now or datetime.now()
    logger.info(f"开始运行 {args.job}，时间: {now:%Y-%m-%d %H:%M:%S}")
    start_time = time.time()

    db = LocalDB(args.db_path)
    info = db.get_database_info()
    logger.info(
        f"数据库: {info.get('fund_count', 0)} 只基金, "
        f"{info.get('strategy_count', 0)} 个策略, "
        f"{info.get('pending_transactions', 0)} 笔待确认交易, "
        f"最新净值日期: {info.get('latest_date') or 'N/A'}"
    )

    broker = PaperBroker(db) if args.paper else BrokerClient()
    if args.paper:
        logger.info("使用模拟交易通道")
    jobs = TradingJobs(db, broker, NotifyService(), market=db)

    broker_ok = True
    if args.job in BROKER_JOBS and not args.paper:
        broker_ok = broker.health_check()
        if not broker_ok:
            logger.error("交易通道不可用，跳过 confirm / run")

    reports = []
    if args.job in ("sync-nav", "all"):
        reports.append(run_sync_nav(jobs, args, now))
    if not broker_ok:
        reports.append(JobReport(job="broker", failed=1, errors={"broker": "health check failed"}))
    if args.job in ("confirm", "all") and broker_ok:
        reports.append(jobs.confirm_pending_transactions(now))
    if args.job in ("refresh", "all"):
        reports.append(jobs.refresh_position_values(now))
    if args.job in ("run", "all") and broker_ok:
        strategy_type = StrategyType(args.strategy_type) if args.strategy_type else None
        reports.append(jobs.run_strategies(now, strategy_type=strategy_type))

    duration = time.time() - start_time
    logger.info(f"{'='*60}")
    for report in reports:
        logger.info(report.summary())
        for key, error in report.errors.items():
            logger.info(f"  {key}: {error}")
    logger.info(f"完成，耗时 {duration:.1f} 秒")
    logger.info(f"{'='*60}")

    if any(r.failed for r in reports):
        sys.exit(1)


if __name__ == "__main__":
    main()
