"""
回测 CLI 入口

用法:
    python -m fundbot.backtest --fund 110022 --strategy AUTO_INVEST --config auto_invest.json
    python -m fundbot.backtest --fund 110022 --strategy AUTO_INVEST --config auto_invest.json \
        --strategy TAKE_PROFIT_STOP_LOSS --config tpsl.json --start 2024-01-01 --end 2025-12-31
    python -m fundbot.backtest --fund 110022 --strategy GRID_TRADING --config '{"price_low": 1.0, ...}' --csv trades.csv
    python -m fundbot.backtest --fund 110022 --strategy AUTO_INVEST --config auto_invest.json --online --start 2024-01-01
"""

import argparse
import json
import logging
import os
import sys
import time

from tqdm import tqdm

from fundbot.core.calendar import to_date
from fundbot.core.configs import parse_strategy_config
from fundbot.core.errors import InvalidConfig, NoHistoricalData
from fundbot.data.fetcher import EastMoneyFetcher
from fundbot.data.local_db import LocalDB
from fundbot.backtest.engine import BacktestEngine
from fundbot.backtest.report import print_report, export_csv

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def load_config_arg(value: str) -> dict:
    """--config 既可以是 JSON 文件路径，也可以是 JSON 字符串"""
    if os.path.exists(value):
        with open(value, encoding="utf-8") as f:
            return json.load(f)
    return json.loads(value)


def main():
    parser = argparse.ArgumentParser(description="基金策略回测")
    parser.add_argument("--fund", "-f", required=True, help="基金代码，如 110022")
    parser.add_argument(
        "--strategy", "-s", action="append", required=True,
        help="策略类型 AUTO_INVEST / TAKE_PROFIT_STOP_LOSS / GRID_TRADING，可重复",
    )
    parser.add_argument(
        "--config", "-c", action="append", required=True,
        help="策略配置（JSON 文件或 JSON 字符串），与 --strategy 一一对应",
    )
    parser.add_argument("--start", type=str, help="回测起始日期 (YYYY-MM-DD)")
    parser.add_argument("--end", type=str, help="回测结束日期 (YYYY-MM-DD)")
    parser.add_argument(
        "--capital", type=float, default=100_000,
        help="初始资金（默认 100000）",
    )
    parser.add_argument("--csv", type=str, help="导出交易明细到 CSV 文件")
    parser.add_argument(
        "--db-path", type=str, default="data/fundbot.db",
        help="本地数据库路径",
    )
    parser.add_argument(
        "--online", action="store_true",
        help="直接从天天基金拉取区间净值，不读本地数据库",
    )
    args = parser.parse_args()

    if len(args.strategy) != len(args.config):
        parser.error("--strategy 与 --config 数量必须一致")

    start_time = time.time()

    try:
        configs = [
            parse_strategy_config(s, load_config_arg(c))
            for s, c in zip(args.strategy, args.config)
        ]
        engine = BacktestEngine(configs, initial_capital=args.capital)
    except (InvalidConfig, ValueError) as e:
        logger.error(f"策略配置无效: {e}")
        sys.exit(2)

    if args.online:
        logger.info("从天天基金拉取历史净值")
        market = EastMoneyFetcher()
    else:
        logger.info(f"加载本地数据库: {args.db_path}")
        market = LocalDB(args.db_path)
        info = market.get_database_info()
        logger.info(
            f"数据库: {info.get('fund_count', 0)} 只基金, "
            f"{info.get('nav_count', 0)} 条净值, "
            f"最新日期: {info.get('latest_date') or 'N/A'}"
        )

    pbar = None

    def progress_callback(current, total):
        nonlocal pbar
        if pbar is None:
            pbar = tqdm(total=total, desc="回放净值")
        pbar.update(1)

    try:
        result = engine.run_for_fund(
            market, args.fund,
            start_date=to_date(args.start),
            end_date=to_date(args.end),
            progress_callback=progress_callback,
        )
    except NoHistoricalData as e:
        logger.error(f"{e}（先运行 python -m fundbot.main --job sync-nav 同步净值）")
        sys.exit(1)
    finally:
        if pbar:
            pbar.close()

    duration = time.time() - start_time
    logger.info(f"回测完成，耗时 {duration:.1f} 秒")

    print_report(result)

    if args.csv:
        export_csv(result, args.csv)


if __name__ == "__main__":
    main()
