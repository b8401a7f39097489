"""回测报告：终端格式化 + CSV 导出"""

import csv

from .models import BacktestResult

REASON_LABELS = {
    "auto_invest": "定投",
    "take_profit": "止盈",
    "trailing_stop": "回撤止盈",
    "stop_loss": "止损",
    "grid_seed": "网格建仓",
    "grid_down": "网格买入",
    "grid_up": "网格卖出",
}


def _signed_pct(value: float) -> str:
    sign = "+" if value >= 0 else ""
    return f"{sign}{value * 100:.2f}%"


def print_report(result: BacktestResult):
    """打印终端回测报告"""
    print()
    print("=" * 50)
    print(f"  回测报告：{result.fund_code}")
    print(f"  回测区间：{result.start_date} ~ {result.end_date}")
    print(f"  初始资金：{result.initial_capital:,.0f}")
    print("=" * 50)

    print()
    print("【绩效概览】")
    print(f"  总收益率:      {_signed_pct(result.total_return)}")
    print(f"  年化收益率:    {_signed_pct(result.annual_return)}")
    print(f"  最大回撤:      -{result.max_drawdown * 100:.2f}%")
    print(f"  夏普比率:      {result.sharpe_ratio:.2f}")

    buys = [t for t in result.trades if t.type == "BUY"]
    sells = [t for t in result.trades if t.type == "SELL"]
    print()
    print("【交易统计】")
    print(f"  总交易笔数:    {result.trades_count}  (买入 {len(buys)} / 卖出 {len(sells)})")
    print(f"  累计买入金额:  {sum(t.value for t in buys):,.2f}")
    print(f"  累计卖出金额:  {sum(t.value for t in sells):,.2f}")

    if result.trades:
        print()
        recent = result.trades[-10:]
        print(f"【交易明细】(最近 {len(recent)} 笔)")
        print(f"  {'日期':>10}  {'方向':>4}  {'净值':>8}  {'份额':>12}  {'金额':>12}  原因")
        for t in recent:
            print(
                f"  {t.date:>10}  {t.type:>4}  {t.price:>8.4f}  "
                f"{(t.shares or 0):>12.2f}  {t.value:>12.2f}  {REASON_LABELS.get(t.reason, t.reason or '')}"
            )

    print()
    print(f"  期末价值: {result.final_value:,.2f}")
    print("=" * 50)
    print()


def export_csv(result: BacktestResult, path: str):
    """导出交易明细到 CSV"""
    with open(path, "w", newline="", encoding="utf-8-sig") as f:
        writer = csv.writer(f)
        writer.writerow(["日期", "方向", "净值", "份额", "金额", "原因"])
        for t in result.trades:
            writer.writerow([
                t.date, t.type, f"{t.price:.4f}",
                f"{(t.shares or 0):.4f}", f"{t.value:.2f}",
                REASON_LABELS.get(t.reason, t.reason or ""),
            ])
    print(f"交易明细已导出: {path} ({len(result.trades)} 笔)")
