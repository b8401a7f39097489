"""
日期工具

配置中的星期使用 1=周一 .. 7=周日，Python 的 date.weekday() 使用 0=周一 .. 6=周日，
两者之间只通过 config_weekday_to_python 转换。
"""

from datetime import date, datetime
from typing import Optional, Union

# 交易截止时间 15:00（含）
TRADE_CUTOFF_HOUR = 15


def config_weekday_to_python(day_of_week: int) -> int:
    """配置星期（1=周一..7=周日）转为 date.weekday() 编号（0=周一..6=周日）"""
    return (day_of_week - 1) % 7


def is_workday(d: Union[date, datetime]) -> bool:
    """周一至周五"""
    return d.weekday() < 5


def is_trade_time(now: datetime) -> bool:
    """工作日 15:00 前（含 15:00 整）可提交交易"""
    if not is_workday(now):
        return False
    if now.hour < TRADE_CUTOFF_HOUR:
        return True
    return now.hour == TRADE_CUTOFF_HOUR and now.minute == 0


def to_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """把 "YYYY-MM-DD" / datetime / date 统一为 date"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value)[:10], "%Y-%m-%d").date()


def format_date(d: Union[date, datetime]) -> str:
    return d.strftime("%Y-%m-%d")


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)
