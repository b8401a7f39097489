"""
数据获取模块 - 天天基金（东方财富）公开接口
- 获取基金最新净值（fundgz JSONP）
- 获取基金历史净值（lsjz 分页 JSON）
"""

import json
import logging
import re
import time
from datetime import datetime, timedelta
from typing import List, Optional

import pandas as pd
import requests

from fundbot.core.calendar import to_date
from fundbot.core.models import NavPoint
from fundbot.core.ports import MarketDataPort

logger = logging.getLogger(__name__)

LATEST_NAV_URL = "https://fundgz.1234567.com.cn/js/{code}.js"
NAV_HISTORY_URL = "https://api.fund.eastmoney.com/f10/lsjz"
REFERER = "https://fundf10.eastmoney.com/"
USER_AGENT = "Mozilla/5.0 (compatible; fundbot)"

NAV_COLUMNS = ["fund_code", "date", "nav", "acc_nav", "growth_rate"]

_JSONP_PATTERN = re.compile(r"jsonpgz\((.*)\)", re.S)


def _to_float(value) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class EastMoneyFetcher(MarketDataPort):
    """天天基金净值获取器"""

    # 请求间隔（秒），避免被限速
    REQUEST_INTERVAL = 0.2
    # 最大重试次数
    MAX_RETRIES = 3
    # 重试等待时间（秒）
    RETRY_WAIT = 2
    # 历史净值每页条数
    PAGE_SIZE = 20
    TIMEOUT = 10

    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT, "Referer": REFERER})

    def _get(self, url: str, params: Optional[dict] = None) -> requests.Response:
        """带重试的 GET，最终失败时抛出最后一次的异常"""
        for attempt in range(self.MAX_RETRIES):
            try:
                resp = self.session.get(url, params=params, timeout=self.TIMEOUT)
                resp.raise_for_status()
                time.sleep(self.REQUEST_INTERVAL)
                return resp
            except requests.RequestException as e:
                logger.warning(f"请求 {url} 失败 (尝试 {attempt + 1}/{self.MAX_RETRIES}): {e}")
                if attempt < self.MAX_RETRIES - 1:
                    time.sleep(self.RETRY_WAIT)
                else:
                    raise

    def get_latest_nav(self, code: str) -> Optional[dict]:
        """
        获取基金最新净值

        Returns:
            {"fund_code", "date", "nav", "acc_nav", "growth_rate"}，失败时返回 None；
            growth_rate 取盘中估算涨幅（百分比）
        """
        try:
            resp = self._get(LATEST_NAV_URL.format(code=code), params={"rt": int(time.time() * 1000)})
        except requests.RequestException:
            logger.error(f"获取 {code} 最新净值最终失败")
            return None

        match = _JSONP_PATTERN.search(resp.text)
        if not match or not match.group(1).strip():
            logger.warning(f"基金 {code} 无最新净值")
            return None

        try:
            data = json.loads(match.group(1))
        except ValueError as e:
            logger.error(f"解析 {code} 最新净值失败: {e}")
            return None

        nav = _to_float(data.get("dwjz"))
        if nav is None or not data.get("jzrq"):
            logger.warning(f"基金 {code} 最新净值缺失")
            return None

        return {
            "fund_code": code,
            "date": data["jzrq"],
            "nav": nav,
            "acc_nav": _to_float(data.get("ljjz")),
            "growth_rate": _to_float(data.get("gszzl")),
        }

    def get_nav_history(
        self,
        code: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> pd.DataFrame:
        """
        获取基金历史净值

        Args:
            code: 基金代码（6 位）
            start_date: 开始日期 (格式: "2024-01-01")，默认一年前
            end_date: 结束日期，默认今天

        Returns:
            净值 DataFrame（fund_code, date, nav, acc_nav, growth_rate），按日期升序；
            失败时返回空 DataFrame
        """
        if not end_date:
            end_date = datetime.now().strftime("%Y-%m-%d")
        if not start_date:
            start_date = (datetime.now() - timedelta(days=365)).strftime("%Y-%m-%d")

        rows = []
        page = 1
        while True:
            params = {
                "fundCode": code,
                "pageIndex": page,
                "pageSize": self.PAGE_SIZE,
                "startDate": start_date,
                "endDate": end_date,
            }
            try:
                resp = self._get(NAV_HISTORY_URL, params=params)
                payload = resp.json()
            except (requests.RequestException, ValueError) as e:
                logger.error(f"获取 {code} 历史净值最终失败: {e}")
                return pd.DataFrame(columns=NAV_COLUMNS)

            items = ((payload or {}).get("Data") or {}).get("LSJZList") or []
            for item in items:
                nav = _to_float(item.get("DWJZ"))
                if nav is None or not item.get("FSRQ"):
                    continue
                rows.append({
                    "fund_code": code,
                    "date": item["FSRQ"],
                    "nav": nav,
                    "acc_nav": _to_float(item.get("LJJZ")),
                    "growth_rate": _to_float(item.get("JZZZL")),
                })

            total = int(payload.get("TotalCount") or 0)
            if not items or page * self.PAGE_SIZE >= total:
                break
            page += 1

        if not rows:
            logger.debug(f"基金 {code} 无历史净值")
            return pd.DataFrame(columns=NAV_COLUMNS)

        df = pd.DataFrame(rows, columns=NAV_COLUMNS)
        df = df.drop_duplicates(subset=["date"]).sort_values("date").reset_index(drop=True)
        return df

    # MarketDataPort

    def latest_nav(self, fund_code: str) -> Optional[NavPoint]:
        data = self.get_latest_nav(fund_code)
        if data is None:
            return None
        return NavPoint(
            fund_code=fund_code,
            date=to_date(data["date"]),
            nav=data["nav"],
            accumulated_nav=data["acc_nav"],
            growth_rate=data["growth_rate"],
        )

    def historical_nav(self, fund_code: str, start=None, end=None) -> List[NavPoint]:
        df = self.get_nav_history(
            fund_code,
            start.strftime("%Y-%m-%d") if start else None,
            end.strftime("%Y-%m-%d") if end else None,
        )
        return [
            NavPoint(
                fund_code=fund_code,
                date=to_date(row.date),
                nav=float(row.nav),
                accumulated_nav=None if pd.isna(row.acc_nav) else float(row.acc_nav),
                growth_rate=None if pd.isna(row.growth_rate) else float(row.growth_rate),
            )
            for row in df.itertuples(index=False)
        ]
