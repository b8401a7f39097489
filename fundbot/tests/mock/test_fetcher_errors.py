"""
Layer 2 Mock 测试 - EastMoneyFetcher
测试响应解析、分页与失败重试逻辑
"""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
import requests

from fundbot.data.fetcher import EastMoneyFetcher


def make_response(text="", payload=None):
    resp = MagicMock()
    resp.text = text
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


def lsjz_payload(items, total):
    return {
        "Data": {
            "LSJZList": [
                {"FSRQ": d, "DWJZ": str(nav), "LJJZ": str(nav + 1), "JZZZL": "0.50"}
                for d, nav in items
            ]
        },
        "TotalCount": total,
    }


@pytest.fixture
def session():
    return MagicMock()


class TestGetLatestNav:
    """最新净值"""

    @patch("fundbot.data.fetcher.time.sleep")
    def test_parse_jsonp(self, mock_sleep, session):
        session.get.return_value = make_response(
            'jsonpgz({"fundcode":"110022","jzrq":"2026-03-02","dwjz":"1.4900",'
            '"ljjz":"3.0900","gsz":"1.5012","gszzl":"0.75","gztime":"2026-03-03 14:30"});'
        )
        fetcher = EastMoneyFetcher(session=session)
        data = fetcher.get_latest_nav("110022")

        assert data["date"] == "2026-03-02"
        assert data["nav"] == 1.49
        assert data["acc_nav"] == 3.09
        assert data["growth_rate"] == 0.75

    @patch("fundbot.data.fetcher.time.sleep")
    def test_empty_jsonp(self, mock_sleep, session):
        session.get.return_value = make_response("jsonpgz();")
        assert EastMoneyFetcher(session=session).get_latest_nav("999999") is None

    @patch("fundbot.data.fetcher.time.sleep")
    def test_latest_nav_point(self, mock_sleep, session):
        session.get.return_value = make_response(
            'jsonpgz({"fundcode":"110022","jzrq":"2026-03-02","dwjz":"1.4900","ljjz":"","gszzl":""});'
        )
        point = EastMoneyFetcher(session=session).latest_nav("110022")
        assert point.date == date(2026, 3, 2)
        assert point.accumulated_nav is None

    @patch("fundbot.data.fetcher.time.sleep")
    def test_retry_then_give_up(self, mock_sleep, session):
        session.get.side_effect = requests.exceptions.ConnectionError("refused")
        fetcher = EastMoneyFetcher(session=session)
        assert fetcher.get_latest_nav("110022") is None
        assert session.get.call_count == EastMoneyFetcher.MAX_RETRIES


class TestGetNavHistory:
    """历史净值"""

    @patch("fundbot.data.fetcher.time.sleep")
    def test_paging_and_sort(self, mock_sleep, session, monkeypatch):
        monkeypatch.setattr(EastMoneyFetcher, "PAGE_SIZE", 2)
        session.get.side_effect = [
            make_response(payload=lsjz_payload([("2026-03-02", 1.49), ("2026-02-27", 1.52)], 3)),
            make_response(payload=lsjz_payload([("2026-02-26", 1.50)], 3)),
        ]
        df = EastMoneyFetcher(session=session).get_nav_history("110022", "2026-02-01", "2026-03-02")

        assert list(df["date"]) == ["2026-02-26", "2026-02-27", "2026-03-02"]
        assert list(df.columns) == ["fund_code", "date", "nav", "acc_nav", "growth_rate"]
        assert session.get.call_count == 2

    @patch("fundbot.data.fetcher.time.sleep")
    def test_retry_success(self, mock_sleep, session):
        """第一次失败，第二次成功"""
        session.get.side_effect = [
            requests.exceptions.Timeout(),
            make_response(payload=lsjz_payload([("2026-03-02", 1.49)], 1)),
        ]
        df = EastMoneyFetcher(session=session).get_nav_history("110022", "2026-03-01", "2026-03-02")
        assert len(df) == 1
        mock_sleep.assert_any_call(EastMoneyFetcher.RETRY_WAIT)

    @patch("fundbot.data.fetcher.time.sleep")
    def test_final_failure_returns_empty(self, mock_sleep, session):
        session.get.side_effect = requests.exceptions.Timeout()
        df = EastMoneyFetcher(session=session).get_nav_history("110022", "2026-03-01", "2026-03-02")
        assert df.empty
        assert session.get.call_count == EastMoneyFetcher.MAX_RETRIES

    @patch("fundbot.data.fetcher.time.sleep")
    def test_no_data(self, mock_sleep, session):
        session.get.return_value = make_response(payload={"Data": {"LSJZList": []}, "TotalCount": 0})
        df = EastMoneyFetcher(session=session).get_nav_history("110022")
        assert df.empty

    @patch("fundbot.data.fetcher.time.sleep")
    def test_historical_nav_points(self, mock_sleep, session):
        """回测在线取数走 historical_nav"""
        session.get.return_value = make_response(
            payload=lsjz_payload([("2026-03-02", 1.49), ("2026-02-27", 1.47)], 2),
        )
        points = EastMoneyFetcher(session=session).historical_nav(
            "110022", date(2026, 2, 27), date(2026, 3, 2),
        )
        params = session.get.call_args.kwargs["params"]
        assert (params["startDate"], params["endDate"]) == ("2026-02-27", "2026-03-02")
        assert [p.date for p in points] == [date(2026, 2, 27), date(2026, 3, 2)]
        assert points[1].nav == 1.49
        assert points[1].accumulated_nav == pytest.approx(2.49)
        assert points[1].growth_rate == 0.5
