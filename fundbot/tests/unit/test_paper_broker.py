"""模拟交易通道单元测试"""

from datetime import date
from unittest.mock import MagicMock

import pytest

from fundbot.broker.paper import PaperBroker
from fundbot.core.errors import BrokerTransportError
from fundbot.core.models import NavPoint, TransactionStatus


@pytest.fixture
def market():
    market = MagicMock()
    market.latest_nav.return_value = NavPoint(fund_code="110022", date=date(2026, 3, 2), nav=1.25)
    return market


class TestPaperBroker:

    def test_buy_confirmed_by_new_instance(self, market):
        """下单和确认分属两次任务，新建的通道也能确认"""
        order = PaperBroker(market).buy("110022", 1000)

        status = PaperBroker(market).order_status(order.order_id)

        assert status.status == TransactionStatus.CONFIRMED
        assert status.shares == pytest.approx(800)
        assert status.price == 1.25
        market.latest_nav.assert_called_once_with("110022")

    def test_sell_keeps_shares(self, market):
        order = PaperBroker(market).sell("110022", 333.3333)
        status = PaperBroker(market).order_status(order.order_id)
        assert status.shares == 333.3333
        assert status.price == 1.25

    def test_order_ids_unique(self, market):
        broker = PaperBroker(market)
        assert broker.buy("110022", 1000).order_id != broker.buy("110022", 1000).order_id

    def test_pending_without_nav(self, market):
        market.latest_nav.return_value = None
        order = PaperBroker(market).buy("110022", 1000)
        assert PaperBroker(market).order_status(order.order_id).status == TransactionStatus.PENDING

    @pytest.mark.parametrize("order_id", ["B001", "paper-a54ff76ef599", "paper:HOLD:110022:1.0:abc", "paper:BUY:110022:x:abc"])
    def test_unknown_order(self, market, order_id):
        with pytest.raises(BrokerTransportError) as exc:
            PaperBroker(market).order_status(order_id)
        assert exc.value.status_code == 404
