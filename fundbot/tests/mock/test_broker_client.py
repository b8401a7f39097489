"""
Layer 2 Mock 测试 - BrokerClient
测试下单、查询与错误转换
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from fundbot.broker.client import BrokerClient
from fundbot.core.errors import BrokerTransportError
from fundbot.core.models import TransactionStatus


def make_response(status_code=200, payload=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    resp.text = text
    return resp


@pytest.fixture
def client():
    return BrokerClient(base_url="http://localhost:8788/", token="test-token", timeout=5)


class TestBrokerOrders:
    """下单"""

    @patch("fundbot.broker.client.requests.post")
    def test_buy(self, mock_post, client):
        mock_post.return_value = make_response(payload={"order_id": "A001"})
        order = client.buy("110022", 500)

        assert order.order_id == "A001"
        args, kwargs = mock_post.call_args
        assert args[0] == "http://localhost:8788/api/orders/buy"
        assert kwargs["json"] == {"fund_code": "110022", "amount": 500}
        assert kwargs["headers"]["Authorization"] == "Bearer test-token"
        assert kwargs["timeout"] == 5

    @patch("fundbot.broker.client.requests.post")
    def test_sell(self, mock_post, client):
        mock_post.return_value = make_response(payload={"order_id": 42})
        order = client.sell("110022", 123.45)
        assert order.order_id == "42"
        assert mock_post.call_args.kwargs["json"] == {"fund_code": "110022", "shares": 123.45}

    @patch("fundbot.broker.client.requests.post")
    def test_missing_order_id(self, mock_post, client):
        mock_post.return_value = make_response(payload={})
        with pytest.raises(BrokerTransportError):
            client.buy("110022", 500)


class TestBrokerErrors:
    """错误转换"""

    @patch("fundbot.broker.client.requests.post")
    def test_timeout(self, mock_post, client):
        mock_post.side_effect = requests.exceptions.Timeout()
        with pytest.raises(BrokerTransportError) as exc:
            client.buy("110022", 500)
        assert "Timeout" in str(exc.value)

    @patch("fundbot.broker.client.requests.post")
    def test_connection_error(self, mock_post, client):
        mock_post.side_effect = requests.exceptions.ConnectionError("Connection refused")
        with pytest.raises(BrokerTransportError) as exc:
            client.buy("110022", 500)
        assert "Connection error" in str(exc.value)

    @patch("fundbot.broker.client.requests.post")
    def test_unauthorized(self, mock_post, client):
        mock_post.return_value = make_response(status_code=403)
        with pytest.raises(BrokerTransportError) as exc:
            client.sell("110022", 10)
        assert exc.value.status_code == 403

    @patch("fundbot.broker.client.requests.post")
    def test_server_error(self, mock_post, client):
        mock_post.return_value = make_response(status_code=500, text="Internal Server Error")
        with pytest.raises(BrokerTransportError) as exc:
            client.buy("110022", 500)
        assert exc.value.status_code == 500
        assert "Internal Server Error" in str(exc.value)


class TestOrderStatus:
    """订单查询"""

    @patch("fundbot.broker.client.requests.get")
    def test_confirmed(self, mock_get, client):
        mock_get.return_value = make_response(
            payload={"status": "confirmed", "shares": 400.0, "price": 1.25},
        )
        status = client.order_status("A001")
        assert mock_get.call_args.args[0] == "http://localhost:8788/api/orders/A001"
        assert status.status == TransactionStatus.CONFIRMED
        assert status.shares == 400.0
        assert status.price == 1.25

    @patch("fundbot.broker.client.requests.get")
    def test_failed_with_reason(self, mock_get, client):
        mock_get.return_value = make_response(payload={"status": "FAILED", "reason": "余额不足"})
        status = client.order_status("A001")
        assert status.status == TransactionStatus.FAILED
        assert status.reason == "余额不足"

    @patch("fundbot.broker.client.requests.get")
    def test_unknown_status(self, mock_get, client):
        mock_get.return_value = make_response(payload={"status": "CANCELLED"})
        with pytest.raises(BrokerTransportError):
            client.order_status("A001")


class TestBrokerClientConfig:
    """配置"""

    @patch.dict("os.environ", {"BROKER_URL": "https://broker.example.com", "BROKER_TOKEN": "env-token"})
    def test_from_env(self):
        client = BrokerClient()
        assert client.base_url == "https://broker.example.com"
        assert client.token == "env-token"

    def test_trailing_slash_removed(self, client):
        assert client.base_url == "http://localhost:8788"

    @patch("fundbot.broker.client.requests.get")
    def test_health_check_failure(self, mock_get, client):
        mock_get.side_effect = requests.exceptions.ConnectionError()
        assert client.health_check() is False
