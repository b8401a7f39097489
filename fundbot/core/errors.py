"""异常定义"""

from typing import List, Optional


class FundbotError(Exception):
    """所有业务异常的基类"""


class NoHistoricalData(FundbotError):
    """回测输入的净值序列为空"""

    def __init__(self, fund_code: Optional[str] = None):
        self.fund_code = fund_code
        target = f" for fund {fund_code}" if fund_code else ""
        super().__init__(f"No historical data available for backtest{target}")


class PositionNotFound(FundbotError):
    """卖出确认时找不到对应持仓"""

    def __init__(self, owner: str, fund_code: str):
        self.owner = owner
        self.fund_code = fund_code
        super().__init__(f"Position not found for owner {owner} fund {fund_code}")


class BrokerTransportError(FundbotError):
    """交易通道调用失败（网络、会话、HTTP 状态）"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class InvalidConfig(FundbotError, ValueError):
    """策略配置不合法"""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        if self.errors:
            message = f"{message}: {'; '.join(self.errors)}"
        super().__init__(message)
