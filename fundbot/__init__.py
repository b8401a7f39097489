"""基金自动交易：策略信号、回测、订单确认与持仓对账"""

__version__ = "0.1.0"
