"""
订单生命周期与持仓对账

状态机：PENDING -> CONFIRMED（终态）或 PENDING -> FAILED（终态），没有其他转换。
交易通道仍返回 PENDING 的订单原样保留，下一轮轮询再查。
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from .errors import PositionNotFound
from .models import (
    OrderStatus,
    Position,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from .ports import BrokerPort, TradingStore
from .position import apply_buy, apply_sell

logger = logging.getLogger(__name__)

UNKNOWN_REASON = "未知"


@dataclass
class ConfirmationReport:
    """批量确认结果"""
    confirmed: List[Transaction] = field(default_factory=list)
    failed: List[Transaction] = field(default_factory=list)
    pending: List[Transaction] = field(default_factory=list)
    skipped: List[Transaction] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)  # transaction id -> 错误信息

    @property
    def total(self) -> int:
        return len(self.confirmed) + len(self.failed) + len(self.pending) + len(self.skipped) + len(self.errors)


def mark_failed(transaction: Transaction, reason: Optional[str], now: datetime) -> Transaction:
    """confirmed_at 记为处理时间；成交份额和净值保持为空"""
    transaction.status = TransactionStatus.FAILED
    transaction.confirmed_at = now
    transaction.failure_reason = reason or UNKNOWN_REASON
    return transaction


def mark_confirmed(transaction: Transaction, shares: float, price: float, now: datetime) -> Transaction:
    transaction.status = TransactionStatus.CONFIRMED
    transaction.confirmed_at = now
    transaction.confirmed_shares = shares
    transaction.confirmed_price = price
    return transaction


def reconcile_position(transaction: Transaction, store: TradingStore) -> Position:
    """把已确认的交易应用到持仓上（单次读-改-写）"""
    position = store.get_position(transaction.owner, transaction.fund_code)

    if transaction.type == TransactionType.BUY:
        if position is None:
            position = Position(owner=transaction.owner, fund_code=transaction.fund_code)
        apply_buy(position, transaction.confirmed_shares, transaction.confirmed_price)
    else:
        if position is None:
            raise PositionNotFound(transaction.owner, transaction.fund_code)
        apply_sell(position, transaction.confirmed_shares)

    store.save_position(position)
    return position


def confirm_pending(
    transaction: Transaction,
    broker: BrokerPort,
    store: TradingStore,
    now: datetime,
) -> Transaction:
    """
    查询一笔 PENDING 交易的确认结果并落库

    Args:
        transaction: 待确认交易
        broker: 交易通道
        store: 持久化
        now: 当前时间（写入 confirmed_at）

    Returns:
        更新后的交易；仍在处理中或已是终态时原样返回

    Raises:
        BrokerTransportError: 查询订单状态失败，原样抛出
        PositionNotFound: 卖出确认时没有持仓；此时交易已记为 CONFIRMED，需人工处理
    """
    if transaction.is_terminal:
        logger.info(f"Transaction {transaction.id} already {transaction.status.value}, skipping")
        return transaction

    if not transaction.broker_order_id:
        logger.warning(f"Transaction {transaction.id} has no broker_order_id, skipping")
        return transaction

    status: OrderStatus = broker.order_status(transaction.broker_order_id)

    if status.status == TransactionStatus.PENDING:
        return transaction

    if status.status == TransactionStatus.FAILED:
        mark_failed(transaction, status.reason, now)
        store.save_transaction(transaction)
        logger.info(f"Transaction {transaction.id} FAILED: {transaction.failure_reason}")
        return transaction

    if not status.shares or status.shares <= 0 or not status.price or status.price <= 0:
        mark_failed(transaction, "确认信息缺失：份额或净值无效", now)
        store.save_transaction(transaction)
        logger.warning(
            f"Transaction {transaction.id} confirmed without valid shares/price "
            f"(shares={status.shares}, price={status.price}), marked FAILED"
        )
        return transaction

    mark_confirmed(transaction, status.shares, status.price, now)
    store.save_transaction(transaction)
    logger.info(
        f"Transaction {transaction.id} CONFIRMED: {transaction.type.value} "
        f"{transaction.fund_code} {status.shares} @ {status.price}"
    )

    reconcile_position(transaction, store)
    return transaction


def confirm_all(
    transactions: Iterable[Transaction],
    broker: BrokerPort,
    store: TradingStore,
    now: datetime,
    on_result: Optional[Callable[[Transaction], None]] = None,
) -> ConfirmationReport:
    """
    批量确认，单笔失败不影响其余交易

    on_result 在每笔交易进入终态后调用（用于通知）。
    """
    report = ConfirmationReport()

    for transaction in transactions:
        if transaction.is_terminal or not transaction.broker_order_id:
            report.skipped.append(transaction)
            continue
        try:
            result = confirm_pending(transaction, broker, store, now)
        except Exception as e:
            logger.error(f"Failed to confirm transaction {transaction.id}: {e}")
            report.errors[transaction.id] = str(e)
            continue

        if result.status == TransactionStatus.CONFIRMED:
            report.confirmed.append(result)
        elif result.status == TransactionStatus.FAILED:
            report.failed.append(result)
        else:
            report.pending.append(result)
            continue

        if on_result is not None:
            on_result(result)

    return report
