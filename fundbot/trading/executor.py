"""
实盘策略执行

should_execute 判断当前是否需要下单，execute 负责下单、记录 PENDING 交易、
保存策略运行状态并发送通知。四种策略共用同一套信号计算（core.signals / core.rebalance），
这里只负责取数、下单和落库。
"""

import dataclasses
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from fundbot.core.calendar import is_trade_time, is_workday
from fundbot.core.configs import (
    AutoInvestConfig,
    GridState,
    GridTradingConfig,
    RebalanceConfig,
    TakeProfitStopLossConfig,
)
from fundbot.core.errors import InvalidConfig
from fundbot.core.models import (
    InvestFrequency,
    NavPoint,
    StrategyInstance,
    Transaction,
    TransactionType,
)
from fundbot.core.ports import BrokerPort, MarketDataPort, NotificationPort, TradingStore
from fundbot.core.position import refresh_position
from fundbot.core.rebalance import (
    compute_rebalance_orders,
    current_allocations,
    position_values,
)
from fundbot.core.signals import MarketState, SignalAction, evaluate_signal

logger = logging.getLogger(__name__)

SELL_REASON_LABELS = {
    "take_profit": "止盈",
    "trailing_stop": "回撤止盈",
    "stop_loss": "止损",
}

# 再平衡卖出时缺少净值，按 1 估算份额
FALLBACK_NAV = 1.0


@dataclass
class PlannedOrder:
    fund_code: str
    type: TransactionType
    amount: float
    shares: Optional[float] = None


@dataclass
class ExecutionPlan:
    """一次执行要提交的订单，以及执行后要保存的网格层级"""
    orders: List[PlannedOrder] = field(default_factory=list)
    grid_level: Optional[int] = None
    previous_level: Optional[int] = None
    state_changed: bool = False
    nav: Optional[float] = None
    reason: Optional[str] = None
    profit_rate: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return not self.orders and not self.state_changed


def rebalance_due(frequency: InvestFrequency, now: datetime) -> bool:
    """再平衡频率：每日为工作日，每周为周一，每月为 1 号"""
    if frequency == InvestFrequency.DAILY:
        return is_workday(now)
    if frequency == InvestFrequency.WEEKLY:
        return now.weekday() == 0
    if frequency == InvestFrequency.MONTHLY:
        return now.day == 1
    return False


class StrategyExecutor:
    """实盘策略执行器"""

    def __init__(
        self,
        market: MarketDataPort,
        broker: BrokerPort,
        store: TradingStore,
        notifier: Optional[NotificationPort] = None,
    ):
        self.market = market
        self.broker = broker
        self.store = store
        self.notifier = notifier

    # ============================================================
    # 判断
    # ============================================================

    def should_execute(self, strategy: StrategyInstance, now: datetime) -> bool:
        """
        判断策略此刻是否需要执行

        Args:
            strategy: 策略
            now: 当前时间

        Returns:
            未启用、非交易时间、未到期或信号为 HOLD 时返回 False
        """
        if not strategy.enabled or not is_trade_time(now):
            return False
        return not self._plan(strategy, now).is_empty

    def _plan(self, strategy: StrategyInstance, now: datetime) -> ExecutionPlan:
        config = strategy.config
        if isinstance(config, AutoInvestConfig):
            return self._plan_auto_invest(strategy, now)
        if isinstance(config, TakeProfitStopLossConfig):
            return self._plan_take_profit_stop_loss(strategy, now)
        if isinstance(config, GridTradingConfig):
            return self._plan_grid_trading(strategy, now)
        if isinstance(config, RebalanceConfig):
            return self._plan_rebalance(strategy, now)
        raise InvalidConfig(f"Unknown strategy config: {type(config).__name__}")

    def _plan_auto_invest(self, strategy: StrategyInstance, now: datetime) -> ExecutionPlan:
        point = self.market.latest_nav(strategy.fund_code)
        nav = point.nav if point else 0.0
        # 实盘不跟踪现金，余额由交易通道校验
        today = NavPoint(fund_code=strategy.fund_code, date=now.date(), nav=nav)
        signal = evaluate_signal(strategy.config, today, MarketState(cash=None))
        if signal.action != SignalAction.BUY:
            return ExecutionPlan()
        return ExecutionPlan(
            orders=[PlannedOrder(strategy.fund_code, TransactionType.BUY, signal.amount)],
            reason=signal.reason,
        )

    def _plan_take_profit_stop_loss(self, strategy: StrategyInstance, now: datetime) -> ExecutionPlan:
        position = self.store.get_position(strategy.owner, strategy.fund_code)
        if position is None or position.shares <= 0:
            return ExecutionPlan()
        point = self.market.latest_nav(strategy.fund_code)
        if point is None:
            return ExecutionPlan()

        # 用最新净值估算收益率，不回写持仓
        current = refresh_position(dataclasses.replace(position), point.nav)
        state = MarketState(
            shares=current.shares,
            profit_rate=current.profit_rate,
            max_profit_rate=current.max_profit_rate,
        )
        today = dataclasses.replace(point, date=now.date())
        signal = evaluate_signal(strategy.config, today, state)
        if signal.action != SignalAction.SELL:
            return ExecutionPlan()

        shares = position.shares * signal.ratio
        return ExecutionPlan(
            orders=[PlannedOrder(
                strategy.fund_code, TransactionType.SELL,
                amount=shares * position.avg_price, shares=shares,
            )],
            nav=point.nav,
            reason=signal.reason,
            profit_rate=current.profit_rate,
        )

    def _plan_grid_trading(self, strategy: StrategyInstance, now: datetime) -> ExecutionPlan:
        point = self.market.latest_nav(strategy.fund_code)
        if point is None:
            return ExecutionPlan()

        grid_state = GridState.from_dict(strategy.state)
        today = dataclasses.replace(point, date=now.date())
        signal = evaluate_signal(
            strategy.config, today, MarketState(last_grid_level=grid_state.last_grid_level),
        )
        plan = ExecutionPlan(
            grid_level=signal.grid_level,
            previous_level=grid_state.last_grid_level,
            state_changed=signal.grid_level != grid_state.last_grid_level,
            nav=point.nav,
            reason=signal.reason,
        )
        if signal.action == SignalAction.BUY:
            if signal.amount > 0:
                plan.orders.append(PlannedOrder(strategy.fund_code, TransactionType.BUY, signal.amount))
            else:
                logger.info(f"Grid {strategy.id}: amount_per_grid is 0, only moving level")
        elif signal.action == SignalAction.SELL:
            position = self.store.get_position(strategy.owner, strategy.fund_code)
            held = position.shares if position else 0.0
            shares = min(signal.shares, held)
            if shares > 0:
                plan.orders.append(PlannedOrder(
                    strategy.fund_code, TransactionType.SELL,
                    amount=strategy.config.amount_per_grid, shares=shares,
                ))
            else:
                logger.info(f"Grid {strategy.id}: level up but no shares held, only moving level")
        return plan

    def _plan_rebalance(self, strategy: StrategyInstance, now: datetime) -> ExecutionPlan:
        config: RebalanceConfig = strategy.config
        if not rebalance_due(config.frequency, now):
            return ExecutionPlan()

        codes = config.fund_codes
        shares = {}
        navs = {}
        for code in codes:
            position = self.store.get_position(strategy.owner, code)
            if position is not None:
                shares[code] = position.shares
            point = self.market.latest_nav(code)
            if point is not None:
                navs[code] = point.nav

        values = position_values(shares, navs, codes)
        total_value = sum(values.values())
        orders = compute_rebalance_orders(
            current_allocations(values),
            config.target_allocations,
            total_value,
            config.rebalance_threshold,
        )

        plan = ExecutionPlan()
        for order in orders:
            if order.amount <= 0:
                continue
            if order.action == TransactionType.BUY:
                plan.orders.append(PlannedOrder(order.fund_code, TransactionType.BUY, order.amount))
            else:
                nav = navs.get(order.fund_code) or FALLBACK_NAV
                plan.orders.append(PlannedOrder(
                    order.fund_code, TransactionType.SELL,
                    amount=order.amount, shares=order.amount / nav,
                ))
        return plan

    # ============================================================
    # 执行
    # ============================================================

    def execute(self, strategy: StrategyInstance, now: datetime) -> List[Transaction]:
        """
        执行策略

        Args:
            strategy: 策略
            now: 当前时间（写入 submitted_at / last_executed_at）

        Returns:
            本次提交的 PENDING 交易；未启用、非交易时间或无需操作时返回空列表

        Raises:
            BrokerTransportError: 下单失败，通知后原样抛出
        """
        if not strategy.enabled:
            logger.info(f"Strategy {strategy.id} disabled, skipping")
            return []
        if not is_trade_time(now):
            logger.info(f"Strategy {strategy.id}: not trade time ({now:%Y-%m-%d %H:%M}), skipping")
            return []

        plan = self._plan(strategy, now)
        if plan.is_empty:
            return []

        transactions: List[Transaction] = []
        try:
            for order in plan.orders:
                transactions.append(self._submit(strategy, order, now))
        except Exception as e:
            logger.error(f"Strategy {strategy.id} execution failed: {e}")
            self._notify(*self._failure_message(strategy, plan, e), level="error")
            raise

        if isinstance(strategy.config, GridTradingConfig):
            strategy.state = GridState(last_grid_level=plan.grid_level).to_dict()
        strategy.last_executed_at = now
        self.store.save_strategy(strategy)

        logger.info(f"Strategy {strategy.id} ({strategy.type.value}) submitted {len(transactions)} orders")
        if transactions:
            title, content, level = self._success_message(strategy, plan, transactions)
            self._notify(title, content, level=level)
        return transactions

    def _submit(self, strategy: StrategyInstance, order: PlannedOrder, now: datetime) -> Transaction:
        if order.type == TransactionType.BUY:
            broker_order = self.broker.buy(order.fund_code, order.amount)
        else:
            broker_order = self.broker.sell(order.fund_code, order.shares)

        transaction = Transaction(
            id=uuid.uuid4().hex,
            owner=strategy.owner,
            fund_code=order.fund_code,
            type=order.type,
            amount=order.amount,
            shares=order.shares,
            submitted_at=now,
            broker_order_id=broker_order.order_id,
            strategy_id=strategy.id,
        )
        self.store.save_transaction(transaction)
        return transaction

    def _notify(self, title: str, content: str, level: str = "info"):
        if self.notifier is None:
            return
        try:
            self.notifier.send(title, content, level)
        except Exception as e:
            logger.warning(f"Notification '{title}' failed: {e}")

    # ============================================================
    # 通知内容
    # ============================================================

    def _success_message(self, strategy: StrategyInstance, plan: ExecutionPlan,
                         transactions: List[Transaction]):
        config = strategy.config
        tx = transactions[0]
        if isinstance(config, AutoInvestConfig):
            return (
                "定投执行成功",
                f"基金 {tx.fund_code} 买入 {tx.amount:.2f} 元\n订单号: {tx.broker_order_id}",
                "info",
            )
        if isinstance(config, TakeProfitStopLossConfig):
            label = SELL_REASON_LABELS.get(plan.reason, "止盈止损")
            return (
                f"{label}触发",
                f"基金 {tx.fund_code} 卖出 {tx.shares:.4f} 份\n"
                f"当前收益率: {plan.profit_rate * 100:.2f}%\n订单号: {tx.broker_order_id}",
                "warning",
            )
        if isinstance(config, GridTradingConfig):
            action = "买入" if tx.type == TransactionType.BUY else "卖出"
            previous = "N/A" if plan.previous_level is None else plan.previous_level
            return (
                "网格交易执行",
                f"基金 {tx.fund_code} {action} {config.amount_per_grid:.2f} 元\n"
                f"当前净值: {plan.nav}\n网格层级: {previous} → {plan.grid_level}",
                "info",
            )
        summary = "\n".join(
            f"{t.fund_code}: {t.type.value} {t.amount:.2f}元" for t in transactions
        )
        return "再平衡执行完成", f"组合再平衡完成\n{summary}", "info"

    def _failure_message(self, strategy: StrategyInstance, plan: ExecutionPlan, error: Exception):
        config = strategy.config
        if isinstance(config, AutoInvestConfig):
            return "定投执行失败", f"基金 {strategy.fund_code} 买入失败\n错误: {error}"
        if isinstance(config, TakeProfitStopLossConfig):
            label = SELL_REASON_LABELS.get(plan.reason, "止盈止损")
            return f"{label}执行失败", f"基金 {strategy.fund_code} 卖出失败\n错误: {error}"
        if isinstance(config, GridTradingConfig):
            return "网格交易执行失败", f"基金 {strategy.fund_code} 交易失败\n错误: {error}"
        return "再平衡执行失败", f"组合再平衡失败\n错误: {error}"
