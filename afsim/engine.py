from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
import logging

from . import amm
from .broker import aggregate_rewards, layer_rewards
from .config import BUYBACK_BURN_SHARE, DEFAULT_DAILY_PROFIT_RATE, SystemConfig, TierConfig
from .core import (
    DEFAULT_LP_POOL,
    BrokerReward,
    DailyReleaseRecord,
    Event,
    EventLog,
    LPPoolState,
    SimulationStats,
    StakingOrder,
    TradeRecord,
)
from .factory import OrderFactory
from .forecast import StakingForecast, predict_staking_returns
from .metrics import MetricsStore
from .release import EmissionSplit, daily_emission, distribute_emission
from .trading import TradeBatch, simulate_daily_batch

logger = logging.getLogger(__name__)


@dataclass
class OrderDayResult:
    updated_order: StakingOrder
    emission: float
    split: EmissionSplit
    batch: TradeBatch
    rewards: List[BrokerReward]


@dataclass
class OrderStep:
    """What one order did to the shared pool."""
    order_id: str
    emission: float
    lp_usdc: float
    lp_af: float
    buyback_usdc: float
    buyback_af: float
    price_after: float


@dataclass
class DayOutcome:
    orders: List[StakingOrder]
    pool: LPPoolState
    total_af_released: float = 0.0
    af_to_market: float = 0.0
    af_burned: float = 0.0
    af_to_trading_fee: float = 0.0
    af_to_trading_fund: float = 0.0
    forex_reserve: float = 0.0
    total_buyback: float = 0.0
    user_profit: float = 0.0
    platform_profit: float = 0.0
    broker_profit: float = 0.0
    market_sell: Optional[amm.TradeQuote] = None
    steps: List[OrderStep] = field(default_factory=list)
    batches: Dict[str, TradeBatch] = field(default_factory=dict)
    rewards: List[BrokerReward] = field(default_factory=list)

    def to_record(self, day: int) -> DailyReleaseRecord:
        return DailyReleaseRecord(
            day=day,
            total_af_released=self.total_af_released,
            af_to_market=self.af_to_market,
            af_burned=self.af_burned,
            af_to_trading_fee=self.af_to_trading_fee,
            af_to_trading_fund=self.af_to_trading_fund,
            lp_pool_state=self.pool,
            forex_reserve=self.forex_reserve,
            total_buyback=self.total_buyback,
        )


def process_order_daily(
    order: StakingOrder,
    cfg: SystemConfig,
    pool: LPPoolState,
    daily_profit_rate: float = DEFAULT_DAILY_PROFIT_RATE,
) -> OrderDayResult:
    emission = daily_emission(order, cfg, pool.af_price)
    split = distribute_emission(emission, cfg)
    batch = simulate_daily_batch(order, cfg, pool, daily_profit_rate)
    rewards = layer_rewards(emission, cfg.broker_configs)

    next_day = order.current_day + 1
    updated = replace(
        order,
        af_released=order.af_released + emission,
        current_day=next_day,
        status="completed" if next_day >= order.staking_days else "active",
    )
    return OrderDayResult(updated_order=updated, emission=emission, split=split, batch=batch, rewards=rewards)


def process_all_orders_daily(
    orders: Sequence[StakingOrder],
    cfg: SystemConfig,
    pool: LPPoolState,
    daily_profit_rate: float = DEFAULT_DAILY_PROFIT_RATE,
) -> DayOutcome:
    """
    One simulated day over every order, in list order.

    Each active order's LP contribution and buyback hit the shared pool before
    the next order is priced, so results depend on order position. Withdrawn
    tokens headed to market are sold once, after all orders.
    """
    out = DayOutcome(orders=[], pool=pool)
    debug = logger.isEnabledFor(logging.DEBUG)
    all_rewards: List[BrokerReward] = []

    for order in orders:
        if not order.is_active:
            out.orders.append(order)
            continue

        res = process_order_daily(order, cfg, out.pool, daily_profit_rate)
        out.orders.append(res.updated_order)
        batch = res.batch

        out.total_af_released += res.emission
        out.af_to_market += res.split.to_market
        out.af_burned += res.split.to_burn
        out.af_to_trading_fund += res.split.to_trading_fund
        out.af_to_trading_fee += batch.total_af_consumed
        out.forex_reserve += batch.total_forex_reserve
        out.total_buyback += batch.total_buyback
        out.user_profit += batch.total_user_profit
        out.platform_profit += batch.total_platform_profit
        out.broker_profit += batch.total_broker_profit
        out.batches[order.order_id] = batch

        out.pool = amm.add_liquidity(batch.total_lp_usdc, batch.total_lp_af, out.pool)

        bought = 0.0
        if batch.total_buyback > 0:
            quote = amm.buy(batch.total_buyback, out.pool)
            out.pool = quote.new_pool
            bought = quote.amount_out
            out.af_burned += bought * BUYBACK_BURN_SHARE

        out.steps.append(OrderStep(
            order_id=order.order_id,
            emission=res.emission,
            lp_usdc=batch.total_lp_usdc,
            lp_af=batch.total_lp_af,
            buyback_usdc=batch.total_buyback,
            buyback_af=bought,
            price_after=out.pool.af_price,
        ))
        all_rewards.extend(res.rewards)

        if debug:
            logger.debug(
                "[ORDER] id=%s tier=%s day=%d emission=%.4f lp_usdc=%.2f lp_af=%.4f buyback=%.2f price=%.6f",
                order.order_id,
                order.tier,
                res.updated_order.current_day,
                res.emission,
                batch.total_lp_usdc,
                batch.total_lp_af,
                batch.total_buyback,
                out.pool.af_price,
            )

    if out.af_to_market > 0:
        out.market_sell = amm.sell(out.af_to_market, out.pool)
        out.pool = out.market_sell.new_pool

    out.rewards = aggregate_rewards(all_rewards)
    return out


class SimulationEngine:
    def __init__(
        self,
        cfg: Optional[SystemConfig] = None,
        pool: Optional[LPPoolState] = None,
        event_log_maxlen: Optional[int] = 10_000,
        trade_record_maxlen: Optional[int] = 50_000,
    ) -> None:
        self.cfg = cfg or SystemConfig()
        self.trade_record_maxlen = trade_record_maxlen
        self.day: int = 0
        self.pool: LPPoolState = pool or DEFAULT_LP_POOL
        self.orders: List[StakingOrder] = []
        self.trade_records: List[TradeRecord] = []
        self.broker_rewards: List[BrokerReward] = []
        self.daily_records: List[DailyReleaseRecord] = []
        self.stats = SimulationStats()

        self.log = EventLog(maxlen=event_log_maxlen)
        self.metrics = MetricsStore()
        self.factory = OrderFactory(self.cfg)

    # -----------------------------
    # Read-only views
    # -----------------------------
    @property
    def current_price(self) -> float:
        return amm.price(self.pool)

    @property
    def is_terminal(self) -> bool:
        return amm.is_terminal(self.pool)

    def active_orders(self) -> List[StakingOrder]:
        return [o for o in self.orders if o.is_active]

    def tier_config(self, tier: int) -> Optional[TierConfig]:
        return self.cfg.tier_config(tier)

    def predict_returns(self, principal: float, tier: int, days: int) -> StakingForecast:
        return predict_staking_returns(principal, tier, self.cfg, self.pool, days)

    # -----------------------------
    # Config
    # -----------------------------
    def _set_config(self, cfg: SystemConfig, reason: str) -> None:
        self.cfg = cfg
        self.factory.cfg = cfg
        self.log.add(Event(self.day, "CONFIG_UPDATED", meta={"reason": reason}))

    def replace_config(self, cfg: SystemConfig) -> None:
        self._set_config(cfg, "replace")

    def update_config(self, **changes) -> None:
        """Partial replacement; ConfigError propagates and leaves the old config in place."""
        self._set_config(replace(self.cfg, **changes), ",".join(sorted(changes)))

    def update_tier_config(self, tier: int, **changes) -> None:
        self._set_config(self.cfg.with_tier(tier, **changes), f"tier:{tier}")

    def update_broker_config(self, level: str, **changes) -> None:
        self._set_config(self.cfg.with_broker(level, **changes), f"broker:{level}")

    def reset_config(self) -> None:
        self._set_config(SystemConfig(), "reset")

    # -----------------------------
    # Orders
    # -----------------------------
    def create_order(self, tier: int, principal: float) -> Optional[StakingOrder]:
        order = self.factory.create_order(tier, principal)
        if order is None:
            return None
        self.orders.append(order)
        self.stats.total_staked += order.principal
        self.log.add(Event(self.day, "ORDER_CREATED", order_id=order.order_id, amount=order.principal,
                           meta={"tier": tier, "trading_fund": order.trading_fund}))
        return order

    def remove_order(self, order_id: str) -> bool:
        for idx, order in enumerate(self.orders):
            if order.order_id == order_id:
                del self.orders[idx]
                self.stats.total_staked -= order.principal
                self.log.add(Event(self.day, "ORDER_REMOVED", order_id=order_id, amount=order.principal))
                return True
        return False

    def clear_orders(self) -> None:
        self.orders = []
        self.stats.total_staked = 0.0
        self.log.add(Event(self.day, "ORDERS_CLEARED"))

    # -----------------------------
    # Manual pool trades
    # -----------------------------
    def _tradable(self, side: str, amount: float) -> bool:
        if amount <= 0:
            return False
        if self.is_terminal:
            logger.warning("%s %.4f rejected: pool has no AF reserve", side, amount)
            return False
        return True

    def buy(self, usdc_in: float) -> Optional[amm.TradeQuote]:
        if not self._tradable("buy", usdc_in):
            return None
        quote = amm.buy(usdc_in, self.pool)
        self.pool = quote.new_pool
        self.log.add(Event(self.day, "POOL_BUY", amount=usdc_in,
                           meta={"af_out": quote.amount_out, "price": self.pool.af_price}))
        return quote

    def sell(self, af_in: float) -> Optional[amm.TradeQuote]:
        if not self._tradable("sell", af_in):
            return None
        quote = amm.sell(af_in, self.pool)
        self.pool = quote.new_pool
        self.log.add(Event(self.day, "POOL_SELL", amount=af_in,
                           meta={"usdc_out": quote.amount_out, "price": self.pool.af_price}))
        return quote

    # -----------------------------
    # Timeline
    # -----------------------------
    def advance_day(self, daily_profit_rate: float = DEFAULT_DAILY_PROFIT_RATE) -> Optional[DailyReleaseRecord]:
        if not self.active_orders():
            self.log.add(Event(self.day, "DAY_SKIPPED", meta={"reason": "no_active_orders"}))
            return None
        if self.is_terminal:
            logger.warning("day %d: pool has no usable price, advancement halted", self.day)
            self.log.add(Event(self.day, "DAY_SKIPPED", meta={"reason": "terminal_pool"}))
            return None

        was_active = {o.order_id for o in self.orders if o.is_active}
        outcome = process_all_orders_daily(self.orders, self.cfg, self.pool, daily_profit_rate)

        self.day += 1
        record = outcome.to_record(self.day)
        self.orders = outcome.orders
        self.pool = outcome.pool
        self.daily_records.append(record)
        self.broker_rewards.extend(outcome.rewards)
        self._append_trade_records(outcome.batches)

        self.stats.total_af_released += record.total_af_released
        self.stats.total_af_burned += record.af_burned
        self.stats.total_forex_reserve += record.forex_reserve
        self.stats.total_user_profit += outcome.user_profit
        self.stats.total_platform_profit += outcome.platform_profit
        self.stats.total_broker_profit += outcome.broker_profit

        self._log_outcome(outcome, was_active)
        self.snapshot_metrics(record, outcome.rewards, len(self.active_orders()))
        logger.info(
            "day %d: released=%.4f burned=%.4f market=%.4f buyback=%.2f price=%.6f",
            self.day,
            record.total_af_released,
            record.af_burned,
            record.af_to_market,
            record.total_buyback,
            self.pool.af_price,
        )
        return record

    def advance_days(self, n_days: int, daily_profit_rate: float = DEFAULT_DAILY_PROFIT_RATE) -> List[DailyReleaseRecord]:
        records: List[DailyReleaseRecord] = []
        for _ in range(max(0, int(n_days))):
            record = self.advance_day(daily_profit_rate)
            if record is not None:
                records.append(record)
        return records

    def reset(self) -> None:
        """Back to day 0 with the default pool; the config is kept."""
        self.day = 0
        self.pool = DEFAULT_LP_POOL
        self.orders = []
        self.trade_records = []
        self.broker_rewards = []
        self.daily_records = []
        self.stats = SimulationStats()
        self.metrics.clear()
        self.factory = OrderFactory(self.cfg)
        self.log.add(Event(self.day, "SIMULATION_RESET"))

    def _append_trade_records(self, batches: Dict[str, TradeBatch]) -> None:
        timestamp = datetime.now(timezone.utc).isoformat()
        for order_id, batch in batches.items():
            for t in batch.trades:
                self.trade_records.append(TradeRecord(
                    trade_id=self.factory.new_trade_id(),
                    order_id=order_id,
                    day=batch.day,
                    trading_fund_used=t.trading_fund_used,
                    gross_profit=t.gross_profit,
                    trading_fee=t.trading_fee,
                    net_profit=t.net_profit,
                    user_profit=t.user_profit,
                    platform_profit=t.platform_profit,
                    broker_profit=t.broker_profit,
                    af_consumed=t.af_consumed_for_fee,
                    timestamp=timestamp,
                ))
        # oldest trades drop first; stats keep the full totals
        cap = self.trade_record_maxlen
        if cap is not None and len(self.trade_records) > cap:
            del self.trade_records[:len(self.trade_records) - cap]

    def _log_outcome(self, outcome: DayOutcome, was_active: set) -> None:
        for step in outcome.steps:
            self.log.add(Event(self.day, "LIQUIDITY_ADDED", order_id=step.order_id, amount=step.lp_usdc,
                               meta={"af": step.lp_af}))
            if step.buyback_usdc > 0:
                self.log.add(Event(self.day, "BUYBACK_EXECUTED", order_id=step.order_id, amount=step.buyback_usdc,
                                   meta={"af_bought": step.buyback_af,
                                         "af_burned": step.buyback_af * BUYBACK_BURN_SHARE}))
        for order in outcome.orders:
            if order.order_id in was_active and order.status == "completed":
                self.log.add(Event(self.day, "ORDER_COMPLETED", order_id=order.order_id, amount=order.af_released))
        if outcome.market_sell is not None:
            self.log.add(Event(self.day, "MARKET_SELL", amount=outcome.af_to_market,
                               meta={"usdc_out": outcome.market_sell.amount_out,
                                     "price_impact": outcome.market_sell.price_impact}))
        self.log.add(Event(self.day, "DAY_ADVANCED", amount=outcome.total_af_released,
                           meta={"orders": len(outcome.steps), "price": outcome.pool.af_price}))

    def rebuild_history(self) -> None:
        """
        Rebuild broker rewards and metrics from the daily records, e.g. after a
        load. Layer rewards are linear in emission, so each day's aggregated
        ladder equals the ladder of the day's total emission under the current
        broker table. Historical active-order counts are not stored.
        """
        self.metrics.clear()
        self.broker_rewards = []
        for record in self.daily_records:
            rewards = layer_rewards(record.total_af_released, self.cfg.broker_configs)
            self.broker_rewards.extend(rewards)
            self.snapshot_metrics(record, rewards, active_orders=None)

    def snapshot_metrics(
        self,
        record: DailyReleaseRecord,
        rewards: List[BrokerReward],
        active_orders: Optional[int] = None,
    ) -> None:
        pool = record.lp_pool_state
        self.metrics.add_daily({
            "day": record.day,
            "total_af_released": record.total_af_released,
            "af_to_market": record.af_to_market,
            "af_burned": record.af_burned,
            "af_to_trading_fee": record.af_to_trading_fee,
            "af_to_trading_fund": record.af_to_trading_fund,
            "forex_reserve": record.forex_reserve,
            "total_buyback": record.total_buyback,
            "usdc_balance": pool.usdc_balance,
            "af_balance": pool.af_balance,
            "af_price": pool.af_price,
            "k": pool.k,
            "active_orders": active_orders,
        })
        self.metrics.add_reward_rows([{"day": record.day, **r.to_dict()} for r in rewards])
