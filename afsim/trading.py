from __future__ import annotations
from dataclasses import dataclass, field
from typing import List

from .config import DEFAULT_DAILY_PROFIT_RATE, TRADES_PER_DAY, SystemConfig
from .core import LPPoolState, StakingOrder


@dataclass(frozen=True)
class TradeResult:
    trading_fund_used: float
    gross_profit: float
    trading_fee: float
    net_profit: float
    user_profit: float
    platform_profit: float
    broker_profit: float
    af_consumed_for_fee: float
    lp_usdc: float
    lp_af: float
    buyback_amount: float
    forex_reserve: float


@dataclass
class TradeBatch:
    day: int = 0
    trades: List[TradeResult] = field(default_factory=list)
    total_user_profit: float = 0.0
    total_platform_profit: float = 0.0
    total_broker_profit: float = 0.0
    total_trading_fee: float = 0.0
    total_af_consumed: float = 0.0
    total_lp_usdc: float = 0.0
    total_lp_af: float = 0.0
    total_buyback: float = 0.0
    total_forex_reserve: float = 0.0

    def add(self, r: TradeResult) -> None:
        self.trades.append(r)
        self.total_user_profit += r.user_profit
        self.total_platform_profit += r.platform_profit
        self.total_broker_profit += r.broker_profit
        self.total_trading_fee += r.trading_fee
        self.total_af_consumed += r.af_consumed_for_fee
        self.total_lp_usdc += r.lp_usdc
        self.total_lp_af += r.lp_af
        self.total_buyback += r.buyback_amount
        self.total_forex_reserve += r.forex_reserve


def calculate_trade(
    trading_fund: float,
    profit_rate: float,
    trading_fee_rate: float,
    profit_share_ratio: float,
    config: SystemConfig,
    af_price: float,
) -> TradeResult:
    """
    Profit, fee and fund-flow breakdown for one trade.

    The fund-flow shares apply to the whole trading fund slice, not to the
    profit. They are independent ratios; whatever they leave is unallocated.
    """
    gross_profit = trading_fund * profit_rate
    trading_fee = gross_profit * trading_fee_rate
    net_profit = gross_profit - trading_fee

    user_profit = net_profit * profit_share_ratio
    remaining = net_profit - user_profit
    dist = config.profit_distribution
    platform_profit = remaining * dist.platform_ratio
    broker_profit = remaining * dist.broker_ratio

    af_consumed = trading_fee / af_price if af_price > 0 else 0.0

    flow = config.trade_fund_flow
    lp_af = (trading_fund * flow.lp_af_ratio) / af_price if af_price > 0 else 0.0
    return TradeResult(
        trading_fund_used=trading_fund,
        gross_profit=gross_profit,
        trading_fee=trading_fee,
        net_profit=net_profit,
        user_profit=user_profit,
        platform_profit=platform_profit,
        broker_profit=broker_profit,
        af_consumed_for_fee=af_consumed,
        lp_usdc=trading_fund * flow.lp_usdc_ratio,
        lp_af=lp_af,
        buyback_amount=trading_fund * flow.buyback_ratio,
        forex_reserve=trading_fund * flow.forex_reserve_ratio,
    )


def simulate_daily_batch(
    order: StakingOrder,
    config: SystemConfig,
    pool: LPPoolState,
    daily_profit_rate: float = DEFAULT_DAILY_PROFIT_RATE,
    trades_per_day: int = TRADES_PER_DAY,
) -> TradeBatch:
    """Split the order's trading fund into equal trades and sum the results."""
    batch = TradeBatch(day=order.current_day)
    tier_cfg = config.tier_config(order.tier)
    if tier_cfg is None or trades_per_day <= 0:
        return batch

    fund_per_trade = order.trading_fund / trades_per_day
    rate_per_trade = daily_profit_rate / trades_per_day
    for _ in range(trades_per_day):
        batch.add(calculate_trade(
            fund_per_trade,
            rate_per_trade,
            tier_cfg.trading_fee_rate,
            tier_cfg.profit_share_ratio,
            config,
            pool.af_price,
        ))
    return batch
