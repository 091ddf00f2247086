from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Literal, Optional
from collections import deque

OrderStatus = Literal["active", "completed", "cancelled"]


def format_amount(value: float, decimals: int = 2) -> str:
    return f"{float(value):,.{decimals}f}"


def format_currency(value: float) -> str:
    return f"${format_amount(value)}"


def format_percent(value: float) -> str:
    return f"{float(value) * 100:.2f}%"


# -----------------------------
# Events
# -----------------------------
@dataclass
class Event:
    day: int
    event_type: str
    order_id: Optional[str] = None
    amount: Optional[float] = None
    meta: dict = field(default_factory=dict)

class EventLog:
    def __init__(self, maxlen: Optional[int] = None) -> None:
        self.events = deque(maxlen=maxlen)

    def add(self, e: Event) -> None:
        self.events.append(e)

    def tail(self, n: int = 200) -> List[Event]:
        if n <= 0:
            return []
        if n >= len(self.events):
            return list(self.events)
        return list(self.events)[-n:]

    def of_type(self, event_type: str) -> List[Event]:
        return [e for e in self.events if e.event_type == event_type]


# -----------------------------
# Pool
# -----------------------------
@dataclass(frozen=True)
class LPPoolState:
    usdc_balance: float
    af_balance: float
    af_price: float
    k: float  # constant product at the last rebase

    def to_dict(self) -> dict:
        return {
            "usdc_balance": float(self.usdc_balance),
            "af_balance": float(self.af_balance),
            "af_price": float(self.af_price),
            "k": float(self.k),
        }


DEFAULT_LP_POOL = LPPoolState(
    usdc_balance=500_000.0,
    af_balance=100_000.0,
    af_price=5.0,
    k=500_000.0 * 100_000.0,
)


# -----------------------------
# Orders and records
# -----------------------------
@dataclass
class StakingOrder:
    order_id: str
    tier: int
    principal: float
    trading_fund: float
    staking_days: int
    profit_share_ratio: float
    start_date: str = ""
    af_released: float = 0.0
    af_pending: float = 0.0  # kept for stored state; the daily step does not accrue it
    current_day: int = 0
    status: OrderStatus = "active"

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_dict(self) -> dict:
        return asdict(self)

@dataclass(frozen=True)
class TradeRecord:
    trade_id: str
    order_id: str
    day: int
    trading_fund_used: float
    gross_profit: float
    trading_fee: float
    net_profit: float
    user_profit: float
    platform_profit: float
    broker_profit: float
    af_consumed: float
    timestamp: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

@dataclass
class BrokerReward:
    level: str
    layer: int
    af_released: float
    usdc_earned: float = 0.0
    promotion_reward: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)

@dataclass(frozen=True)
class DailyReleaseRecord:
    day: int
    total_af_released: float
    af_to_market: float
    af_burned: float
    af_to_trading_fee: float
    af_to_trading_fund: float
    lp_pool_state: LPPoolState
    forex_reserve: float
    total_buyback: float

    def to_dict(self) -> dict:
        return {
            "day": int(self.day),
            "total_af_released": float(self.total_af_released),
            "af_to_market": float(self.af_to_market),
            "af_burned": float(self.af_burned),
            "af_to_trading_fee": float(self.af_to_trading_fee),
            "af_to_trading_fund": float(self.af_to_trading_fund),
            "lp_pool_state": self.lp_pool_state.to_dict(),
            "forex_reserve": float(self.forex_reserve),
            "total_buyback": float(self.total_buyback),
        }


@dataclass
class SimulationStats:
    total_staked: float = 0.0
    total_af_released: float = 0.0
    total_af_burned: float = 0.0
    total_user_profit: float = 0.0
    total_platform_profit: float = 0.0
    total_broker_profit: float = 0.0
    total_forex_reserve: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {k: float(v) for k, v in asdict(self).items()}
