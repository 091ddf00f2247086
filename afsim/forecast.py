from __future__ import annotations
from dataclasses import dataclass
import numpy as np
import pandas as pd

from .config import DEFAULT_DAILY_PROFIT_RATE, SystemConfig
from .core import LPPoolState


@dataclass(frozen=True)
class StakingForecast:
    total_af_released: float
    total_user_profit: float
    total_trading_fund: float
    estimated_af_value: float
    roi: float  # percent of principal

    def to_dict(self) -> dict:
        return {
            "total_af_released": float(self.total_af_released),
            "total_user_profit": float(self.total_user_profit),
            "total_trading_fund": float(self.total_trading_fund),
            "estimated_af_value": float(self.estimated_af_value),
            "roi": float(self.roi),
        }


ZERO_FORECAST = StakingForecast(0.0, 0.0, 0.0, 0.0, 0.0)


def _daily_release_and_profit(principal: float, tier: int, config: SystemConfig, af_price: float):
    tier_cfg = config.tier_config(tier)
    if tier_cfg is None:
        return None
    trading_fund = principal * tier_cfg.trading_fund_multiplier
    if af_price <= 0:
        release = 0.0
    elif config.release_mode == "gold":
        release = (principal * tier_cfg.af_release_rate) / af_price
    else:
        release = (principal / af_price) * tier_cfg.af_release_rate
    profit = trading_fund * DEFAULT_DAILY_PROFIT_RATE * tier_cfg.profit_share_ratio
    return trading_fund, release, profit


def projection_frame(principal: float, tier: int, config: SystemConfig, pool: LPPoolState, days: int) -> pd.DataFrame:
    """Cumulative per-day projection at the pool's current price."""
    cols = ["day", "af_released", "user_profit", "af_value", "total_return", "roi"]
    res = _daily_release_and_profit(principal, tier, config, pool.af_price)
    n = max(0, int(days))
    if res is None or n == 0:
        return pd.DataFrame(columns=cols)
    _, release, profit = res

    day = np.arange(1, n + 1)
    af_released = np.cumsum(np.full(n, release))
    user_profit = np.cumsum(np.full(n, profit))
    af_value = af_released * pool.af_price
    total_return = af_value + user_profit
    roi = total_return / principal * 100.0 if principal > 0 else np.zeros(n)
    return pd.DataFrame({
        "day": day,
        "af_released": af_released,
        "user_profit": user_profit,
        "af_value": af_value,
        "total_return": total_return,
        "roi": roi,
    }, columns=cols)


def predict_staking_returns(
    principal: float,
    tier: int,
    config: SystemConfig,
    pool: LPPoolState,
    days: int,
) -> StakingForecast:
    """
    Projected returns for a new stake, assuming the price stays where it is
    and the default daily profit rate.
    """
    res = _daily_release_and_profit(principal, tier, config, pool.af_price)
    if res is None:
        return ZERO_FORECAST
    trading_fund, _, _ = res

    frame = projection_frame(principal, tier, config, pool, days)
    if frame.empty:
        return StakingForecast(0.0, 0.0, trading_fund, 0.0, 0.0)
    last = frame.iloc[-1]
    return StakingForecast(
        total_af_released=float(last["af_released"]),
        total_user_profit=float(last["user_profit"]),
        total_trading_fund=trading_fund,
        estimated_af_value=float(last["af_value"]),
        roi=float(last["roi"]),
    )
