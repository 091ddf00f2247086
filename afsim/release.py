from __future__ import annotations
from dataclasses import dataclass

from .config import SystemConfig
from .core import StakingOrder


@dataclass(frozen=True)
class EmissionSplit:
    to_withdraw: float
    to_trading_fund: float
    to_market: float
    to_burn: float

    def to_dict(self) -> dict:
        return {
            "to_withdraw": float(self.to_withdraw),
            "to_trading_fund": float(self.to_trading_fund),
            "to_market": float(self.to_market),
            "to_burn": float(self.to_burn),
        }


ZERO_SPLIT = EmissionSplit(0.0, 0.0, 0.0, 0.0)


def daily_emission(order: StakingOrder, config: SystemConfig, current_price: float) -> float:
    """
    AF released to one order for one day.

    gold: a fixed USDC value per day converted to AF at the current price.
    coin: (principal / price) * rate. Same shape as gold mode, so quantity
    still moves inversely with price; kept as is pending a product decision.
    """
    tier_cfg = config.tier_config(order.tier)
    if tier_cfg is None or current_price <= 0:
        return 0.0

    if config.release_mode == "gold":
        daily_usdc_value = order.principal * tier_cfg.af_release_rate
        return daily_usdc_value / current_price
    return (order.principal / current_price) * tier_cfg.af_release_rate


def distribute_emission(total_emission: float, config: SystemConfig) -> EmissionSplit:
    choice = config.release_choice
    exit_cfg = config.exit_config

    to_withdraw = total_emission * (choice.withdraw_percentage / 100.0)
    to_trading_fund = total_emission * (choice.convert_percentage / 100.0)
    return EmissionSplit(
        to_withdraw=to_withdraw,
        to_trading_fund=to_trading_fund,
        to_market=to_withdraw * exit_cfg.withdraw_to_market_ratio,
        to_burn=to_withdraw * exit_cfg.withdraw_burn_ratio,
    )
