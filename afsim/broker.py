from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Sequence

from .config import MAX_BROKER_LAYERS, BrokerConfig
from .core import BrokerReward


def layer_config(layer: int, broker_configs: Sequence[BrokerConfig]) -> Optional[BrokerConfig]:
    """First config whose [layer_start, layer_end] contains the layer."""
    for cfg in broker_configs:
        if cfg.contains(layer):
            return cfg
    return None


def layer_rewards(total_emission: float, broker_configs: Sequence[BrokerConfig]) -> List[BrokerReward]:
    """
    Map one order's daily emission onto the 20-layer ladder.

    Layers with no matching level produce no line. USDC and promotion amounts
    are left at zero; they come from the promotion calculation.
    """
    rewards: List[BrokerReward] = []
    for layer in range(1, MAX_BROKER_LAYERS + 1):
        cfg = layer_config(layer, broker_configs)
        if cfg is None:
            continue
        rewards.append(BrokerReward(
            level=cfg.level,
            layer=layer,
            af_released=total_emission * cfg.layer_release_ratio,
        ))
    return rewards


def aggregate_rewards(rewards: Iterable[BrokerReward]) -> List[BrokerReward]:
    """Sum reward lines by layer, sorted by layer ascending."""
    by_layer: Dict[int, BrokerReward] = {}
    for r in rewards:
        acc = by_layer.get(r.layer)
        if acc is None:
            by_layer[r.layer] = BrokerReward(
                level=r.level,
                layer=r.layer,
                af_released=r.af_released,
                usdc_earned=r.usdc_earned,
                promotion_reward=r.promotion_reward,
            )
            continue
        acc.af_released += r.af_released
        acc.usdc_earned += r.usdc_earned
        acc.promotion_reward += r.promotion_reward
    return [by_layer[layer] for layer in sorted(by_layer)]


def promotion_reward(referral_profit: float, broker_config: BrokerConfig) -> float:
    return referral_profit * broker_config.promotion_reward_ratio
