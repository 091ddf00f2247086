from __future__ import annotations

import pytest

from afsim.config import SystemConfig
from afsim.core import DEFAULT_LP_POOL, LPPoolState, StakingOrder
from afsim.engine import SimulationEngine


@pytest.fixture
def cfg() -> SystemConfig:
    return SystemConfig()


@pytest.fixture
def pool() -> LPPoolState:
    return DEFAULT_LP_POOL


@pytest.fixture
def order() -> StakingOrder:
    """Tier-1000 order as created from the default config."""
    return StakingOrder(
        order_id="order_0001",
        tier=1000,
        principal=1000.0,
        trading_fund=3000.0,
        staking_days=30,
        profit_share_ratio=0.70,
    )


@pytest.fixture
def engine(cfg: SystemConfig) -> SimulationEngine:
    return SimulationEngine(cfg=cfg)
