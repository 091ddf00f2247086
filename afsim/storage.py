"""
JSON persistence for a SimulationEngine.

Stored state mirrors the data model: config, pool, orders, daily records, the
day counter and running stats. Loading merges whatever is present over the
defaults section by section, so partial or stale files still produce a full
engine. A section that cannot be parsed falls back to its default.
"""
from __future__ import annotations
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar
import json
import logging
import math

from .config import (
    BrokerConfig,
    ExitConfig,
    ProfitDistribution,
    ReleaseChoice,
    StakingPeriod,
    SystemConfig,
    TierConfig,
    TradeFundFlow,
)
from .core import DEFAULT_LP_POOL, DailyReleaseRecord, LPPoolState, SimulationStats, StakingOrder
from .engine import SimulationEngine

logger = logging.getLogger(__name__)

STATE_VERSION = 1
K_TOLERANCE = 1e-9

T = TypeVar("T")

_NESTED_SECTIONS = {
    "staking_period": StakingPeriod,
    "exit_config": ExitConfig,
    "release_choice": ReleaseChoice,
    "trade_fund_flow": TradeFundFlow,
    "profit_distribution": ProfitDistribution,
}


def _known_fields(cls: type, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


def _merge(cls: Type[T], default: T, data: Any, section: str) -> T:
    if not isinstance(data, dict):
        if data is not None:
            logger.warning("storage: %s is not a mapping, using defaults", section)
        return default
    merged = {**asdict(default), **_known_fields(cls, data)}
    try:
        return cls(**merged)
    except (TypeError, ValueError) as exc:
        logger.warning("storage: invalid %s (%s), using defaults", section, exc)
        return default


def _rows(cls: Type[T], data: Any, default: tuple, section: str) -> tuple:
    if not isinstance(data, list) or not data:
        return default
    if not all(isinstance(row, dict) for row in data):
        logger.warning("storage: %s has non-mapping rows, using defaults", section)
        return default
    try:
        return tuple(cls(**_known_fields(cls, row)) for row in data)
    except (TypeError, ValueError) as exc:
        logger.warning("storage: invalid %s (%s), using defaults", section, exc)
        return default


# -----------------------------
# Config
# -----------------------------
def config_to_dict(cfg: SystemConfig) -> Dict[str, Any]:
    out = asdict(cfg)
    out["tier_configs"] = [asdict(t) for t in cfg.tier_configs]
    out["broker_configs"] = [asdict(b) for b in cfg.broker_configs]
    return out


def config_from_dict(data: Any) -> SystemConfig:
    base = SystemConfig()
    if not isinstance(data, dict):
        return base

    kwargs: Dict[str, Any] = {}
    for name, cls in _NESTED_SECTIONS.items():
        kwargs[name] = _merge(cls, getattr(base, name), data.get(name), name)
    kwargs["tier_configs"] = _rows(TierConfig, data.get("tier_configs"), base.tier_configs, "tier_configs")
    kwargs["broker_configs"] = _rows(BrokerConfig, data.get("broker_configs"), base.broker_configs, "broker_configs")
    for name in ("release_mode", "af_to_trading_fund_rate"):
        if name in data:
            kwargs[name] = data[name]

    try:
        return SystemConfig(**kwargs)
    except (TypeError, ValueError) as exc:
        logger.warning("storage: invalid config (%s), using defaults", exc)
        return base


# -----------------------------
# Pool / orders / records
# -----------------------------
def pool_from_dict(data: Any) -> LPPoolState:
    pool = _merge(LPPoolState, DEFAULT_LP_POOL, data, "pool")
    try:
        usdc, af, k = float(pool.usdc_balance), float(pool.af_balance), float(pool.k)
    except (TypeError, ValueError):
        logger.warning("storage: non-numeric pool reserves, using defaults")
        return DEFAULT_LP_POOL
    # price and k are derived from the reserves; a missing or stale k is rebuilt
    product = usdc * af
    if not (isinstance(data, dict) and "k" in data) or not math.isclose(k, product, rel_tol=K_TOLERANCE):
        k = product
    price = usdc / af if af > 0 else 0.0
    return LPPoolState(usdc_balance=usdc, af_balance=af, af_price=price, k=k)


def orders_from_list(data: Any) -> List[StakingOrder]:
    if not isinstance(data, list):
        return []
    orders: List[StakingOrder] = []
    for row in data:
        if not isinstance(row, dict):
            continue
        try:
            orders.append(StakingOrder(**_known_fields(StakingOrder, row)))
        except TypeError as exc:
            logger.warning("storage: dropping malformed order (%s)", exc)
    return orders


def record_from_dict(row: Dict[str, Any]) -> DailyReleaseRecord:
    values = _known_fields(DailyReleaseRecord, row)
    values["day"] = int(values.get("day"))
    values["lp_pool_state"] = pool_from_dict(row.get("lp_pool_state"))
    return DailyReleaseRecord(**values)


def records_from_list(data: Any) -> List[DailyReleaseRecord]:
    if not isinstance(data, list):
        return []
    records: List[DailyReleaseRecord] = []
    for row in data:
        if not isinstance(row, dict):
            continue
        try:
            records.append(record_from_dict(row))
        except (TypeError, ValueError) as exc:
            logger.warning("storage: dropping malformed daily record (%s)", exc)
    return sorted(records, key=lambda r: r.day)


# -----------------------------
# Engine
# -----------------------------
def dump_state(engine: SimulationEngine) -> Dict[str, Any]:
    return {
        "version": STATE_VERSION,
        "config": config_to_dict(engine.cfg),
        "pool": engine.pool.to_dict(),
        "orders": [o.to_dict() for o in engine.orders],
        "daily_records": [r.to_dict() for r in engine.daily_records],
        "day": engine.day,
        "stats": engine.stats.to_dict(),
    }


def load_state(data: Optional[Dict[str, Any]]) -> SimulationEngine:
    if not isinstance(data, dict):
        data = {}
    engine = SimulationEngine(cfg=config_from_dict(data.get("config")), pool=pool_from_dict(data.get("pool")))
    engine.orders = orders_from_list(data.get("orders"))
    engine.daily_records = records_from_list(data.get("daily_records"))
    engine.stats = _merge(SimulationStats, SimulationStats(), data.get("stats"), "stats")

    day = data.get("day")
    if isinstance(day, int) and day >= 0:
        engine.day = day
    elif engine.daily_records:
        engine.day = engine.daily_records[-1].day

    engine.factory.sync_counters(o.order_id for o in engine.orders)
    engine.rebuild_history()
    return engine


def save_json(engine: SimulationEngine, path: Path | str) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(dump_state(engine), indent=2, sort_keys=True), encoding="utf-8")


def load_json(path: Path | str) -> SimulationEngine:
    path = Path(path)
    if not path.exists():
        return load_state(None)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        logger.warning("storage: %s is not valid JSON (%s), starting from defaults", path, exc)
        data = None
    return load_state(data)
