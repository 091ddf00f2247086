from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import List, Literal, Optional, Tuple

ReleaseMode = Literal["gold", "coin"]
BrokerLevel = Literal["V1", "V2", "V3", "V4", "V5", "V6"]

STAKING_TIERS: Tuple[int, ...] = (100, 500, 1000, 3000, 5000, 10000)
BROKER_LEVELS: Tuple[str, ...] = ("V1", "V2", "V3", "V4", "V5", "V6")
PROFIT_SHARE_TIERS: Tuple[float, ...] = (0.60, 0.65, 0.70, 0.75, 0.80, 0.85)

# System constants
AMM_SLIPPAGE = 0.03
INITIAL_AF_SUPPLY = 10_000_000
MIN_TRADING_FEE = 0.01
MAX_TRADING_FEE = 0.08
MAX_BROKER_LAYERS = 20
TRADES_PER_DAY = 10
DEFAULT_DAILY_PROFIT_RATE = 0.02
BUYBACK_BURN_SHARE = 0.5  # share of buyback tokens burned
UNBOUNDED_STAKING_DAYS = 365  # staking length when the period policy is disabled

RATIO_TOLERANCE = 1e-9


class ConfigError(ValueError):
    """Raised when a configuration value is outside its documented bounds."""

    def __init__(self, problems: List[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


def _check_ratio(problems: List[str], name: str, value: float, lo: float = 0.0, hi: float = 1.0) -> None:
    if not (lo <= float(value) <= hi):
        problems.append(f"{name}={value} outside [{lo}, {hi}]")


def _raise_if(problems: List[str]) -> None:
    if problems:
        raise ConfigError(problems)


# -----------------------------
# Per-row tables
# -----------------------------
@dataclass(frozen=True)
class TierConfig:
    tier: int
    af_release_rate: float          # daily release rate
    trading_fund_multiplier: float
    profit_share_ratio: float
    trading_fee_rate: float         # 1%-8%, falls as the stake grows

    def __post_init__(self) -> None:
        problems: List[str] = []
        _check_ratio(problems, f"tier {self.tier} af_release_rate", self.af_release_rate)
        if self.trading_fund_multiplier < 1.0:
            problems.append(f"tier {self.tier} trading_fund_multiplier={self.trading_fund_multiplier} below 1")
        _check_ratio(problems, f"tier {self.tier} profit_share_ratio", self.profit_share_ratio)
        _check_ratio(problems, f"tier {self.tier} trading_fee_rate", self.trading_fee_rate,
                     MIN_TRADING_FEE, MAX_TRADING_FEE)
        _raise_if(problems)


@dataclass(frozen=True)
class BrokerConfig:
    level: BrokerLevel
    promotion_reward_ratio: float
    layer_start: int
    layer_end: int
    layer_release_ratio: float

    def __post_init__(self) -> None:
        problems: List[str] = []
        if self.level not in BROKER_LEVELS:
            problems.append(f"unknown broker level {self.level!r}")
        _check_ratio(problems, f"{self.level} promotion_reward_ratio", self.promotion_reward_ratio)
        _check_ratio(problems, f"{self.level} layer_start", self.layer_start, 1, MAX_BROKER_LAYERS)
        _check_ratio(problems, f"{self.level} layer_end", self.layer_end, 1, MAX_BROKER_LAYERS)
        if self.layer_start > self.layer_end:
            problems.append(f"{self.level} layer_start={self.layer_start} > layer_end={self.layer_end}")
        _check_ratio(problems, f"{self.level} layer_release_ratio", self.layer_release_ratio)
        _raise_if(problems)

    def contains(self, layer: int) -> bool:
        return self.layer_start <= layer <= self.layer_end


# -----------------------------
# Grouped settings
# -----------------------------
@dataclass(frozen=True)
class StakingPeriod:
    enabled: bool = True
    days: int = 30

    def __post_init__(self) -> None:
        if self.days < 1:
            raise ConfigError([f"staking_period.days={self.days} below 1"])


@dataclass(frozen=True)
class ExitConfig:
    # withdrawn tokens: market vs burn
    withdraw_to_market_ratio: float = 0.80
    withdraw_burn_ratio: float = 0.20
    keep_as_trading_fee_ratio: float = 0.0
    convert_to_trading_fund_ratio: float = 0.0

    def __post_init__(self) -> None:
        problems: List[str] = []
        _check_ratio(problems, "withdraw_to_market_ratio", self.withdraw_to_market_ratio)
        _check_ratio(problems, "withdraw_burn_ratio", self.withdraw_burn_ratio)
        _check_ratio(problems, "keep_as_trading_fee_ratio", self.keep_as_trading_fee_ratio)
        _check_ratio(problems, "convert_to_trading_fund_ratio", self.convert_to_trading_fund_ratio)
        if abs(self.withdraw_to_market_ratio + self.withdraw_burn_ratio - 1.0) > RATIO_TOLERANCE:
            problems.append("withdraw_to_market_ratio + withdraw_burn_ratio must equal 1")
        _raise_if(problems)


@dataclass(frozen=True)
class ReleaseChoice:
    # percentages, 0-100
    withdraw_percentage: float = 70.0
    convert_percentage: float = 30.0

    def __post_init__(self) -> None:
        problems: List[str] = []
        _check_ratio(problems, "withdraw_percentage", self.withdraw_percentage, 0.0, 100.0)
        _check_ratio(problems, "convert_percentage", self.convert_percentage, 0.0, 100.0)
        if abs(self.withdraw_percentage + self.convert_percentage - 100.0) > RATIO_TOLERANCE * 100:
            problems.append("withdraw_percentage + convert_percentage must equal 100")
        _raise_if(problems)


@dataclass(frozen=True)
class TradeFundFlow:
    # independent shares of each trade's fund; the remainder stays unallocated
    lp_usdc_ratio: float = 0.30
    lp_af_ratio: float = 0.30
    buyback_ratio: float = 0.20
    forex_reserve_ratio: float = 0.50

    def __post_init__(self) -> None:
        problems: List[str] = []
        _check_ratio(problems, "lp_usdc_ratio", self.lp_usdc_ratio)
        _check_ratio(problems, "lp_af_ratio", self.lp_af_ratio)
        _check_ratio(problems, "buyback_ratio", self.buyback_ratio)
        _check_ratio(problems, "forex_reserve_ratio", self.forex_reserve_ratio)
        _raise_if(problems)


@dataclass(frozen=True)
class ProfitDistribution:
    platform_ratio: float = 0.50
    broker_ratio: float = 0.50

    def __post_init__(self) -> None:
        problems: List[str] = []
        _check_ratio(problems, "platform_ratio", self.platform_ratio)
        _check_ratio(problems, "broker_ratio", self.broker_ratio)
        if abs(self.platform_ratio + self.broker_ratio - 1.0) > RATIO_TOLERANCE:
            problems.append("platform_ratio + broker_ratio must equal 1")
        _raise_if(problems)


DEFAULT_TIER_CONFIGS: Tuple[TierConfig, ...] = (
    TierConfig(100, af_release_rate=0.005, trading_fund_multiplier=2.0, profit_share_ratio=0.60, trading_fee_rate=0.08),
    TierConfig(500, af_release_rate=0.006, trading_fund_multiplier=2.5, profit_share_ratio=0.65, trading_fee_rate=0.06),
    TierConfig(1000, af_release_rate=0.007, trading_fund_multiplier=3.0, profit_share_ratio=0.70, trading_fee_rate=0.05),
    TierConfig(3000, af_release_rate=0.008, trading_fund_multiplier=3.5, profit_share_ratio=0.75, trading_fee_rate=0.03),
    TierConfig(5000, af_release_rate=0.009, trading_fund_multiplier=4.0, profit_share_ratio=0.80, trading_fee_rate=0.02),
    TierConfig(10000, af_release_rate=0.010, trading_fund_multiplier=5.0, profit_share_ratio=0.85, trading_fee_rate=0.01),
)

DEFAULT_BROKER_CONFIGS: Tuple[BrokerConfig, ...] = (
    BrokerConfig("V1", promotion_reward_ratio=0.40, layer_start=1, layer_end=4, layer_release_ratio=0.04),
    BrokerConfig("V2", promotion_reward_ratio=0.50, layer_start=5, layer_end=8, layer_release_ratio=0.04),
    BrokerConfig("V3", promotion_reward_ratio=0.60, layer_start=9, layer_end=11, layer_release_ratio=0.03),
    BrokerConfig("V4", promotion_reward_ratio=0.70, layer_start=12, layer_end=14, layer_release_ratio=0.03),
    BrokerConfig("V5", promotion_reward_ratio=0.80, layer_start=15, layer_end=17, layer_release_ratio=0.03),
    BrokerConfig("V6", promotion_reward_ratio=1.00, layer_start=18, layer_end=20, layer_release_ratio=0.03),
)


@dataclass(frozen=True)
class SystemConfig:
    release_mode: ReleaseMode = "gold"
    staking_period: StakingPeriod = field(default_factory=StakingPeriod)
    exit_config: ExitConfig = field(default_factory=ExitConfig)
    release_choice: ReleaseChoice = field(default_factory=ReleaseChoice)
    af_to_trading_fund_rate: float = 1.0
    trade_fund_flow: TradeFundFlow = field(default_factory=TradeFundFlow)
    tier_configs: Tuple[TierConfig, ...] = DEFAULT_TIER_CONFIGS
    broker_configs: Tuple[BrokerConfig, ...] = DEFAULT_BROKER_CONFIGS
    profit_distribution: ProfitDistribution = field(default_factory=ProfitDistribution)

    def __post_init__(self) -> None:
        # lists from callers are frozen into tuples
        object.__setattr__(self, "tier_configs", tuple(self.tier_configs))
        object.__setattr__(self, "broker_configs", tuple(self.broker_configs))

        problems: List[str] = []
        if self.release_mode not in ("gold", "coin"):
            problems.append(f"unknown release_mode {self.release_mode!r}")
        if self.af_to_trading_fund_rate < 0.0:
            problems.append(f"af_to_trading_fund_rate={self.af_to_trading_fund_rate} below 0")
        tiers = [t.tier for t in self.tier_configs]
        if len(tiers) != len(set(tiers)):
            problems.append("tier values must be unique")
        levels = [b.level for b in self.broker_configs]
        if len(levels) != len(set(levels)):
            problems.append("broker levels must be unique")
        _raise_if(problems)

    def tier_config(self, tier: int) -> Optional[TierConfig]:
        for tc in self.tier_configs:
            if tc.tier == tier:
                return tc
        return None

    def broker_config(self, level: str) -> Optional[BrokerConfig]:
        for bc in self.broker_configs:
            if bc.level == level:
                return bc
        return None

    def staking_days(self) -> int:
        if self.staking_period.enabled:
            return int(self.staking_period.days)
        return UNBOUNDED_STAKING_DAYS

    def with_tier(self, tier: int, **changes) -> "SystemConfig":
        """Return a copy with one tier row replaced; unknown tiers leave the table as is."""
        rows = tuple(replace(tc, **changes) if tc.tier == tier else tc for tc in self.tier_configs)
        return replace(self, tier_configs=rows)

    def with_broker(self, level: str, **changes) -> "SystemConfig":
        rows = tuple(replace(bc, **changes) if bc.level == level else bc for bc in self.broker_configs)
        return replace(self, broker_configs=rows)
