import pytest

from afsim.config import (
    BrokerConfig,
    ConfigError,
    DEFAULT_BROKER_CONFIGS,
    DEFAULT_TIER_CONFIGS,
    ExitConfig,
    ProfitDistribution,
    ReleaseChoice,
    StakingPeriod,
    SystemConfig,
    TierConfig,
    TradeFundFlow,
)


class TestDefaults:
    def test_default_tables(self) -> None:
        cfg = SystemConfig()
        assert [t.tier for t in cfg.tier_configs] == [100, 500, 1000, 3000, 5000, 10000]
        assert [b.level for b in cfg.broker_configs] == ["V1", "V2", "V3", "V4", "V5", "V6"]
        assert cfg.staking_days() == 30

    def test_default_broker_ranges_partition_the_ladder(self) -> None:
        covered = []
        for b in DEFAULT_BROKER_CONFIGS:
            covered.extend(range(b.layer_start, b.layer_end + 1))
        assert covered == list(range(1, 21))

    def test_lists_are_frozen_to_tuples(self) -> None:
        cfg = SystemConfig(tier_configs=list(DEFAULT_TIER_CONFIGS))
        assert isinstance(cfg.tier_configs, tuple)

    def test_tier_lookup(self) -> None:
        cfg = SystemConfig()
        assert cfg.tier_config(3000).trading_fund_multiplier == 3.5
        assert cfg.tier_config(1) is None


class TestValidation:
    @pytest.mark.parametrize("fee", [0.0, 0.009, 0.081, 1.0])
    def test_fee_rate_bounds(self, fee) -> None:
        with pytest.raises(ConfigError):
            TierConfig(100, af_release_rate=0.005, trading_fund_multiplier=2.0,
                       profit_share_ratio=0.6, trading_fee_rate=fee)

    def test_multiplier_below_one(self) -> None:
        with pytest.raises(ConfigError, match="trading_fund_multiplier"):
            TierConfig(100, af_release_rate=0.005, trading_fund_multiplier=0.5,
                       profit_share_ratio=0.6, trading_fee_rate=0.05)

    @pytest.mark.parametrize("start, end", [(0, 4), (1, 21), (6, 5)])
    def test_broker_layer_bounds(self, start, end) -> None:
        with pytest.raises(ConfigError):
            BrokerConfig("V1", 0.4, start, end, 0.04)

    def test_unknown_broker_level(self) -> None:
        with pytest.raises(ConfigError, match="unknown broker level"):
            BrokerConfig("V9", 0.4, 1, 4, 0.04)

    def test_staking_days_at_least_one(self) -> None:
        with pytest.raises(ConfigError):
            StakingPeriod(days=0)

    def test_exit_pair_must_sum_to_one(self) -> None:
        with pytest.raises(ConfigError, match="must equal 1"):
            ExitConfig(withdraw_to_market_ratio=0.8, withdraw_burn_ratio=0.3)

    def test_release_choice_must_sum_to_hundred(self) -> None:
        with pytest.raises(ConfigError, match="must equal 100"):
            ReleaseChoice(withdraw_percentage=70.0, convert_percentage=20.0)

    def test_profit_distribution_must_sum_to_one(self) -> None:
        with pytest.raises(ConfigError):
            ProfitDistribution(platform_ratio=0.6, broker_ratio=0.6)

    def test_fund_flow_ratios_need_not_sum_to_one(self) -> None:
        flow = TradeFundFlow(lp_usdc_ratio=0.3, lp_af_ratio=0.3, buyback_ratio=0.2, forex_reserve_ratio=0.5)
        assert flow.buyback_ratio == 0.2

    def test_fund_flow_ratio_bounds(self) -> None:
        with pytest.raises(ConfigError):
            TradeFundFlow(lp_usdc_ratio=1.5)

    def test_duplicate_tiers_rejected(self) -> None:
        with pytest.raises(ConfigError, match="unique"):
            SystemConfig(tier_configs=DEFAULT_TIER_CONFIGS + DEFAULT_TIER_CONFIGS[:1])

    def test_unknown_release_mode(self) -> None:
        with pytest.raises(ConfigError):
            SystemConfig(release_mode="silver")

    def test_all_problems_reported(self) -> None:
        with pytest.raises(ConfigError) as exc:
            TierConfig(100, af_release_rate=2.0, trading_fund_multiplier=0.5,
                       profit_share_ratio=0.6, trading_fee_rate=0.5)
        assert len(exc.value.problems) == 3


class TestRowReplacement:
    def test_with_tier_replaces_one_row(self) -> None:
        cfg = SystemConfig().with_tier(100, profit_share_ratio=0.65)
        assert cfg.tier_config(100).profit_share_ratio == 0.65
        assert cfg.tier_config(500) == DEFAULT_TIER_CONFIGS[1]

    def test_with_unknown_tier_is_unchanged(self) -> None:
        assert SystemConfig().with_tier(7, profit_share_ratio=0.65) == SystemConfig()

    def test_with_broker(self) -> None:
        cfg = SystemConfig().with_broker("V6", promotion_reward_ratio=0.9)
        assert cfg.broker_config("V6").promotion_reward_ratio == 0.9
