import json

import pytest

from afsim.config import SystemConfig
from afsim.core import DEFAULT_LP_POOL
from afsim.engine import SimulationEngine
from afsim.storage import config_from_dict, dump_state, load_json, load_state, save_json


@pytest.fixture
def running_engine() -> SimulationEngine:
    engine = SimulationEngine()
    engine.update_config(release_mode="coin")
    engine.create_order(1000, 1000.0)
    engine.create_order(5000, 5000.0)
    engine.advance_days(3)
    return engine


class TestRoundTrip:
    def test_state_survives_json(self, running_engine) -> None:
        data = json.loads(json.dumps(dump_state(running_engine)))
        restored = load_state(data)

        assert restored.cfg == running_engine.cfg
        assert restored.pool == running_engine.pool
        assert restored.day == 3
        assert [o.to_dict() for o in restored.orders] == [o.to_dict() for o in running_engine.orders]
        assert [r.to_dict() for r in restored.daily_records] == [r.to_dict() for r in running_engine.daily_records]
        assert restored.stats == running_engine.stats

    def test_restored_engine_keeps_advancing(self, running_engine) -> None:
        restored = load_state(dump_state(running_engine))
        running_engine.advance_day()
        restored.advance_day()
        assert restored.pool == running_engine.pool

    def test_new_ids_do_not_collide(self, running_engine) -> None:
        restored = load_state(dump_state(running_engine))
        order = restored.create_order(100, 100.0)
        assert order.order_id == "order_0003"

    def test_metrics_and_rewards_are_rebuilt(self, running_engine) -> None:
        restored = load_state(dump_state(running_engine))

        daily = restored.metrics.daily_df()
        assert list(daily["day"]) == [1, 2, 3]
        assert daily["af_price"].tolist() == running_engine.metrics.daily_df()["af_price"].tolist()
        assert len(restored.broker_rewards) == len(running_engine.broker_rewards)
        by_level = restored.metrics.rewards_by_level().set_index("level")["af_released"]
        live = running_engine.metrics.rewards_by_level().set_index("level")["af_released"]
        for level in live.index:
            assert by_level[level] == pytest.approx(live[level])

    def test_file_round_trip(self, running_engine, tmp_path) -> None:
        path = tmp_path / "state" / "afx.json"
        save_json(running_engine, path)
        restored = load_json(path)
        assert restored.pool == running_engine.pool


class TestMergeWithDefaults:
    def test_missing_state_gives_defaults(self) -> None:
        engine = load_state(None)
        assert engine.cfg == SystemConfig()
        assert engine.pool == DEFAULT_LP_POOL
        assert engine.orders == []
        assert engine.day == 0

    def test_partial_config_keeps_tables(self) -> None:
        cfg = config_from_dict({"release_mode": "coin", "release_choice": {"withdraw_percentage": 60,
                                                                           "convert_percentage": 40}})
        assert cfg.release_mode == "coin"
        assert cfg.release_choice.withdraw_percentage == 60
        assert cfg.tier_configs == SystemConfig().tier_configs
        assert cfg.broker_configs == SystemConfig().broker_configs

    def test_partial_section_fields(self) -> None:
        cfg = config_from_dict({"trade_fund_flow": {"buyback_ratio": 0.1}})
        assert cfg.trade_fund_flow.buyback_ratio == 0.1
        assert cfg.trade_fund_flow.lp_usdc_ratio == 0.30

    def test_invalid_section_falls_back(self) -> None:
        cfg = config_from_dict({"exit_config": {"withdraw_to_market_ratio": 0.9}})
        assert cfg.exit_config == SystemConfig().exit_config

    def test_unknown_fields_ignored(self) -> None:
        cfg = config_from_dict({"staking_period": {"days": 10, "legacy": True}, "theme": "dark"})
        assert cfg.staking_period.days == 10

    def test_partial_pool_recomputes_price_and_k(self) -> None:
        engine = load_state({"pool": {"usdc_balance": 600_000.0, "af_price": 99.0}})
        assert engine.pool.af_balance == DEFAULT_LP_POOL.af_balance
        assert engine.pool.af_price == pytest.approx(6.0)
        assert engine.pool.k == pytest.approx(6e10)

    def test_pool_without_k_trades_on_its_own_reserves(self) -> None:
        engine = load_state({"pool": {"usdc_balance": 600_000.0, "af_balance": 100_000.0}})
        quote = engine.buy(1000.0)
        assert quote.amount_out == pytest.approx(100_000.0 - 6e10 / 600_970.0)
        assert quote.price_impact == pytest.approx(600_970.0 ** 2 / 6e10 / 6.0 - 1.0)
        assert quote.price_impact < 0.01

    def test_stale_k_is_rebuilt(self) -> None:
        engine = load_state({"pool": {"usdc_balance": 600_000.0, "af_balance": 100_000.0, "k": 5e10}})
        assert engine.pool.k == pytest.approx(6e10)

    def test_consistent_k_is_kept_exactly(self, running_engine) -> None:
        stored = running_engine.pool.to_dict()
        assert load_state({"pool": stored}).pool.k == stored["k"]

    def test_partial_stats(self) -> None:
        engine = load_state({"stats": {"total_staked": 1500.0}})
        assert engine.stats.total_staked == 1500.0
        assert engine.stats.total_af_burned == 0.0

    def test_day_falls_back_to_last_record(self, running_engine) -> None:
        data = dump_state(running_engine)
        del data["day"]
        assert load_state(data).day == 3

    @pytest.mark.parametrize("table", ["tier_configs", "broker_configs"])
    def test_non_mapping_table_rows_fall_back(self, table) -> None:
        engine = load_state({"config": {table: ["junk"]}})
        assert getattr(engine.cfg, table) == getattr(SystemConfig(), table)

    def test_record_day_is_coerced_or_dropped(self, running_engine) -> None:
        data = dump_state(running_engine)
        data["daily_records"][0]["day"] = "1"
        data["daily_records"][1]["day"] = "second"
        engine = load_state(data)
        assert [r.day for r in engine.daily_records] == [1, 3]

    def test_malformed_orders_dropped(self) -> None:
        engine = load_state({"orders": [{"order_id": "order_0001"}, "junk"]})
        assert engine.orders == []

    def test_invalid_json_file(self, tmp_path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_json(path).pool == DEFAULT_LP_POOL

    def test_missing_file(self, tmp_path) -> None:
        assert load_json(tmp_path / "absent.json").day == 0
