import pytest

from afsim.config import SystemConfig
from afsim.core import LPPoolState
from afsim.forecast import predict_staking_returns, projection_frame


def test_gold_mode_forecast(cfg, pool) -> None:
    f = predict_staking_returns(1000.0, 1000, cfg, pool, 30)

    assert f.total_af_released == pytest.approx(42.0)
    assert f.total_user_profit == pytest.approx(3000.0 * 0.02 * 0.70 * 30)
    assert f.estimated_af_value == pytest.approx(42.0 * 5.0)
    assert f.roi == pytest.approx((210.0 + 1260.0) / 1000.0 * 100.0)


def test_unknown_tier(cfg, pool) -> None:
    f = predict_staking_returns(1000.0, 77, cfg, pool, 30)
    assert f.total_af_released == 0.0 and f.roi == 0.0


def test_zero_price_releases_nothing(pool) -> None:
    dead = LPPoolState(usdc_balance=0.0, af_balance=0.0, af_price=0.0, k=0.0)
    f = predict_staking_returns(1000.0, 1000, SystemConfig(release_mode="coin"), dead, 10)
    assert f.total_af_released == 0.0
    assert f.total_user_profit > 0.0


def test_projection_frame_is_cumulative(cfg, pool) -> None:
    df = projection_frame(500.0, 500, cfg, pool, 10)
    assert list(df["day"]) == list(range(1, 11))
    assert df["af_released"].is_monotonic_increasing
    assert df["af_released"].iloc[-1] == pytest.approx(10 * 500.0 * 0.006 / 5.0)


def test_projection_frame_empty_for_zero_days(cfg, pool) -> None:
    assert projection_frame(500.0, 500, cfg, pool, 0).empty
