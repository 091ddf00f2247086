import json
import time
import pandas as pd
import streamlit as st

from afsim.config import (
    BROKER_LEVELS,
    STAKING_TIERS,
    ExitConfig,
    ProfitDistribution,
    ReleaseChoice,
    StakingPeriod,
    SystemConfig,
    TradeFundFlow,
)
from afsim import amm
from afsim.core import format_amount, format_currency, format_percent
from afsim.engine import SimulationEngine
from afsim.forecast import projection_frame
from afsim.storage import dump_state, load_state
from afsim.trading import calculate_trade

st.set_page_config(page_title="AFx Token Economy Simulator", layout="wide")


def get_engine() -> SimulationEngine:
    if "engine" not in st.session_state:
        st.session_state.engine = SimulationEngine(cfg=SystemConfig())
    return st.session_state.engine


def reset_engine(reset_config: bool = False) -> None:
    engine = st.session_state.get("engine")
    cfg = SystemConfig() if reset_config or engine is None else engine.cfg
    st.session_state.engine = SimulationEngine(cfg=cfg)


engine = get_engine()

st.title("AFx Token Economy Simulator")
st.caption("Time model: 1 step = 1 simulated day.")

def _fmt_duration(seconds: float) -> str:
    if seconds < 0:
        seconds = 0.0
    mins = int(seconds // 60)
    secs = seconds - (mins * 60)
    return f"{mins}m {secs:0.1f}s"

def _render_kpi_grid(kpis, columns: int = 4) -> None:
    for idx in range(0, len(kpis), columns):
        row = kpis[idx: idx + columns]
        cols = st.columns(columns)
        for col, (label, value) in zip(cols, row):
            col.metric(label, value)

def _format_table_numbers(df: pd.DataFrame) -> pd.DataFrame:
    formatted = df.copy()
    numeric_cols = formatted.select_dtypes(include=["number"]).columns
    if len(numeric_cols) == 0:
        return formatted
    formatted[numeric_cols] = formatted[numeric_cols].apply(
        lambda col: col.map(lambda value: f"{value:,.4f}" if pd.notnull(value) else "")
    )
    return formatted

def _format_event_meta(meta) -> str:
    if not meta:
        return ""
    try:
        return json.dumps(meta, sort_keys=True)
    except TypeError:
        return str(meta)

def _apply_config_change(fn, *args, **kwargs) -> None:
    try:
        fn(*args, **kwargs)
    except ValueError as exc:
        st.error(f"Config rejected: {exc}")


with st.sidebar:
    st.header("Sim Controls")

    st.subheader("Run")
    if st.button("Restart simulation"):
        reset_engine(reset_config=False)
        engine = st.session_state.engine
    st.caption("Restart clears orders, history and the pool; the config is kept.")

    daily_profit_pct = st.number_input(
        "Daily profit rate (%)", min_value=0.0, max_value=100.0, value=2.0, step=0.1,
    )
    run_days = st.slider("Days to run", min_value=1, max_value=365, value=30)
    c1, c2 = st.columns(2)
    run_one = c1.button("Advance 1 day")
    run_many = c2.button("Advance N days")
    progress_bar = st.progress(0.0, text="Idle")
    if run_one:
        record = engine.advance_day(daily_profit_pct / 100.0)
        if record is None:
            st.info("Nothing to advance: no active orders or the pool has no price.")
        progress_bar.progress(1.0, text="Run progress: 100%")
    if run_many:
        total = int(run_days)
        start_ts = time.time()
        for idx in range(total):
            engine.advance_day(daily_profit_pct / 100.0)
            progress = (idx + 1) / total
            progress_bar.progress(progress, text=f"Run progress: {progress:.0%}")
        elapsed = time.time() - start_ts
        progress_bar.progress(1.0, text=f"Run progress: 100% ({_fmt_duration(elapsed)})")
    st.caption(f"Current day: {engine.day}")

    st.subheader("State")
    st.download_button(
        "Download state (JSON)",
        data=json.dumps(dump_state(engine), indent=2, sort_keys=True),
        file_name="afx_state.json",
        mime="application/json",
    )
    uploaded = st.file_uploader("Load state", type=["json"])
    if uploaded is not None and st.button("Apply loaded state"):
        try:
            data = json.loads(uploaded.getvalue().decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            st.error(f"Could not read state file: {exc}")
        else:
            st.session_state.engine = load_state(data)
            engine = st.session_state.engine
            st.success("State loaded.")


tab_dash, tab_config, tab_staking, tab_release, tab_trading, tab_amm, tab_events = st.tabs(
    ["Dashboard", "Config", "Staking", "Release", "Trading", "AMM Pool", "Events"]
)

with tab_dash:
    stats = engine.stats
    _render_kpi_grid([
        ("AF price", format_currency(engine.current_price)),
        ("Day", str(engine.day)),
        ("Active orders", str(len(engine.active_orders()))),
        ("Total staked", format_currency(stats.total_staked)),
        ("AF released", format_amount(stats.total_af_released)),
        ("AF burned", format_amount(stats.total_af_burned)),
        ("Forex reserve", format_currency(stats.total_forex_reserve)),
        ("User profit", format_currency(stats.total_user_profit)),
    ])
    daily_df = engine.metrics.daily_df()
    if daily_df.empty:
        st.info("Create staking orders and advance the simulation to see history.")
    else:
        st.subheader("AF price")
        st.line_chart(daily_df.set_index("day")[["af_price"]])
        st.subheader("Daily emission")
        st.area_chart(daily_df.set_index("day")[["af_to_market", "af_burned", "af_to_trading_fund"]])

with tab_config:
    cfg = engine.cfg
    left, right = st.columns(2)
    with left:
        st.subheader("Release")
        mode = st.selectbox("Release mode", ["gold", "coin"], index=["gold", "coin"].index(cfg.release_mode))
        period_enabled = st.checkbox("Fixed staking period", value=cfg.staking_period.enabled)
        period_days = st.number_input("Staking days", min_value=1, value=int(cfg.staking_period.days), step=1)
        withdraw_pct = st.slider("Withdraw share (%)", 0.0, 100.0, float(cfg.release_choice.withdraw_percentage), step=5.0)
        to_market = st.slider("Withdrawn to market", 0.0, 1.0, float(cfg.exit_config.withdraw_to_market_ratio), step=0.05)
        platform = st.slider("Platform share of remaining profit", 0.0, 1.0,
                             float(cfg.profit_distribution.platform_ratio), step=0.05)
    with right:
        st.subheader("Trade fund flow")
        lp_usdc = st.slider("LP USDC ratio", 0.0, 1.0, float(cfg.trade_fund_flow.lp_usdc_ratio), step=0.05)
        lp_af = st.slider("LP AF ratio", 0.0, 1.0, float(cfg.trade_fund_flow.lp_af_ratio), step=0.05)
        buyback = st.slider("Buyback ratio", 0.0, 1.0, float(cfg.trade_fund_flow.buyback_ratio), step=0.05)
        forex = st.slider("Forex reserve ratio", 0.0, 1.0, float(cfg.trade_fund_flow.forex_reserve_ratio), step=0.05)

    c1, c2 = st.columns(2)
    if c1.button("Apply config"):
        _apply_config_change(lambda: engine.update_config(
            release_mode=mode,
            staking_period=StakingPeriod(enabled=period_enabled, days=int(period_days)),
            release_choice=ReleaseChoice(withdraw_percentage=withdraw_pct, convert_percentage=100.0 - withdraw_pct),
            exit_config=ExitConfig(withdraw_to_market_ratio=to_market, withdraw_burn_ratio=1.0 - to_market),
            profit_distribution=ProfitDistribution(platform_ratio=platform, broker_ratio=1.0 - platform),
            trade_fund_flow=TradeFundFlow(lp_usdc_ratio=lp_usdc, lp_af_ratio=lp_af,
                                          buyback_ratio=buyback, forex_reserve_ratio=forex),
        ))
    if c2.button("Reset config"):
        engine.reset_config()

    st.subheader("Tiers")
    tier_df = pd.DataFrame([vars(t) for t in engine.cfg.tier_configs])
    st.dataframe(tier_df, use_container_width=True)
    tc1, tc2, tc3 = st.columns(3)
    edit_tier = tc1.selectbox("Tier", list(STAKING_TIERS))
    current_tier = engine.tier_config(edit_tier)
    fee_rate = tc2.number_input("Trading fee rate", min_value=0.01, max_value=0.08,
                                value=float(current_tier.trading_fee_rate if current_tier else 0.05), step=0.005)
    release_rate = tc3.number_input("AF release rate", min_value=0.0, max_value=1.0,
                                    value=float(current_tier.af_release_rate if current_tier else 0.005),
                                    step=0.0005, format="%.4f")
    if st.button("Update tier"):
        _apply_config_change(engine.update_tier_config, edit_tier,
                             trading_fee_rate=fee_rate, af_release_rate=release_rate)

    st.subheader("Broker levels")
    broker_df = pd.DataFrame([vars(b) for b in engine.cfg.broker_configs])
    st.dataframe(broker_df, use_container_width=True)
    bc1, bc2 = st.columns(2)
    edit_level = bc1.selectbox("Level", list(BROKER_LEVELS))
    current_level = engine.cfg.broker_config(edit_level)
    layer_ratio = bc2.number_input("Layer release ratio", min_value=0.0, max_value=1.0,
                                   value=float(current_level.layer_release_ratio if current_level else 0.03),
                                   step=0.005)
    if st.button("Update broker level"):
        _apply_config_change(engine.update_broker_config, edit_level, layer_release_ratio=layer_ratio)

with tab_staking:
    st.subheader("New order")
    s1, s2, s3 = st.columns(3)
    tier = s1.selectbox("Staking tier", list(STAKING_TIERS), key="stake_tier")
    count = s2.number_input("Number of orders", min_value=1, max_value=1000, value=1, step=1)
    horizon = s3.number_input("Forecast days", min_value=1, max_value=3650,
                              value=int(engine.cfg.staking_days()), step=1)
    forecast = engine.predict_returns(float(tier), tier, int(horizon))
    _render_kpi_grid([
        ("Trading fund", format_currency(forecast.total_trading_fund)),
        ("AF released", format_amount(forecast.total_af_released)),
        ("User profit", format_currency(forecast.total_user_profit)),
        ("ROI", f"{forecast.roi:.2f}%"),
    ])
    proj = projection_frame(float(tier), tier, engine.cfg, engine.pool, int(horizon))
    if not proj.empty:
        st.line_chart(proj.set_index("day")[["af_value", "user_profit", "total_return"]])
    b1, b2 = st.columns(2)
    if b1.button("Create orders"):
        for _ in range(int(count)):
            engine.create_order(tier, float(tier))
    if b2.button("Clear all orders"):
        engine.clear_orders()

    st.subheader("Orders")
    if engine.orders:
        orders_df = pd.DataFrame([o.to_dict() for o in engine.orders])
        st.dataframe(_format_table_numbers(orders_df), use_container_width=True)
        remove_id = st.selectbox("Remove order", [o.order_id for o in engine.orders])
        if st.button("Remove"):
            engine.remove_order(remove_id)
    else:
        st.caption("No orders yet.")

with tab_release:
    records = engine.daily_records
    if not records:
        st.info("No release history yet.")
    else:
        rec_df = pd.DataFrame([{k: v for k, v in r.to_dict().items() if k != "lp_pool_state"} for r in records])
        st.dataframe(_format_table_numbers(rec_df.tail(60)), use_container_width=True)
        st.subheader("Broker rewards by level")
        st.bar_chart(engine.metrics.rewards_by_level().set_index("level"))
        rewards_df = engine.metrics.rewards_df()
        if not rewards_df.empty:
            latest = rewards_df[rewards_df["day"] == rewards_df["day"].max()]
            st.caption(f"Layer rewards on day {int(latest['day'].max())}")
            st.dataframe(_format_table_numbers(latest), use_container_width=True)

with tab_trading:
    st.subheader("Trade calculator")
    t1, t2, t3 = st.columns(3)
    calc_tier = t1.selectbox("Tier", list(STAKING_TIERS), key="calc_tier")
    calc_fund = t2.number_input("Trading fund (USDC)", min_value=0.0, value=100.0, step=10.0)
    calc_rate = t3.number_input("Profit rate (%)", min_value=0.0, max_value=100.0, value=2.0, step=0.1)
    calc_cfg = engine.tier_config(calc_tier)
    if calc_cfg is not None:
        trade = calculate_trade(calc_fund, calc_rate / 100.0, calc_cfg.trading_fee_rate,
                                calc_cfg.profit_share_ratio, engine.cfg, engine.current_price)
        _render_kpi_grid([
            ("Gross profit", format_currency(trade.gross_profit)),
            ("Trading fee", format_currency(trade.trading_fee)),
            ("User profit", format_currency(trade.user_profit)),
            ("AF for fee", format_amount(trade.af_consumed_for_fee, 4)),
            ("Platform profit", format_currency(trade.platform_profit)),
            ("Broker profit", format_currency(trade.broker_profit)),
            ("Buyback", format_currency(trade.buyback_amount)),
            ("Forex reserve", format_currency(trade.forex_reserve)),
        ])

    st.subheader("Trade history")
    if not engine.trade_records:
        st.info("No trades yet.")
    else:
        trades_df = pd.DataFrame([t.to_dict() for t in engine.trade_records])
        st.caption(f"Most recent {len(trades_df):,} trades; totals below cover the whole run.")
        _render_kpi_grid([
            ("User profit", format_currency(engine.stats.total_user_profit)),
            ("Platform profit", format_currency(engine.stats.total_platform_profit)),
            ("Broker profit", format_currency(engine.stats.total_broker_profit)),
            ("AF consumed (recent)", format_amount(trades_df["af_consumed"].sum())),
        ])
        per_day = trades_df.groupby("day")[["user_profit", "platform_profit", "broker_profit"]].sum()
        st.bar_chart(per_day)
        st.dataframe(_format_table_numbers(trades_df.tail(200)), use_container_width=True)

with tab_amm:
    pool = engine.pool
    _render_kpi_grid([
        ("USDC reserve", format_currency(pool.usdc_balance)),
        ("AF reserve", format_amount(pool.af_balance)),
        ("AF price", format_currency(engine.current_price)),
        ("k", f"{pool.k:,.0f}"),
    ])
    if engine.is_terminal:
        st.warning("The pool has no AF reserve; trading is disabled.")
    a1, a2 = st.columns(2)
    with a1:
        usdc_in = st.number_input("Buy with USDC", min_value=0.0, value=1000.0, step=100.0)
        preview = amm.buy(usdc_in, pool)
        st.caption(f"Preview: {format_amount(preview.amount_out, 4)} AF at "
                   f"{format_currency(preview.effective_price)}, impact {format_percent(preview.price_impact)}")
        if st.button("Buy AF"):
            quote = engine.buy(usdc_in)
            if quote is not None:
                st.success(f"Received {format_amount(quote.amount_out, 4)} AF, impact {format_percent(quote.price_impact)}")
    with a2:
        af_in = st.number_input("Sell AF", min_value=0.0, value=100.0, step=10.0)
        preview = amm.sell(af_in, pool)
        st.caption(f"Preview: {format_currency(preview.amount_out)} at "
                   f"{format_currency(preview.effective_price)}, impact {format_percent(preview.price_impact)}")
        if st.button("Sell AF"):
            quote = engine.sell(af_in)
            if quote is not None:
                st.success(f"Received {format_currency(quote.amount_out)}, impact {format_percent(quote.price_impact)}")

with tab_events:
    events = engine.log.tail(300)
    if not events:
        st.caption("No events yet.")
    else:
        ev_df = pd.DataFrame([{
            "day": e.day,
            "event": e.event_type,
            "order_id": e.order_id or "",
            "amount": e.amount,
            "meta": _format_event_meta(e.meta),
        } for e in reversed(events)])
        st.dataframe(ev_df, use_container_width=True)
