"""
Constant-product pool pricing the AF token against USDC.

A fixed slippage haircut is taken off the input side of every trade. The
haircut is not retained by the pool; it models execution cost. Functions never
mutate the pool they are given, they return a new LPPoolState. Degenerate
inputs (empty reserves, zero amounts) degrade to zero output and an unchanged
pool instead of raising. A pool with no AF reserve is terminal: nothing trades
against it.
"""
from __future__ import annotations
from dataclasses import dataclass

from .config import AMM_SLIPPAGE
from .core import LPPoolState


@dataclass(frozen=True)
class TradeQuote:
    amount_out: float
    new_pool: LPPoolState
    price_impact: float     # signed, (new - old) / old
    effective_price: float  # USDC per AF actually paid or received

    def to_dict(self) -> dict:
        return {
            "amount_out": float(self.amount_out),
            "new_pool": self.new_pool.to_dict(),
            "price_impact": float(self.price_impact),
            "effective_price": float(self.effective_price),
        }


def price(pool: LPPoolState) -> float:
    if pool.af_balance <= 0:
        return 0.0
    return pool.usdc_balance / pool.af_balance


def _impact(old_price: float, new_price: float) -> float:
    if old_price <= 0:
        return 0.0
    return (new_price - old_price) / old_price


def _unchanged(pool: LPPoolState) -> TradeQuote:
    return TradeQuote(amount_out=0.0, new_pool=pool, price_impact=0.0, effective_price=0.0)


def buy(usdc_in: float, pool: LPPoolState, slippage: float = AMM_SLIPPAGE) -> TradeQuote:
    """Swap USDC into the pool for AF; k is held constant."""
    if is_terminal(pool):
        return _unchanged(pool)
    effective_in = usdc_in * (1.0 - slippage)
    new_usdc = pool.usdc_balance + effective_in
    if new_usdc <= 0:
        return _unchanged(pool)
    new_af = pool.k / new_usdc
    if new_af <= 0:
        return _unchanged(pool)
    af_out = pool.af_balance - new_af

    new_price = new_usdc / new_af
    new_pool = LPPoolState(usdc_balance=new_usdc, af_balance=new_af, af_price=new_price, k=pool.k)
    effective_price = effective_in / af_out if af_out != 0 else 0.0
    return TradeQuote(
        amount_out=af_out,
        new_pool=new_pool,
        price_impact=_impact(price(pool), new_price),
        effective_price=effective_price,
    )


def sell(af_in: float, pool: LPPoolState, slippage: float = AMM_SLIPPAGE) -> TradeQuote:
    """Swap AF into the pool for USDC; k is held constant."""
    if is_terminal(pool):
        return _unchanged(pool)
    new_af = pool.af_balance + af_in
    if new_af <= 0:
        return _unchanged(pool)
    new_usdc = pool.k / new_af
    if new_usdc <= 0:
        return _unchanged(pool)
    usdc_out = pool.usdc_balance - new_usdc
    proceeds = usdc_out * (1.0 - slippage)

    new_price = new_usdc / new_af
    new_pool = LPPoolState(usdc_balance=new_usdc, af_balance=new_af, af_price=new_price, k=pool.k)
    effective_price = proceeds / af_in if af_in != 0 else 0.0
    return TradeQuote(
        amount_out=proceeds,
        new_pool=new_pool,
        price_impact=_impact(price(pool), new_price),
        effective_price=effective_price,
    )


def add_liquidity(usdc_in: float, af_in: float, pool: LPPoolState) -> LPPoolState:
    """Add raw reserves (no slippage) and rebase k to the new product."""
    new_usdc = pool.usdc_balance + usdc_in
    new_af = pool.af_balance + af_in
    new_price = new_usdc / new_af if new_af > 0 else 0.0
    return LPPoolState(usdc_balance=new_usdc, af_balance=new_af, af_price=new_price, k=new_usdc * new_af)


def is_terminal(pool: LPPoolState) -> bool:
    """An empty token reserve cannot be priced or sold into meaningfully."""
    return pool.af_balance <= 0 or price(pool) <= 0
