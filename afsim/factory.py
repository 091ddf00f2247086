from __future__ import annotations
from datetime import datetime, timezone
from typing import Iterable, Optional
import logging

from .config import SystemConfig
from .core import StakingOrder

logger = logging.getLogger(__name__)


class OrderFactory:
    def __init__(self, cfg: SystemConfig) -> None:
        self.cfg = cfg
        self.order_counter = 0
        self.trade_counter = 0

    def _new_order_id(self) -> str:
        self.order_counter += 1
        return f"order_{self.order_counter:04d}"

    def new_trade_id(self) -> str:
        self.trade_counter += 1
        return f"trade_{self.trade_counter:06d}"

    def sync_counters(self, order_ids: Iterable[str], trade_count: int = 0) -> None:
        """Move the counters past ids restored from storage."""
        for oid in order_ids:
            prefix, _, num = oid.partition("_")
            if prefix == "order" and num.isdigit():
                self.order_counter = max(self.order_counter, int(num))
        self.trade_counter = max(self.trade_counter, int(trade_count))

    def create_order(self, tier: int, principal: float, start_date: Optional[str] = None) -> Optional[StakingOrder]:
        """
        Build an active order for a configured tier.

        The trading fund and staking length are fixed at creation time. The
        profit share is recorded for display only: daily trades read the
        profit share and fee rate from the current tier table, so tier edits
        apply to existing orders from the next day on.
        """
        tier_cfg = self.cfg.tier_config(tier)
        if tier_cfg is None:
            logger.warning("create_order: unknown tier %s", tier)
            return None
        if principal < 0:
            logger.warning("create_order: negative principal %.2f", principal)
            return None

        return StakingOrder(
            order_id=self._new_order_id(),
            tier=tier,
            principal=float(principal),
            trading_fund=float(principal) * tier_cfg.trading_fund_multiplier,
            staking_days=self.cfg.staking_days(),
            profit_share_ratio=tier_cfg.profit_share_ratio,
            start_date=start_date or datetime.now(timezone.utc).isoformat(),
        )
