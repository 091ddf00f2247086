from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Any, List
import pandas as pd

@dataclass
class MetricsStore:
    daily_rows: List[Dict[str, Any]] = field(default_factory=list)
    reward_rows: List[Dict[str, Any]] = field(default_factory=list)

    def add_daily(self, row: Dict[str, Any]) -> None:
        self.daily_rows.append(row)

    def add_reward_rows(self, rows: List[Dict[str, Any]]) -> None:
        self.reward_rows.extend(rows)

    def clear(self) -> None:
        self.daily_rows.clear()
        self.reward_rows.clear()

    def daily_df(self) -> pd.DataFrame:
        return pd.DataFrame(self.daily_rows)

    def rewards_df(self) -> pd.DataFrame:
        return pd.DataFrame(self.reward_rows)

    def rewards_by_level(self) -> pd.DataFrame:
        df = self.rewards_df()
        if df.empty:
            return pd.DataFrame(columns=["level", "af_released"])
        return df.groupby("level", as_index=False)["af_released"].sum()
