"""Greenhouse-gas tax signal applied uniformly to every region."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

import numpy as np

from market_share.errors import ModelStructureError

from .model_time import ModelTime


@dataclass(slots=True)
class GHGPolicy:
    """Carbon tax per period, in currency per unit of emissions."""

    name: str
    taxes: np.ndarray
    market: str = "global"

    @classmethod
    def from_mapping(
        cls,
        name: str,
        taxes: float | Mapping[int | str, float],
        time: ModelTime,
        *,
        market: str = "global",
    ) -> "GHGPolicy":
        values = time.to_periods(taxes, label=f"{name} taxes")
        if np.any(values < 0):
            raise ModelStructureError(f"Taxes for '{name}' must be non-negative.")
        return cls(name=name, taxes=values, market=market)

    def tax(self, period: int) -> float:
        if not 0 <= period < self.taxes.shape[0]:
            raise ModelStructureError(
                f"Policy '{self.name}' has no tax for period {period}."
            )
        return float(self.taxes[period])
