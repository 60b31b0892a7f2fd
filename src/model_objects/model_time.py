"""Model time horizon shared by every entity that owns per-period arrays."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

import numpy as np
import pandas as pd

from market_share.errors import ModelStructureError, PeriodIndexError

DEFAULT_HORIZON: Mapping[str, int] = {"start": 2005, "end": 2100, "step": 5}

YearValues = float | int | Mapping[int | str, float] | None


@dataclass(frozen=True, slots=True)
class ModelTime:
    """Ordered model years; period ``i`` covers ``years[i]``."""

    years: tuple[int, ...]

    def __post_init__(self) -> None:
        if not self.years:
            raise ModelStructureError("Model time needs at least one period.")
        if any(later <= earlier for earlier, later in zip(self.years, self.years[1:])):
            raise ModelStructureError(f"Model years must increase strictly: {self.years}.")

    @classmethod
    def from_config(cls, cfg: Mapping[str, object] | None) -> "ModelTime":
        """Build the horizon from ``{start, end, step}`` or an explicit ``years`` list."""
        cfg = cfg or {}
        explicit = cfg.get("years")
        if explicit:
            return cls(tuple(int(year) for year in explicit))  # type: ignore[union-attr]

        values: dict[str, object] = dict(DEFAULT_HORIZON)
        for key in ("start", "end", "step"):
            if key in cfg:
                values[key] = cfg[key]
        start = int(values["start"])  # type: ignore[arg-type]
        end = int(values["end"])  # type: ignore[arg-type]
        step = int(values["step"])  # type: ignore[arg-type]
        if start > end:
            raise ValueError("'start' year must not be after 'end' year")
        if step <= 0:
            raise ValueError("'step' must be positive")
        return cls(tuple(range(start, end + 1, step)))

    @property
    def n_periods(self) -> int:
        return len(self.years)

    def check_period(self, period: int) -> int:
        if not 0 <= period < len(self.years):
            raise PeriodIndexError(
                f"Period {period} outside model horizon 0-{len(self.years) - 1}."
            )
        return period

    def year(self, period: int) -> int:
        return self.years[self.check_period(period)]

    def period(self, year: int) -> int:
        try:
            return self.years.index(int(year))
        except ValueError as exc:
            raise PeriodIndexError(f"Year {year} is not a model year.") from exc

    def new_array(self, fill: float = 0.0, dtype: type = float) -> np.ndarray:
        return np.full(len(self.years), fill, dtype=dtype)

    def check_array(self, values: np.ndarray, label: str) -> np.ndarray:
        """Validate that ``values`` has one slot per period."""
        if values.ndim != 1 or values.shape[0] != len(self.years):
            raise ModelStructureError(
                f"{label} has {values.shape[0] if values.ndim else 0} periods; "
                f"expected {len(self.years)}."
            )
        return values

    def to_periods(
        self,
        values: YearValues,
        *,
        default: float = 0.0,
        interpolate: bool = True,
        label: str = "values",
    ) -> np.ndarray:
        """Expand a scalar or a ``{year: value}`` mapping onto the model periods.

        With ``interpolate`` the mapping is linearly interpolated between the
        given years and held constant outside them; otherwise only the listed
        years are set and every other period keeps ``default``.
        """
        if values is None:
            return self.new_array(default)
        if isinstance(values, np.ndarray):
            return self.check_array(values.astype(float), label)
        if not isinstance(values, Mapping):
            return self.new_array(float(values))

        mapping = {int(key): float(value) for key, value in values.items()}
        if not mapping:
            return self.new_array(default)
        if not interpolate:
            result = self.new_array(default)
            for year, value in mapping.items():
                if year not in self.years:
                    raise ValueError(f"{label}: year {year} is not a model year {self.years}.")
                result[self.years.index(year)] = value
            return result

        series = pd.Series(mapping, dtype=float).sort_index()
        idx = pd.Index(self.years)
        series = series.reindex(idx.union(series.index))
        series = series.interpolate(method="index").ffill().bfill()
        return series.reindex(idx).to_numpy(dtype=float)
