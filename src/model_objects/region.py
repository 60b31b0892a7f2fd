"""Regions: an ordered set of sectors plus the prices and final demands around them."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Mapping, Sequence

import numpy as np

from calibration.consistency import CalibrationFailure
from calibration.settings import CalibrationSettings
from market_share.constants import UNDEFINED_PRICE
from market_share.errors import ModelStructureError

from .ghg_policy import GHGPolicy
from .model_time import ModelTime, YearValues
from .region_index import RegionAtom
from .sector import Sector

if TYPE_CHECKING:  # pragma: no cover
    from .visitor import ModelVisitor

LOGGER = logging.getLogger(__name__)


class RegionKind(str, Enum):
    """How a region obtains the final demand for its goods."""

    PARTIAL_EQUILIBRIUM = "partial_equilibrium"
    GENERAL_EQUILIBRIUM = "general_equilibrium"

    @classmethod
    def parse(cls, value: "str | RegionKind") -> "RegionKind":
        if isinstance(value, RegionKind):
            return value
        key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
        aliases = {"pe": cls.PARTIAL_EQUILIBRIUM, "ge": cls.GENERAL_EQUILIBRIUM}
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError as exc:
            options = ", ".join(kind.value for kind in cls)
            raise ValueError(f"Unknown region kind '{value}'. Expected one of: {options}.") from exc


@dataclass(slots=True)
class FinalDemand:
    """Base demand for one good and its price and income elasticities."""

    good: str
    base: np.ndarray
    price_elasticity: float = 0.0
    income_elasticity: float = 0.0

    @classmethod
    def from_config(cls, good: str, cfg: Mapping[str, object] | float, time: ModelTime) -> "FinalDemand":
        if not isinstance(cfg, Mapping):
            cfg = {"base": cfg}
        if "base" not in cfg:
            raise KeyError(f"Final demand for '{good}' needs a 'base' entry.")
        base = time.to_periods(cfg["base"], label=f"{good} final demand")  # type: ignore[arg-type]
        if np.any(base < 0):
            raise ModelStructureError(f"Final demand for '{good}' must be non-negative.")
        return cls(
            good=good,
            base=base,
            price_elasticity=float(cfg.get("price_elasticity", 0.0)),  # type: ignore[arg-type]
            income_elasticity=float(cfg.get("income_elasticity", 0.0)),  # type: ignore[arg-type]
        )


class Region:
    """A region computing prices upstream-first and outputs downstream-first.

    ``sectors`` must be in dependency order: a technology may only use a good
    produced in the region if the producing sector comes earlier in the list.
    Goods not produced in the region are priced exogenously.
    """

    def __init__(
        self,
        name: str,
        time: ModelTime,
        sectors: Sequence[Sector],
        *,
        kind: RegionKind | str = RegionKind.PARTIAL_EQUILIBRIUM,
        gdp_per_capita: YearValues = 1.0,
        prices: Mapping[str, YearValues] | None = None,
        final_demand: Mapping[str, FinalDemand] | None = None,
    ) -> None:
        self.name = name
        self.atom = RegionAtom(name)
        self.time = time
        self.kind = RegionKind.parse(kind)
        self.sectors: tuple[Sector, ...] = tuple(sectors)
        self._by_good: dict[str, Sector] = {}
        for sector in self.sectors:
            if sector.name in self._by_good:
                raise ModelStructureError(f"Region '{name}' has duplicate sector '{sector.name}'.")
            if sector.time != time:
                raise ModelStructureError(
                    f"Sector '{sector.name}' uses a different time horizon than region '{name}'."
                )
            sector.region_name = name
            for subsector in sector.subsectors:
                subsector.region_name = name
            self._by_good[sector.name] = sector

        self.gdp_per_capita = time.to_periods(gdp_per_capita, label=f"{name} GDP per capita")
        if np.any(self.gdp_per_capita <= 0):
            raise ModelStructureError(f"Region '{name}' GDP per capita must be positive.")

        self.prices: dict[str, np.ndarray] = {}
        for good, values in (prices or {}).items():
            if good in self._by_good:
                raise ModelStructureError(
                    f"Region '{name}' sets an exogenous price for '{good}', which it produces."
                )
            self.prices[good] = time.to_periods(values, label=f"{name} price of {good}")

        self.final_demand: dict[str, FinalDemand] = dict(final_demand or {})
        for good, demand in self.final_demand.items():
            if good not in self._by_good:
                raise ModelStructureError(
                    f"Region '{name}' has final demand for '{good}', which it does not produce."
                )
            time.check_array(demand.base, f"{name} final demand for {good}")
        # Demand handed in by the driver of a general-equilibrium region.
        self.supplied_demand: dict[str, np.ndarray] = {
            good: demand.base.copy() for good, demand in self.final_demand.items()
        }
        self.input_demand: dict[str, np.ndarray] = {}
        self.emissions = time.new_array()
        self.policy: GHGPolicy | None = None
        self._validate_order()

    def _validate_order(self) -> None:
        position = {sector.name: idx for idx, sector in enumerate(self.sectors)}
        for idx, sector in enumerate(self.sectors):
            for subsector in sector.subsectors:
                for tech in subsector.technologies:
                    if tech.fuel is None:
                        continue
                    upstream = position.get(tech.fuel)
                    if upstream is None:
                        if tech.fuel not in self.prices:
                            raise ModelStructureError(
                                f"'{self.name}/{sector.name}/{subsector.name}/{tech.name}' uses "
                                f"'{tech.fuel}', which is neither produced nor priced in the region."
                            )
                    elif upstream >= idx:
                        raise ModelStructureError(
                            f"Sector '{sector.name}' consumes '{tech.fuel}' but is not listed "
                            f"after it in region '{self.name}'."
                        )

    @property
    def produced_goods(self) -> list[str]:
        return [sector.name for sector in self.sectors]

    def get_sector(self, good: str) -> Sector:
        try:
            return self._by_good[good]
        except KeyError as exc:
            raise ModelStructureError(f"Region '{self.name}' has no sector '{good}'.") from exc

    # Inputs from the driver ----------------------------------------------

    def set_tax(self, policy: GHGPolicy | None) -> None:
        if policy is not None:
            self.time.check_array(policy.taxes, f"Policy '{policy.name}' taxes")
        self.policy = policy

    def set_price(self, good: str, price: float, period: int) -> None:
        """Set the market price of a good the region does not produce."""
        self.time.check_period(period)
        if good in self._by_good:
            raise ModelStructureError(
                f"'{good}' is produced in region '{self.name}'; its price is computed."
            )
        if good not in self.prices:
            self.prices[good] = self.time.new_array(UNDEFINED_PRICE)
        self.prices[good][period] = price

    def get_price(self, good: str, period: int) -> float:
        if good in self._by_good:
            return self._by_good[good].get_price(period)
        if good in self.prices:
            return float(self.prices[good][period])
        raise ModelStructureError(f"Region '{self.name}' has no price for '{good}'.")

    def set_final_demand(self, good: str, demand: float, period: int) -> None:
        """Supply the final demand of a general-equilibrium region."""
        self.time.check_period(period)
        if self.kind is not RegionKind.GENERAL_EQUILIBRIUM:
            raise ModelStructureError(
                f"Region '{self.name}' computes its own final demand; it cannot be supplied."
            )
        if good not in self._by_good:
            raise ModelStructureError(f"Region '{self.name}' does not produce '{good}'.")
        if demand < 0:
            raise ModelStructureError(f"Final demand for '{good}' must be non-negative.")
        if good not in self.supplied_demand:
            self.supplied_demand[good] = self.time.new_array()
        self.supplied_demand[good][period] = demand

    def gdp_scaler(self, period: int) -> float:
        return float(self.gdp_per_capita[period] / self.gdp_per_capita[0])

    # Per-period calculation ---------------------------------------------

    def init_calc(self, period: int) -> None:
        self.time.check_period(period)
        for sector in self.sectors:
            sector.init_calc(period)
        for values in self.input_demand.values():
            values[period] = 0.0
        self.emissions[period] = 0.0

    def calc(self, period: int, calibration: CalibrationSettings | None = None) -> None:
        """Compute prices, outputs and emissions of every sector for ``period``.

        With calibration on, the price and output passes are repeated until a
        pass leaves every share weight unchanged, so a repeated call with the
        same inputs reproduces the same arrays.
        """
        self.time.check_period(period)
        tax = self.policy.tax(period) if self.policy is not None else 0.0
        for sector in self.sectors:
            sector.apply_carbon_tax(tax, period)

        calibrating = calibration is not None and calibration.enabled
        passes = calibration.max_iterations if calibrating else 1
        for _ in range(passes):
            before = self._share_weights(period)
            self._solve_pass(period, calibration)
            if not calibrating or np.array_equal(before, self._share_weights(period)):
                break
        else:
            LOGGER.debug(
                "Share weights in region '%s' still moved after %d passes in period %d.",
                self.name,
                passes,
                period,
            )

        self.emissions[period] = sum(
            sector.calc_emissions(period).get("CO2", 0.0) for sector in self.sectors
        )

    def _share_weights(self, period: int) -> np.ndarray:
        weights: list[float] = []
        for sector in self.sectors:
            for subsector in sector.subsectors:
                weights.append(float(subsector.share_weight[period]))
                weights.extend(float(tech.share_weight[period]) for tech in subsector.technologies)
        return np.array(weights)

    def _solve_pass(self, period: int, calibration: CalibrationSettings | None) -> None:
        gdp_scaler = self.gdp_scaler(period)
        for sector in self.sectors:
            sector.calc_price(period, lambda good: self.get_price(good, period), gdp_scaler)

        demand = self.calc_final_demand(period)
        for values in self.input_demand.values():
            values[period] = 0.0
        for sector in reversed(self.sectors):
            fuel_use = sector.set_output(demand.get(sector.name, 0.0), period, calibration)
            for good, amount in fuel_use.items():
                if good in self._by_good:
                    demand[good] = demand.get(good, 0.0) + amount
                else:
                    if good not in self.input_demand:
                        self.input_demand[good] = self.time.new_array()
                    self.input_demand[good][period] += amount

    def calc_final_demand(self, period: int) -> dict[str, float]:
        """Final demand per produced good, by region kind."""
        if self.kind is RegionKind.GENERAL_EQUILIBRIUM:
            return {good: float(values[period]) for good, values in self.supplied_demand.items()}

        income_ratio = self.gdp_scaler(period)
        demand: dict[str, float] = {}
        for good, final in self.final_demand.items():
            sector = self._by_good[good]
            price, base_price = sector.get_price(period), sector.get_price(0)
            price_ratio = 1.0
            if period > 0 and price > 0 and base_price > 0 and math.isfinite(price) and math.isfinite(base_price):
                price_ratio = price / base_price
            demand[good] = float(
                final.base[period]
                * price_ratio ** final.price_elasticity
                * income_ratio ** final.income_elasticity
            )
        return demand

    def post_calc(self, period: int, calibration: CalibrationSettings | None = None) -> None:
        for sector in self.sectors:
            sector.post_calc(period, calibration)

    # Results ------------------------------------------------------------

    def get_demand(self, good: str, period: int) -> float:
        if good in self._by_good:
            return self._by_good[good].get_demand(period)
        if good in self.input_demand:
            return float(self.input_demand[good][period])
        return 0.0

    def get_emissions(self, period: int) -> float:
        return float(self.emissions[period])

    def calibration_failures(self, period: int, accuracy: float) -> list[CalibrationFailure]:
        failures: list[CalibrationFailure] = []
        for sector in self.sectors:
            failures.extend(sector.calibration_failures(period, accuracy))
        return failures

    def is_all_calibrated(self, period: int, accuracy: float) -> bool:
        return not self.calibration_failures(period, accuracy)

    def check_cal_consistency(self, period: int, tolerance: float) -> bool:
        consistent = True
        for sector in self.sectors:
            if not sector.check_cal_consistency(period, tolerance):
                LOGGER.debug(
                    "Calibrated and fixed output of %s/%s do not fit its demand in period %d.",
                    self.name,
                    sector.name,
                    period,
                )
                consistent = False
        return consistent

    def accept(self, visitor: ModelVisitor, period: int) -> None:
        visitor.start_visit_region(self, period)
        for sector in self.sectors:
            sector.accept(visitor, period)
        visitor.end_visit_region(self, period)
