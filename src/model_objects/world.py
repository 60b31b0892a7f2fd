"""World: owner of all regions and the single ``calc`` entry point for a solver."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Iterable

import numpy as np
import pandas as pd

from calibration.settings import CalibrationSettings
from climate_module.base import ClimateModel, NullClimateModel
from market_share.errors import ModelStructureError

from .calc_counter import CalcCounter
from .ghg_policy import GHGPolicy
from .model_time import ModelTime
from .region import Region
from .region_index import RegionAtom, RegionIndex

if TYPE_CHECKING:  # pragma: no cover
    from .visitor import ModelVisitor

LOGGER = logging.getLogger("equilibrium")
if not LOGGER.handlers:
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    LOGGER.addHandler(handler)
LOGGER.setLevel(logging.INFO)
LOGGER.propagate = False


class World:
    """Regions, their index, the calibration flag, a calc counter and a climate model.

    Regions are independent within one :meth:`calc`; with ``max_workers > 1``
    they are computed on a thread pool. The region index lock is held for the
    whole call, so adding a region never overlaps a calculation.
    """

    def __init__(
        self,
        time: ModelTime,
        *,
        calibration: CalibrationSettings | None = None,
        climate_model: ClimateModel | None = None,
        calc_counter: CalcCounter | None = None,
        max_workers: int = 1,
    ) -> None:
        if max_workers < 1:
            raise ValueError("solver.max_workers must be at least 1.")
        self.time = time
        self.calibration = calibration or CalibrationSettings()
        self.climate_model: ClimateModel = climate_model or NullClimateModel()
        self.calc_counter = calc_counter or CalcCounter()
        self.max_workers = int(max_workers)
        self.regions: list[Region] = []
        self.policy: GHGPolicy | None = None
        self.completed_periods: set[int] = set()
        self._index = RegionIndex()

    # Structure ----------------------------------------------------------

    def add_region(self, region: Region) -> None:
        if region.time != self.time:
            raise ModelStructureError(
                f"Region '{region.name}' uses a different time horizon than the world."
            )
        with self._index.exclusive():
            atoms = [existing.atom for existing in self.regions] + [region.atom]
            self._index.rebuild(atoms)
            self.regions.append(region)
            if self.policy is not None:
                region.set_tax(self.policy)

    def get_region(self, atom: RegionAtom | str) -> Region:
        position = self._index.position(_as_atom(atom))
        if position is None:
            raise ModelStructureError(f"Region '{atom}' is not part of this model.")
        return self.regions[position]

    def get_region_ids(self) -> list[RegionAtom]:
        return [atom for atom, _ in self._index.items()]

    def get_output_region_map(self) -> dict[str, int]:
        """Region names mapped to their positions, for output writers."""
        return {atom.name: position for atom, position in self._index.items()}

    # Calculation ----------------------------------------------------------

    def init_calc(self, period: int) -> None:
        self.time.check_period(period)
        for region in self.regions:
            region.init_calc(period)

    def calc(self, period: int, regions_to_calc: Iterable[RegionAtom | str] = ()) -> None:
        """Recompute ``period`` for the given regions, or for all of them when empty.

        Regions not in this world are skipped.
        """
        self.time.check_period(period)
        requested = [_as_atom(atom) for atom in regions_to_calc]
        with self._index.exclusive():
            if requested:
                positions = self._index.positions(requested)
            else:
                positions = list(range(len(self.regions)))
            selected = [self.regions[position] for position in positions]
            self.calc_counter.increment()

            if self.max_workers > 1 and len(selected) > 1:
                with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                    futures = [
                        pool.submit(region.calc, period, self.calibration) for region in selected
                    ]
                    for future in futures:
                        future.result()
            else:
                for region in selected:
                    region.calc(period, self.calibration)

    def post_calc(self, period: int) -> None:
        self.time.check_period(period)
        for region in self.regions:
            region.post_calc(period, self.calibration)
        self.completed_periods.add(period)

    def set_calc_counter(self, counter: CalcCounter) -> None:
        self.calc_counter = counter

    # Calibration ----------------------------------------------------------

    def turn_calibrations_on(self) -> None:
        self.calibration.enabled = True

    def turn_calibrations_off(self) -> None:
        self.calibration.enabled = False

    def get_calibration_setting(self) -> bool:
        return self.calibration.enabled

    def is_all_calibrated(
        self, period: int, cal_accuracy: float | None = None, print_warnings: bool = False
    ) -> bool:
        """True if every calibrated subsector and technology is within ``cal_accuracy``."""
        self.time.check_period(period)
        accuracy = self.calibration.accuracy if cal_accuracy is None else cal_accuracy
        failures = []
        for region in self.regions:
            failures.extend(region.calibration_failures(period, accuracy))
        if print_warnings:
            for failure in failures:
                LOGGER.warning("Calibration missed: %s", failure.describe())
        return not failures

    def check_cal_consistency(self, period: int, tolerance: float | None = None) -> bool:
        tolerance = self.calibration.accuracy if tolerance is None else tolerance
        return all(region.check_cal_consistency(period, tolerance) for region in self.regions)

    # Policy, emissions and climate ----------------------------------------

    def set_tax(self, policy: GHGPolicy | None) -> None:
        if policy is not None:
            self.time.check_array(policy.taxes, f"Policy '{policy.name}' taxes")
        self.policy = policy
        for region in self.regions:
            region.set_tax(policy)

    def get_emissions(self, period: int) -> float:
        return float(sum(region.get_emissions(period) for region in self.regions))

    def get_emissions_quantity_curves(self, periods: Iterable[int] | None = None) -> pd.Series:
        """World CO₂ emissions by model year."""
        selected = list(range(self.time.n_periods)) if periods is None else list(periods)
        return pd.Series(
            [self.get_emissions(period) for period in selected],
            index=pd.Index([self.time.year(period) for period in selected], name="year"),
            name="CO2",
            dtype=float,
        )

    def get_emissions_price_curves(self, periods: Iterable[int] | None = None) -> pd.Series:
        """Carbon tax by model year (zero without a policy)."""
        selected = list(range(self.time.n_periods)) if periods is None else list(periods)
        taxes = (
            np.zeros(len(selected))
            if self.policy is None
            else np.array([self.policy.tax(period) for period in selected])
        )
        return pd.Series(
            taxes,
            index=pd.Index([self.time.year(period) for period in selected], name="year"),
            name="CO2",
            dtype=float,
        )

    def get_climate_model(self) -> ClimateModel:
        return self.climate_model

    def run_climate_model(self) -> None:
        """Hand world emissions of every completed period to the climate model and run it."""
        for period in sorted(self.completed_periods):
            self.climate_model.set_emissions("CO2", self.time.year(period), self.get_emissions(period))
        LOGGER.info("Running climate model on %d model period(s).", len(self.completed_periods))
        self.climate_model.run_model()

    def accept(self, visitor: ModelVisitor, period: int) -> None:
        visitor.start_visit_world(self, period)
        for region in self.regions:
            region.accept(visitor, period)
        visitor.end_visit_world(self, period)


def _as_atom(value: RegionAtom | str) -> RegionAtom:
    return value if isinstance(value, RegionAtom) else RegionAtom(str(value))
