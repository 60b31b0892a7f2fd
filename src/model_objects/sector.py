"""Sectors: the market for one good inside a region."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Sequence

import numpy as np

from calibration.consistency import (
    CalibrationFailure,
    sector_cal_consistency,
    sector_calibration_failures,
)
from calibration.reconciliation import (
    calibrate_sector,
    finalize_calibration_period,
    reserve_fixed_supply,
)
from calibration.settings import CalibrationSettings
from market_share.constants import SHARE_SUM_TOLERANCE, UNDEFINED_PRICE
from market_share.errors import ModelStructureError
from market_share.logit import ShareAllocation, allocate_options

from .model_time import ModelTime
from .subsector import PriceLookup, Subsector

if TYPE_CHECKING:  # pragma: no cover
    from .visitor import ModelVisitor

LOGGER = logging.getLogger(__name__)


class Sector:
    """Produces one good and splits its demand among subsectors.

    The price pass (:meth:`calc_price`) evaluates subsector prices and shares;
    the output pass (:meth:`set_output`) reserves fixed supply, re-runs the
    share allocation around it, recalibrates when calibration is on, hands
    each subsector its part of the demand and reprices from the final shares.
    """

    def __init__(
        self,
        name: str,
        time: ModelTime,
        subsectors: Sequence[Subsector],
        *,
        region_name: str = "",
    ) -> None:
        self.name = name
        self.time = time
        self.region_name = region_name
        self.subsectors: tuple[Subsector, ...] = tuple(subsectors)
        if not self.subsectors:
            raise ModelStructureError(f"Sector '{name}' has no subsectors.")
        names = [subsector.name for subsector in self.subsectors]
        if len(set(names)) != len(names):
            raise ModelStructureError(f"Sector '{name}' has duplicate subsector names.")
        for subsector in self.subsectors:
            if subsector.time != time:
                raise ModelStructureError(
                    f"Subsector '{subsector.name}' uses a different time horizon than '{name}'."
                )
            subsector.region_name = region_name
            subsector.sector_name = name

        self.price = time.new_array(UNDEFINED_PRICE)
        self.demand = time.new_array()
        self.output = time.new_array()
        self.unmet_demand = time.new_array()
        self.emissions = time.new_array()
        self.gdp_scaler = time.new_array(1.0)

    @property
    def good(self) -> str:
        return self.name

    def init_calc(self, period: int) -> None:
        self.time.check_period(period)
        for subsector in self.subsectors:
            subsector.init_calc(period)
        self.demand[period] = 0.0
        self.output[period] = 0.0
        self.unmet_demand[period] = 0.0
        self.emissions[period] = 0.0

    def apply_carbon_tax(self, tax: float, period: int) -> None:
        for subsector in self.subsectors:
            subsector.apply_carbon_tax(tax, period)

    # Shares and price ---------------------------------------------------

    def _apply_allocation(self, allocation: ShareAllocation, period: int) -> None:
        for subsector, share, limited in zip(
            self.subsectors, allocation.shares, allocation.capacity_limited
        ):
            subsector.set_share(float(share), period)
            subsector.set_cap_limit_status(bool(limited), period)

    def calc_price(self, period: int, price_of: PriceLookup, gdp_scaler: float = 1.0) -> float:
        """Price every subsector, allocate shares and return the sector price."""
        self.gdp_scaler[period] = gdp_scaler
        options = [
            subsector.calc_share(period, price_of, gdp_scaler) for subsector in self.subsectors
        ]
        allocation = allocate_options(options)
        self._apply_allocation(allocation, period)
        return self._price_from_shares(period)

    def _price_from_shares(self, period: int) -> float:
        """Share-weighted subsector price, falling back to fixed supply weights."""
        shares = np.array([subsector.get_share(period) for subsector in self.subsectors])
        prices = np.array([subsector.get_price(period) for subsector in self.subsectors])
        priced = (shares > 0) & np.isfinite(prices)
        if not priced.any():
            # Only fixed supply left: price it by fixed output.
            supplies = np.array(
                [subsector.get_fixed_supply(period) for subsector in self.subsectors]
            )
            priced = (supplies > 0) & np.isfinite(prices)
            shares = supplies
        if priced.any():
            weights = shares[priced] / shares[priced].sum()
            self.price[period] = float(np.dot(weights, prices[priced]))
        else:
            self.price[period] = UNDEFINED_PRICE
        return float(self.price[period])

    def calc_shares(self, period: int, reserved: Sequence[float] | np.ndarray | None = None) -> ShareAllocation:
        """Re-run the subsector allocation with current prices and share weights."""
        options = [
            subsector.choice_option(period, float(self.gdp_scaler[period]))
            for subsector in self.subsectors
        ]
        allocation = allocate_options(options, reserved=reserved)
        self._apply_allocation(allocation, period)
        return allocation

    def get_price(self, period: int) -> float:
        return float(self.price[period])

    # Output -------------------------------------------------------------

    def set_output(
        self,
        demand: float,
        period: int,
        calibration: CalibrationSettings | None = None,
    ) -> dict[str, float]:
        """Serve ``demand`` for ``period`` and return the fuel inputs it requires."""
        if demand < 0 or math.isnan(demand):
            raise ModelStructureError(
                f"Sector '{self.region_name}/{self.name}' received invalid demand {demand}."
            )
        self.demand[period] = demand
        reserved = reserve_fixed_supply(self, demand, period, calibration)
        allocation = self.calc_shares(period, reserved=reserved)
        if calibration is not None and calibration.enabled:
            allocation = calibrate_sector(self, demand, period, reserved, allocation, calibration)

        self.unmet_demand[period] = allocation.unallocated * demand
        if self.unmet_demand[period] > SHARE_SUM_TOLERANCE:
            LOGGER.warning(
                "%s/%s leaves %.6g of demand unserved in period %d.",
                self.region_name,
                self.name,
                self.unmet_demand[period],
                period,
            )

        fuel_use: dict[str, float] = {}
        for subsector in self.subsectors:
            consumption = subsector.set_output(
                subsector.get_share(period) * demand, period, calibration
            )
            for fuel, amount in consumption.items():
                fuel_use[fuel] = fuel_use.get(fuel, 0.0) + amount
        self.output[period] = sum(subsector.get_output(period) for subsector in self.subsectors)
        # Reprice from the final shares.
        self._price_from_shares(period)
        return fuel_use

    def get_demand(self, period: int) -> float:
        return float(self.demand[period])

    def get_output(self, period: int) -> float:
        return float(self.output[period])

    def get_input(self, period: int) -> float:
        return float(sum(subsector.get_input(period) for subsector in self.subsectors))

    # Emissions ----------------------------------------------------------

    def calc_emissions(self, period: int) -> dict[str, float]:
        totals: dict[str, float] = {}
        for subsector in self.subsectors:
            for gas, amount in subsector.emission(period).items():
                totals[gas] = totals.get(gas, 0.0) + amount
        self.emissions[period] = totals.get("CO2", 0.0)
        return totals

    def get_emissions(self, period: int) -> float:
        return float(self.emissions[period])

    def get_total_carbon_tax_paid(self, period: int) -> float:
        return float(
            sum(subsector.get_total_carbon_tax_paid(period) for subsector in self.subsectors)
        )

    # Calibration --------------------------------------------------------

    def get_total_cal_outputs(self, period: int) -> float:
        return float(
            sum(
                subsector.get_total_cal_outputs(period)
                for subsector in self.subsectors
                if subsector.get_calibration_status(period)
            )
        )

    def calibration_failures(self, period: int, accuracy: float) -> list[CalibrationFailure]:
        return sector_calibration_failures(self, period, accuracy)

    def is_all_calibrated(self, period: int, accuracy: float) -> bool:
        return not self.calibration_failures(period, accuracy)

    def check_cal_consistency(self, period: int, tolerance: float) -> bool:
        return sector_cal_consistency(self, period, tolerance)

    def post_calc(self, period: int, calibration: CalibrationSettings | None = None) -> None:
        if calibration is not None and calibration.enabled:
            finalize_calibration_period(self, period, calibration)

    def accept(self, visitor: ModelVisitor, period: int) -> None:
        visitor.start_visit_sector(self, period)
        for subsector in self.subsectors:
            subsector.accept(visitor, period)
        visitor.end_visit_sector(self, period)
