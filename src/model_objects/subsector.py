"""Subsectors: a group of competing technologies and one option of the parent sector.

A subsector splits its output among its technologies with the same logit
allocation the sector uses to split demand among subsectors. Its price is the
share-weighted cost of its technologies.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Callable, Sequence

import numpy as np

from calibration.reconciliation import adjust_share_weight, calibrate_technologies
from calibration.settings import CalibrationSettings
from market_share.constants import DEFAULT_LOGIT_EXPONENT, SHARE_SUM_TOLERANCE, UNDEFINED_PRICE
from market_share.errors import ModelStructureError
from market_share.logit import ChoiceOption, allocate_shares

from .model_time import ModelTime, YearValues
from .technology import Technology

if TYPE_CHECKING:  # pragma: no cover
    from .visitor import ModelVisitor

LOGGER = logging.getLogger(__name__)

PriceLookup = Callable[[str], float]


class Subsector:
    def __init__(
        self,
        name: str,
        time: ModelTime,
        technologies: Sequence[Technology],
        *,
        share_weight: YearValues = 1.0,
        logit_exponent: YearValues = DEFAULT_LOGIT_EXPONENT,
        capacity_limit: YearValues = 1.0,
        fixed_share: YearValues = None,
        calibration_output: YearValues = None,
        fuel_preference_elasticity: YearValues = 0.0,
        share_weight_target: tuple[int, float] | None = None,
        region_name: str = "",
        sector_name: str = "",
    ) -> None:
        self.name = name
        self.time = time
        self.region_name = region_name
        self.sector_name = sector_name
        self.technologies: tuple[Technology, ...] = tuple(technologies)
        self.share_weight_target = share_weight_target

        self.share_weight = time.to_periods(share_weight, label=f"{name} share weight")
        self.logit_exponent = time.to_periods(logit_exponent, label=f"{name} logit exponent")
        self.capacity_limit = time.to_periods(capacity_limit, label=f"{name} capacity limit")
        self.fixed_share = time.to_periods(
            fixed_share, default=math.nan, interpolate=False, label=f"{name} fixed share"
        )
        self.calibration_value = time.to_periods(
            calibration_output, default=math.nan, interpolate=False, label=f"{name} calibration"
        )
        self.fuel_pref_elasticity = time.to_periods(
            fuel_preference_elasticity, label=f"{name} fuel preference elasticity"
        )
        self.do_calibration = ~np.isnan(self.calibration_value)
        self.calibration_status = self.do_calibration.copy()
        self.capacity_limited = time.new_array(False, dtype=bool)

        self.share = time.new_array()
        self.price = time.new_array(UNDEFINED_PRICE)
        self.fuel_price = time.new_array(UNDEFINED_PRICE)
        self.input = time.new_array()
        self.output = time.new_array()
        self.carbon_tax_paid = time.new_array()
        self.emissions = time.new_array()
        self._validate()

    def _validate(self) -> None:
        names = [tech.name for tech in self.technologies]
        if len(set(names)) != len(names):
            raise ModelStructureError(f"Subsector '{self.name}' has duplicate technology names.")
        for tech in self.technologies:
            if tech.time != self.time:
                raise ModelStructureError(
                    f"Technology '{tech.name}' uses a different time horizon than '{self.name}'."
                )
        for label, values in self._arrays().items():
            self.time.check_array(values, f"Subsector '{self.name}' {label}")
        if np.any(self.share_weight < 0):
            raise ModelStructureError(f"Subsector '{self.name}' share weight is negative.")
        if np.any(self.logit_exponent > 0):
            raise ModelStructureError(
                f"Subsector '{self.name}' logit exponent must not be positive."
            )
        if np.any(self.capacity_limit < 0) or np.any(self.capacity_limit > 1):
            raise ModelStructureError(f"Subsector '{self.name}' capacity limit must lie in [0, 1].")
        fixed = self.fixed_share[~np.isnan(self.fixed_share)]
        if np.any(fixed < 0) or np.any(fixed > 1):
            raise ModelStructureError(f"Subsector '{self.name}' fixed share must lie in [0, 1].")
        cal = self.calibration_value[self.do_calibration]
        if np.any(cal < 0):
            raise ModelStructureError(f"Subsector '{self.name}' calibration output is negative.")
        if self.share_weight_target is not None:
            self.time.check_period(self.share_weight_target[0])

    def _arrays(self) -> dict[str, np.ndarray]:
        return {
            "share": self.share,
            "share_weight": self.share_weight,
            "logit_exponent": self.logit_exponent,
            "capacity_limit": self.capacity_limit,
            "capacity_limited": self.capacity_limited,
            "fixed_share": self.fixed_share,
            "calibration_value": self.calibration_value,
            "fuel_pref_elasticity": self.fuel_pref_elasticity,
            "price": self.price,
            "fuel_price": self.fuel_price,
            "input": self.input,
            "output": self.output,
            "carbon_tax_paid": self.carbon_tax_paid,
        }

    def init_calc(self, period: int) -> None:
        self.time.check_period(period)
        for tech in self.technologies:
            tech.init_calc(period)
        self.capacity_limited[period] = False
        self.calibration_status[period] = self.do_calibration[period] or self._techs_calibrated(
            period
        )

    def _techs_calibrated(self, period: int) -> bool:
        """True when every technology output is pinned by a target or a fixed value."""
        if not self.technologies:
            return False
        return any(tech.is_calibrated(period) for tech in self.technologies) and all(
            tech.is_calibrated(period) or tech.has_fixed_output(period)
            for tech in self.technologies
        )

    # Technology level ---------------------------------------------------

    def calc_tech_shares(self, period: int, price_of: PriceLookup) -> None:
        """Compute technology costs and split this subsector among its technologies."""
        for tech in self.technologies:
            fuel_price = price_of(tech.fuel) if tech.fuel is not None else 0.0
            tech.calc_cost(period, fuel_price)
        self.allocate_tech_shares(period)

    def allocate_tech_shares(self, period: int) -> None:
        """Re-run the technology logit with the current costs and share weights.

        Fixed-output technologies stay out of the logit. When every technology
        is fixed, shares follow the fixed outputs instead.
        """
        if not self.technologies:
            return
        if self.all_output_fixed(period):
            fixed = np.array(
                [tech.get_fixed_output(period) for tech in self.technologies], dtype=float
            )
            total = fixed.sum()
            shares = fixed / total if total > 0 else np.full(len(fixed), 1.0 / len(fixed))
            for tech, share in zip(self.technologies, shares):
                tech.share[period] = share
            return
        weights = [
            0.0 if tech.has_fixed_output(period) else tech.share_weight[period]
            for tech in self.technologies
        ]
        allocation = allocate_shares(
            [tech.cost[period] for tech in self.technologies],
            weights,
            [tech.logit_exponent[period] for tech in self.technologies],
        )
        for tech, share in zip(self.technologies, allocation.shares):
            tech.share[period] = share

    def calc_price(self, period: int) -> float:
        """Share-weighted technology cost, or the undefined sentinel if none is available.

        Before output is known the shares are the logit shares of the variable
        technologies; once :meth:`set_output` ran they are output shares.
        """
        shares = np.array([tech.share[period] for tech in self.technologies], dtype=float)
        if shares.sum() <= 0:
            fixed = np.array(
                [tech.get_fixed_output(period) for tech in self.technologies], dtype=float
            )
            shares = fixed / fixed.sum() if fixed.sum() > 0 else shares
        if shares.sum() <= 0:
            self.price[period] = UNDEFINED_PRICE
            self.fuel_price[period] = UNDEFINED_PRICE
            return UNDEFINED_PRICE
        active = shares > 0
        costs = np.array([tech.cost[period] for tech in self.technologies], dtype=float)
        fuel_costs = np.array([tech.fuel_cost[period] for tech in self.technologies], dtype=float)
        self.price[period] = float(np.dot(shares[active], costs[active]))
        self.fuel_price[period] = float(np.dot(shares[active], fuel_costs[active]))
        return float(self.price[period])

    def get_price(self, period: int) -> float:
        return float(self.price[period])

    def get_fuel_price(self, period: int) -> float:
        return float(self.fuel_price[period])

    # Sector level -------------------------------------------------------

    def calc_share(self, period: int, price_of: PriceLookup, gdp_scaler: float = 1.0) -> ChoiceOption:
        """Compute technology shares and price, then return this subsector's choice inputs."""
        self.calc_tech_shares(period, price_of)
        self.calc_price(period)
        return self.choice_option(period, gdp_scaler)

    def choice_option(self, period: int, gdp_scaler: float = 1.0) -> ChoiceOption:
        share_weight = 0.0 if self.all_output_fixed(period) else float(self.share_weight[period])
        return ChoiceOption(
            price=float(self.price[period]),
            share_weight=share_weight,
            logit_exponent=float(self.logit_exponent[period]),
            capacity_limit=float(self.capacity_limit[period]),
            fixed_share=float(self.fixed_share[period]),
            scaler=float(gdp_scaler) ** float(self.fuel_pref_elasticity[period]),
        )

    def get_share(self, period: int) -> float:
        return float(self.share[period])

    def set_share(self, share: float, period: int) -> None:
        if not -SHARE_SUM_TOLERANCE <= share <= 1.0 + SHARE_SUM_TOLERANCE:
            raise ModelStructureError(
                f"Share {share} for subsector '{self.name}' lies outside [0, 1]."
            )
        self.share[period] = min(max(share, 0.0), 1.0)

    def norm_share(self, total: float, period: int) -> None:
        """Divide the share by the sum of sibling shares."""
        if total == 0:
            self.share[period] = 0.0
        else:
            self.share[period] = self.share[period] / total

    def limit_shares(self, multiplier: float, period: int) -> None:
        """Scale the share by ``multiplier`` and clamp it at the capacity limit."""
        share = self.share[period] * multiplier
        limit = self.capacity_limit[period]
        if share >= limit:
            self.share[period] = limit
            self.capacity_limited[period] = True
        else:
            self.share[period] = share
            self.capacity_limited[period] = False

    def get_capacity_limit(self, period: int) -> float:
        return float(self.capacity_limit[period])

    def set_cap_limit_status(self, value: bool, period: int) -> None:
        self.capacity_limited[period] = value

    def get_cap_limit_status(self, period: int) -> bool:
        return bool(self.capacity_limited[period])

    def has_fixed_share(self, period: int) -> bool:
        return not math.isnan(self.fixed_share[period])

    def get_fixed_share(self, period: int) -> float:
        return 0.0 if not self.has_fixed_share(period) else float(self.fixed_share[period])

    def set_fixed_share(self, share: float, period: int) -> None:
        if not 0.0 <= share <= 1.0:
            raise ModelStructureError(f"Fixed share {share} for '{self.name}' lies outside [0, 1].")
        self.fixed_share[period] = share

    # Fixed supply -------------------------------------------------------

    def all_output_fixed(self, period: int) -> bool:
        return bool(self.technologies) and all(
            tech.has_fixed_output(period) for tech in self.technologies
        )

    def get_fixed_supply(self, period: int) -> float:
        return float(sum(tech.get_fixed_output(period) for tech in self.technologies))

    def scale_fixed_supply(self, ratio: float, period: int) -> None:
        for tech in self.technologies:
            tech.scale_fixed_output(ratio, period)

    def reset_fixed_supply(self, period: int) -> None:
        for tech in self.technologies:
            tech.reset_fixed_output(period)

    # Calibration --------------------------------------------------------

    def get_calibration_status(self, period: int) -> bool:
        return bool(self.calibration_status[period])

    def set_calibration_status(self, value: bool, period: int) -> None:
        self.calibration_status[period] = value

    def calibration_anchors(self, period: int) -> list[int]:
        """Calibrated periods up to and including ``period``."""
        return [p for p in range(period + 1) if self.calibration_status[p]]

    def get_total_cal_outputs(self, period: int) -> float:
        """Calibration target of the subsector, or the sum of its technology targets."""
        if self.do_calibration[period]:
            return float(self.calibration_value[period])
        total = 0.0
        for tech in self.technologies:
            if tech.is_calibrated(period):
                total += tech.get_calibration_output(period)
            elif tech.has_fixed_output(period):
                total += tech.get_fixed_output(period)
        return total

    def adjust_for_calibration(
        self, sector_demand: float, total_cal_outputs: float, period: int
    ) -> None:
        """Scale the share weight so the variable output moves toward its target."""
        if total_cal_outputs > sector_demand * (1.0 + SHARE_SUM_TOLERANCE):
            LOGGER.debug(
                "Calibrated outputs %.6g exceed demand %.6g in %s/%s.",
                total_cal_outputs,
                sector_demand,
                self.region_name,
                self.sector_name,
            )
        own_fixed = self.get_fixed_supply(period)
        target = self.get_total_cal_outputs(period) - own_fixed
        computed = self.share[period] * sector_demand - own_fixed
        if self.capacity_limited[period] and target > computed:
            return
        self.share_weight[period] = adjust_share_weight(
            float(self.share_weight[period]),
            max(target, 0.0),
            max(computed, 0.0),
            label=f"{self.region_name}/{self.sector_name}/{self.name}",
        )

    # Output -------------------------------------------------------------

    def set_output(
        self,
        demand: float,
        period: int,
        calibration: CalibrationSettings | None = None,
    ) -> dict[str, float]:
        """Distribute ``demand`` to technologies; return fuel inputs by good.

        Fixed technology output is served first (scaled down by one ratio when
        it exceeds ``demand``); the rest is split by the technology logit shares.
        Afterwards technology shares and the price are restated by output.
        """
        if demand < 0:
            raise ModelStructureError(
                f"Subsector '{self.name}' received negative demand {demand} in period {period}."
            )
        fixed_total = self.get_fixed_supply(period)
        if fixed_total > demand:
            self.scale_fixed_supply(demand / fixed_total, period)
            fixed_total = self.get_fixed_supply(period)
        variable = max(demand - fixed_total, 0.0)

        if calibration is not None and calibration.enabled:
            calibrate_technologies(self, variable, period, calibration)

        variable_share = sum(
            tech.share[period] for tech in self.technologies if not tech.has_fixed_output(period)
        )
        if variable > 0 and variable_share <= 0:
            LOGGER.warning(
                "No technology can serve %.6g of demand for %s/%s/%s in period %d.",
                variable,
                self.region_name,
                self.sector_name,
                self.name,
                period,
            )
        for tech in self.technologies:
            if tech.has_fixed_output(period):
                tech.set_output(tech.get_fixed_output(period), period)
            elif variable_share > 0:
                tech.set_output(tech.share[period] / variable_share * variable, period)
            else:
                tech.set_output(0.0, period)

        self.output[period] = sum(tech.output[period] for tech in self.technologies)
        self.input[period] = sum(tech.input[period] for tech in self.technologies)
        if self.output[period] > 0:
            for tech in self.technologies:
                tech.share[period] = tech.output[period] / self.output[period]
            self.calc_price(period)
        self.emission(period)
        return self.get_fuel_cons(period)

    def get_fuel_cons(self, period: int) -> dict[str, float]:
        consumption: dict[str, float] = {}
        for tech in self.technologies:
            if tech.fuel is None:
                continue
            consumption[tech.fuel] = consumption.get(tech.fuel, 0.0) + float(tech.input[period])
        return consumption

    def get_input(self, period: int) -> float:
        return float(self.input[period])

    def get_output(self, period: int) -> float:
        return float(self.output[period])

    # Emissions ----------------------------------------------------------

    def apply_carbon_tax(self, tax: float, period: int) -> None:
        for tech in self.technologies:
            tech.apply_carbon_tax(tax, period)

    def emission(self, period: int) -> dict[str, float]:
        total = float(sum(tech.emissions[period] for tech in self.technologies))
        self.emissions[period] = total
        self.carbon_tax_paid[period] = sum(tech.carbon_tax_paid[period] for tech in self.technologies)
        return {"CO2": total}

    def get_total_carbon_tax_paid(self, period: int) -> float:
        return float(self.carbon_tax_paid[period])

    def accept(self, visitor: ModelVisitor, period: int) -> None:
        visitor.start_visit_subsector(self, period)
        for tech in self.technologies:
            tech.accept(visitor, period)
        visitor.end_visit_subsector(self, period)
