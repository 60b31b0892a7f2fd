"""Leaf technologies: the only entities that carry a cost of their own."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

from market_share.constants import DEFAULT_LOGIT_EXPONENT
from market_share.errors import ModelStructureError

from .model_time import ModelTime, YearValues

if TYPE_CHECKING:  # pragma: no cover
    from .visitor import ModelVisitor


class Technology:
    """A technology producing its parent's good, optionally from a fuel input.

    Cost per unit of output is the non-energy cost plus the fuel price and
    carbon tax per unit of fuel divided by the efficiency. Emissions are
    ``input * emissions_coefficient`` for fuel-using technologies and
    ``output * emissions_coefficient`` otherwise.
    """

    def __init__(
        self,
        name: str,
        time: ModelTime,
        *,
        fuel: str | None = None,
        efficiency: YearValues = 1.0,
        non_energy_cost: YearValues = 0.0,
        share_weight: YearValues = 1.0,
        logit_exponent: YearValues = DEFAULT_LOGIT_EXPONENT,
        emissions_coefficient: float = 0.0,
        fixed_output: YearValues = None,
        calibration_output: YearValues = None,
    ) -> None:
        self.name = name
        self.time = time
        self.fuel = fuel
        self.emissions_coefficient = float(emissions_coefficient)
        self.efficiency = time.to_periods(efficiency, label=f"{name} efficiency")
        self.non_energy_cost = time.to_periods(non_energy_cost, label=f"{name} cost")
        self.share_weight = time.to_periods(share_weight, label=f"{name} share weight")
        self.logit_exponent = time.to_periods(logit_exponent, label=f"{name} logit exponent")
        self.configured_fixed_output = time.to_periods(
            fixed_output, default=math.nan, interpolate=False, label=f"{name} fixed output"
        )
        self.calibration_output = time.to_periods(
            calibration_output, default=math.nan, interpolate=False, label=f"{name} calibration"
        )

        self.fixed_output = self.configured_fixed_output.copy()
        self.carbon_tax = time.new_array()
        self.fuel_cost = time.new_array()
        self.cost = time.new_array()
        self.share = time.new_array()
        self.output = time.new_array()
        self.input = time.new_array()
        self.emissions = time.new_array()
        self.carbon_tax_paid = time.new_array()
        self._validate()

    def _validate(self) -> None:
        for label, values in self._arrays().items():
            self.time.check_array(values, f"Technology '{self.name}' {label}")
        if np.any(self.efficiency <= 0):
            raise ModelStructureError(f"Technology '{self.name}' efficiency must be positive.")
        if np.any(self.share_weight < 0):
            raise ModelStructureError(f"Technology '{self.name}' share weight is negative.")
        if np.any(self.logit_exponent > 0):
            raise ModelStructureError(
                f"Technology '{self.name}' logit exponent must not be positive."
            )
        fixed = self.configured_fixed_output[~np.isnan(self.configured_fixed_output)]
        if np.any(fixed < 0):
            raise ModelStructureError(f"Technology '{self.name}' fixed output is negative.")
        cal = self.calibration_output[~np.isnan(self.calibration_output)]
        if np.any(cal < 0):
            raise ModelStructureError(f"Technology '{self.name}' calibration output is negative.")

    def _arrays(self) -> dict[str, np.ndarray]:
        return {
            "efficiency": self.efficiency,
            "non_energy_cost": self.non_energy_cost,
            "share_weight": self.share_weight,
            "logit_exponent": self.logit_exponent,
            "fixed_output": self.configured_fixed_output,
            "calibration_output": self.calibration_output,
        }

    def init_calc(self, period: int) -> None:
        self.time.check_period(period)
        self.fixed_output[period] = self.configured_fixed_output[period]
        self.output[period] = 0.0
        self.input[period] = 0.0
        self.emissions[period] = 0.0
        self.carbon_tax_paid[period] = 0.0

    def apply_carbon_tax(self, tax: float, period: int) -> None:
        self.carbon_tax[period] = tax

    def calc_cost(self, period: int, fuel_price: float = 0.0) -> float:
        """Compute and store the cost per unit of output for ``period``."""
        if self.fuel is None:
            fuel_term = self.carbon_tax[period] * self.emissions_coefficient
        else:
            fuel_term = (
                fuel_price + self.carbon_tax[period] * self.emissions_coefficient
            ) / self.efficiency[period]
        self.fuel_cost[period] = fuel_term
        self.cost[period] = self.non_energy_cost[period] + fuel_term
        return float(self.cost[period])

    def get_cost(self, period: int) -> float:
        return float(self.cost[period])

    def has_fixed_output(self, period: int) -> bool:
        return not math.isnan(self.configured_fixed_output[period])

    def get_fixed_output(self, period: int) -> float:
        value = self.fixed_output[period]
        return 0.0 if math.isnan(value) else float(value)

    def scale_fixed_output(self, ratio: float, period: int) -> None:
        if self.has_fixed_output(period):
            self.fixed_output[period] = self.fixed_output[period] * ratio

    def reset_fixed_output(self, period: int) -> None:
        self.fixed_output[period] = self.configured_fixed_output[period]

    def is_calibrated(self, period: int) -> bool:
        return not math.isnan(self.calibration_output[period])

    def get_calibration_output(self, period: int) -> float:
        value = self.calibration_output[period]
        return 0.0 if math.isnan(value) else float(value)

    def scale_share_weight(self, factor: float, period: int) -> None:
        self.share_weight[period] = self.share_weight[period] * factor

    def set_output(self, output: float, period: int) -> None:
        if output < 0:
            raise ModelStructureError(
                f"Technology '{self.name}' received negative output {output} in period {period}."
            )
        self.output[period] = output
        self.input[period] = 0.0 if self.fuel is None else output / self.efficiency[period]
        self.calc_emissions(period)

    def calc_emissions(self, period: int) -> float:
        """CO2 from fuel input, or from output for technologies without a fuel."""
        basis = self.output[period] if self.fuel is None else self.input[period]
        self.emissions[period] = basis * self.emissions_coefficient
        self.carbon_tax_paid[period] = self.emissions[period] * self.carbon_tax[period]
        return float(self.emissions[period])

    def accept(self, visitor: ModelVisitor, period: int) -> None:
        visitor.visit_technology(self, period)
