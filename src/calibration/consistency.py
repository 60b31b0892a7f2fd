"""Read-only checks of achieved output against calibration targets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from model_objects.sector import Sector


@dataclass(slots=True)
class CalibrationFailure:
    """One calibrated entity whose output missed its target."""

    region: str
    sector: str
    subsector: str
    technology: str | None
    period: int
    output: float
    target: float

    @property
    def relative_error(self) -> float:
        return relative_error(self.output, self.target)

    def describe(self) -> str:
        name = "/".join(
            part for part in (self.region, self.sector, self.subsector, self.technology) if part
        )
        return (
            f"{name} period {self.period}: output {self.output:.6g} vs target "
            f"{self.target:.6g} (relative error {self.relative_error:.3g})"
        )


def relative_error(output: float, target: float) -> float:
    if target == 0:
        return abs(output)
    return abs(output - target) / abs(target)


def is_calibrated(output: float, target: float, accuracy: float) -> bool:
    return relative_error(output, target) <= accuracy


def sector_calibration_failures(
    sector: Sector, period: int, accuracy: float
) -> list[CalibrationFailure]:
    """Collect subsectors and technologies of ``sector`` that missed their targets."""
    failures: list[CalibrationFailure] = []
    for subsector in sector.subsectors:
        if subsector.get_calibration_status(period):
            output = subsector.get_output(period)
            target = subsector.get_total_cal_outputs(period)
            if not is_calibrated(output, target, accuracy):
                failures.append(
                    CalibrationFailure(
                        sector.region_name, sector.name, subsector.name, None, period, output, target
                    )
                )
        for tech in subsector.technologies:
            if not tech.is_calibrated(period) or tech.has_fixed_output(period):
                continue
            output = float(tech.output[period])
            target = tech.get_calibration_output(period)
            if not is_calibrated(output, target, accuracy):
                failures.append(
                    CalibrationFailure(
                        sector.region_name,
                        sector.name,
                        subsector.name,
                        tech.name,
                        period,
                        output,
                        target,
                    )
                )
    return failures


def sector_cal_consistency(sector: Sector, period: int, tolerance: float) -> bool:
    """Check that calibrated and fixed outputs fit the sector's demand.

    Their total may never exceed demand; when every subsector is calibrated or
    fixed it has to match demand.
    """
    demand = sector.get_demand(period)
    committed = 0.0
    all_committed = True
    for subsector in sector.subsectors:
        if subsector.get_calibration_status(period):
            committed += subsector.get_total_cal_outputs(period)
        elif subsector.all_output_fixed(period):
            committed += subsector.get_fixed_supply(period)
        else:
            all_committed = False
    if committed > demand * (1.0 + tolerance) + tolerance:
        return False
    if all_committed and sector.subsectors:
        return relative_error(committed, demand) <= tolerance
    return True
