"""Share-weight recalibration and fixed-supply reconciliation.

Two mechanisms cooperate when calibration is switched on:

* Share weights of calibrated options are multiplied by ``target / output`` and
  the share allocation is re-run until the outputs match their targets. After a
  calibration period is solved, the calibrated weights are rescaled and
  interpolated onto the following periods.
* Exogenously fixed supplies are scaled to their subsector's calibration
  target when they overshoot it and never exceed its capacity limit. If they
  still exceed what is left of the demand they are scaled down by a single
  ratio. Whatever remains goes to the logit pool.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

import numpy as np

from market_share.constants import LARGE_SHARE_WEIGHT
from market_share.logit import ShareAllocation

from .consistency import is_calibrated
from .settings import INTERPOLATION_SPACES, CalibrationSettings

if TYPE_CHECKING:  # pragma: no cover
    from model_objects.sector import Sector
    from model_objects.subsector import Subsector

LOGGER = logging.getLogger(__name__)


def adjust_share_weight(
    share_weight: float, target: float, computed: float, *, label: str = ""
) -> float:
    """Scale ``share_weight`` by ``target / computed``.

    A zero weight with a positive target is reset to one first so that it can
    be calibrated at all.
    """
    if share_weight == 0 and target > 0:
        share_weight = 1.0
    if computed > 0:
        share_weight = share_weight * (target / computed)
    if share_weight < 0:
        share_weight = 0.0
    if share_weight > LARGE_SHARE_WEIGHT:
        LOGGER.warning("Share weight for %s grew to %.6g during calibration.", label, share_weight)
    return share_weight


def reserve_fixed_supply(
    sector: Sector,
    demand: float,
    period: int,
    calibration: CalibrationSettings | None = None,
) -> np.ndarray:
    """Return the share of ``demand`` already committed to fixed supply per subsector.

    Fixed supplies are restored to their configured values first. With
    calibration on, a calibrated subsector whose fixed supply overshoots its
    target (or that has only fixed output) has its fixed supply scaled to the
    target. A subsector's fixed supply never exceeds its capacity limit.
    Finally, if fixed supplies exceed the demand left over after fixed shares,
    all of them are scaled by one common ratio.
    """
    subsectors = sector.subsectors
    for subsector in subsectors:
        subsector.reset_fixed_supply(period)

    competing = [subsector for subsector in subsectors if not subsector.has_fixed_share(period)]
    if calibration is not None and calibration.enabled:
        for subsector in competing:
            if not subsector.get_calibration_status(period):
                continue
            fixed = subsector.get_fixed_supply(period)
            target = subsector.get_total_cal_outputs(period)
            if fixed > 0 and (target < fixed or subsector.all_output_fixed(period)):
                subsector.scale_fixed_supply(target / fixed, period)

    for subsector in competing:
        fixed = subsector.get_fixed_supply(period)
        cap = subsector.get_capacity_limit(period) * demand
        if fixed > cap:
            LOGGER.debug(
                "Fixed supply %.6g of %s/%s/%s is held to its capacity limit %.6g.",
                fixed,
                sector.region_name,
                sector.name,
                subsector.name,
                cap,
            )
            subsector.scale_fixed_supply(cap / fixed, period)

    fixed_share_total = sum(
        subsector.get_fixed_share(period)
        for subsector in subsectors
        if subsector.has_fixed_share(period)
    )
    available = max(1.0 - fixed_share_total, 0.0) * demand
    total_fixed = sum(subsector.get_fixed_supply(period) for subsector in competing)
    if total_fixed > available:
        ratio = available / total_fixed
        LOGGER.debug(
            "Scaling fixed supply in %s/%s by %.6g to fit demand %.6g.",
            sector.region_name,
            sector.name,
            ratio,
            demand,
        )
        for subsector in competing:
            subsector.scale_fixed_supply(ratio, period)

    reserved = np.zeros(len(subsectors), dtype=float)
    if demand > 0:
        for idx, subsector in enumerate(subsectors):
            if not subsector.has_fixed_share(period):
                reserved[idx] = subsector.get_fixed_supply(period) / demand
    return reserved


def calibrate_sector(
    sector: Sector,
    demand: float,
    period: int,
    reserved: np.ndarray,
    allocation: ShareAllocation,
    settings: CalibrationSettings,
) -> ShareAllocation:
    """Recalibrate subsector share weights until outputs meet their targets."""
    candidates = [
        subsector
        for subsector in sector.subsectors
        if subsector.get_calibration_status(period)
        and not subsector.has_fixed_share(period)
        and not subsector.all_output_fixed(period)
    ]
    if not candidates or demand <= 0:
        return allocation

    total_cal = sector.get_total_cal_outputs(period)
    for _ in range(settings.max_iterations):
        if all(
            is_calibrated(
                subsector.get_share(period) * demand,
                subsector.get_total_cal_outputs(period),
                settings.accuracy,
            )
            for subsector in candidates
        ):
            return allocation
        for subsector in candidates:
            subsector.adjust_for_calibration(demand, total_cal, period)
        allocation = sector.calc_shares(period, reserved=reserved)
    LOGGER.debug(
        "Calibration of %s/%s did not settle within %d iterations.",
        sector.region_name,
        sector.name,
        settings.max_iterations,
    )
    return allocation


def calibrate_technologies(
    subsector: Subsector,
    variable_output: float,
    period: int,
    settings: CalibrationSettings,
) -> None:
    """Recalibrate technology share weights against technology targets."""
    candidates = [
        tech
        for tech in subsector.technologies
        if tech.is_calibrated(period) and not tech.has_fixed_output(period)
    ]
    if not candidates or variable_output <= 0:
        return

    for _ in range(settings.max_iterations):
        if all(
            is_calibrated(
                tech.share[period] * variable_output,
                tech.get_calibration_output(period),
                settings.accuracy,
            )
            for tech in candidates
        ):
            break
        for tech in candidates:
            tech.share_weight[period] = adjust_share_weight(
                float(tech.share_weight[period]),
                tech.get_calibration_output(period),
                float(tech.share[period]) * variable_output,
                label=f"{subsector.region_name}/{subsector.sector_name}/{subsector.name}/{tech.name}",
            )
        subsector.allocate_tech_shares(period)
    subsector.calc_price(period)


def share_weight_scale_factor(values: Sequence[float] | np.ndarray) -> float:
    """Factor that brings the mean non-zero sibling share weight to one."""
    weights = np.asarray(values, dtype=float)
    nonzero = weights[weights > 0]
    if nonzero.size == 0:
        return 1.0
    return float(nonzero.size / nonzero.sum())


def normalize_share_weights(values: Sequence[float] | np.ndarray) -> np.ndarray:
    """Scale sibling share weights so the mean non-zero weight is one.

    Shares are unchanged because every sibling is scaled by the same factor.
    """
    return np.asarray(values, dtype=float) * share_weight_scale_factor(values)


def interpolate_share_weights(
    values: Sequence[float] | np.ndarray,
    anchors: Sequence[int],
    *,
    space: str = "linear",
    target: tuple[int, float] | None = None,
) -> np.ndarray:
    """Fill the periods between calibrated anchor periods.

    Periods between two anchors are interpolated linearly, or in log space when
    ``space == "log"`` and both anchor values are positive. After the last
    anchor the value is held, or interpolated towards ``target`` (a
    ``(period, value)`` pair) when one is given. Periods before the first
    anchor are left untouched.
    """
    if space not in INTERPOLATION_SPACES:
        raise ValueError(f"Unknown interpolation space '{space}'.")
    weights = np.asarray(values, dtype=float).copy()
    points = sorted(set(int(anchor) for anchor in anchors))
    if not points:
        return weights
    if target is not None and target[0] > points[-1]:
        weights[target[0]] = float(target[1])
        points.append(int(target[0]))

    for begin, end in zip(points, points[1:]):
        if end - begin < 2:
            continue
        steps = np.arange(begin + 1, end)
        fraction = (steps - begin) / (end - begin)
        start_value, end_value = weights[begin], weights[end]
        if space == "log" and start_value > 0 and end_value > 0:
            log_start, log_end = np.log(start_value), np.log(end_value)
            weights[steps] = np.exp(log_start + fraction * (log_end - log_start))
        else:
            weights[steps] = start_value + fraction * (end_value - start_value)
    weights[points[-1] + 1 :] = weights[points[-1]]
    return weights


def finalize_calibration_period(
    sector: Sector, period: int, settings: CalibrationSettings
) -> None:
    """Rescale and carry forward share weights after a calibration period is solved."""
    subsectors = sector.subsectors
    if not any(subsector.get_calibration_status(period) for subsector in subsectors):
        return

    # Uncalibrated siblings are rescaled over the rest of the horizon so their
    # weights stay comparable to the carried-forward calibrated ones.
    factor = share_weight_scale_factor([subsector.share_weight[period] for subsector in subsectors])
    for subsector in subsectors:
        if subsector.get_calibration_status(period):
            subsector.share_weight[period] *= factor
            subsector.share_weight[:] = interpolate_share_weights(
                subsector.share_weight,
                subsector.calibration_anchors(period),
                space=settings.interpolation,
                target=subsector.share_weight_target,
            )
        else:
            subsector.share_weight[period:] *= factor

        techs = subsector.technologies
        if not any(tech.is_calibrated(period) for tech in techs):
            continue
        tech_factor = share_weight_scale_factor([tech.share_weight[period] for tech in techs])
        for tech in techs:
            if tech.is_calibrated(period):
                tech.share_weight[period] *= tech_factor
                anchors = [p for p in range(period + 1) if tech.is_calibrated(p)]
                tech.share_weight[:] = interpolate_share_weights(
                    tech.share_weight, anchors, space=settings.interpolation
                )
            else:
                tech.share_weight[period:] *= tech_factor
