"""Calibration reconciliation and consistency checks."""

from .consistency import (
    CalibrationFailure,
    is_calibrated,
    relative_error,
    sector_cal_consistency,
    sector_calibration_failures,
)
from .reconciliation import (
    adjust_share_weight,
    calibrate_sector,
    calibrate_technologies,
    finalize_calibration_period,
    interpolate_share_weights,
    normalize_share_weights,
    reserve_fixed_supply,
    share_weight_scale_factor,
)
from .settings import CalibrationSettings

__all__ = [
    "CalibrationFailure",
    "CalibrationSettings",
    "adjust_share_weight",
    "calibrate_sector",
    "calibrate_technologies",
    "finalize_calibration_period",
    "interpolate_share_weights",
    "is_calibrated",
    "normalize_share_weights",
    "relative_error",
    "reserve_fixed_supply",
    "sector_cal_consistency",
    "sector_calibration_failures",
    "share_weight_scale_factor",
]
