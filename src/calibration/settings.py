"""Process-wide calibration switch and tolerances."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

INTERPOLATION_SPACES = ("linear", "log")


@dataclass(slots=True)
class CalibrationSettings:
    """Calibration flag read by every sector and subsector during ``calc``."""

    enabled: bool = False
    accuracy: float = 1e-3
    max_iterations: int = 100
    interpolation: str = "linear"

    def __post_init__(self) -> None:
        if self.accuracy <= 0:
            raise ValueError("calibration.accuracy must be positive.")
        if self.max_iterations <= 0:
            raise ValueError("calibration.max_iterations must be positive.")
        if self.interpolation not in INTERPOLATION_SPACES:
            raise ValueError(
                f"calibration.interpolation must be one of {INTERPOLATION_SPACES}; "
                f"received '{self.interpolation}'."
            )

    @classmethod
    def from_config(cls, cfg: Mapping[str, object] | None) -> "CalibrationSettings":
        cfg = cfg or {}
        return cls(
            enabled=bool(cfg.get("enabled", False)),
            accuracy=float(cfg.get("accuracy", 1e-3)),  # type: ignore[arg-type]
            max_iterations=int(cfg.get("max_iterations", 100)),  # type: ignore[arg-type]
            interpolation=str(cfg.get("interpolation", "linear")).strip().lower(),
        )
