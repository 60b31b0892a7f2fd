"""Climate model handle owned by :class:`model_objects.world.World`."""

from __future__ import annotations

import logging
import math
from typing import Mapping, Protocol, runtime_checkable

LOGGER = logging.getLogger("climate_module")
if not LOGGER.handlers:
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    LOGGER.addHandler(handler)
LOGGER.setLevel(logging.INFO)
LOGGER.propagate = False


@runtime_checkable
class ClimateModel(Protocol):
    """Receives world emissions per model year and turns them into temperatures."""

    def set_emissions(self, gas: str, year: int, value: float) -> None:
        ...

    def run_model(self) -> None:
        ...

    def get_temperature(self, year: int) -> float:
        ...


class NullClimateModel:
    """Keeps the emissions it is given and reports no temperatures."""

    def __init__(self) -> None:
        self.emissions: dict[str, dict[int, float]] = {}

    def set_emissions(self, gas: str, year: int, value: float) -> None:
        self.emissions.setdefault(gas, {})[int(year)] = float(value)

    def run_model(self) -> None:
        LOGGER.info(
            "No climate model configured; recorded emissions for %d gas(es).", len(self.emissions)
        )

    def get_temperature(self, year: int) -> float:
        return math.nan


def build_climate_model(cfg: Mapping[str, object] | None) -> ClimateModel:
    """Create the climate model described by the ``climate_module`` config section."""
    cfg = cfg or {}
    if not cfg.get("enabled", False):
        return NullClimateModel()
    # FaIR is only imported when a run actually asks for it.
    from .fair_model import FairClimateModel

    return FairClimateModel.from_config(cfg)
