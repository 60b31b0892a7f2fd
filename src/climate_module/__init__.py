"""Climate model handles that turn modelled world emissions into temperatures."""

from .base import ClimateModel, NullClimateModel, build_climate_model

__all__ = [
    "ClimateModel",
    "NullClimateModel",
    "build_climate_model",
]
