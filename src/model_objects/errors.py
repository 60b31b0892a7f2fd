"""Errors raised by model entities; shared with the share-allocation engine."""

from market_share.errors import (
    AllocationError,
    CapacityLimitError,
    ModelStructureError,
    PeriodIndexError,
)

__all__ = [
    "AllocationError",
    "CapacityLimitError",
    "ModelStructureError",
    "PeriodIndexError",
]
