"""Exceptions raised when the model structure makes a calculation meaningless."""

from __future__ import annotations


class ModelStructureError(ValueError):
    """A structural invariant was violated; the calculation cannot continue."""


class PeriodIndexError(ModelStructureError, IndexError):
    """A period index lies outside the model time horizon."""


class CapacityLimitError(ModelStructureError):
    """Capacity limits could not be reconciled with the share pool."""


class AllocationError(ModelStructureError):
    """Allocated shares do not sum to one."""


__all__ = [
    "AllocationError",
    "CapacityLimitError",
    "ModelStructureError",
    "PeriodIndexError",
]
