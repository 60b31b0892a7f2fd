"""Nested-logit share allocation used at every level of the model hierarchy."""

from .constants import (
    DEFAULT_LOGIT_EXPONENT,
    LARGE_SHARE_WEIGHT,
    MAX_CAPACITY_ITERATIONS,
    SHARE_SUM_TOLERANCE,
    UNDEFINED_PRICE,
)
from .errors import AllocationError, CapacityLimitError, ModelStructureError, PeriodIndexError
from .logit import (
    ChoiceOption,
    ShareAllocation,
    allocate_options,
    allocate_shares,
    cap_limit_transform,
    logit_weights,
)

__all__ = [
    "DEFAULT_LOGIT_EXPONENT",
    "LARGE_SHARE_WEIGHT",
    "MAX_CAPACITY_ITERATIONS",
    "SHARE_SUM_TOLERANCE",
    "UNDEFINED_PRICE",
    "AllocationError",
    "CapacityLimitError",
    "ModelStructureError",
    "PeriodIndexError",
    "ChoiceOption",
    "ShareAllocation",
    "allocate_options",
    "allocate_shares",
    "cap_limit_transform",
    "logit_weights",
]
