"""Discrete-choice share allocation among competing options.

Every level of the model hierarchy (sector → subsector → technology) splits its
output among children with the same procedure:

1. Options with an externally imposed ``fixed_share`` keep that share and are
   removed from the competition. ``reserved`` shares (exogenous supply already
   committed to an option) are set aside as well.
2. The remaining pool is divided among the other options in proportion to their
   logit weight ``share_weight * price ** logit_exponent * scaler``.
3. Options whose share would exceed their capacity limit are clamped to the
   limit and the excess is redistributed among the remaining options until no
   unlimited option exceeds its limit.

Weights are evaluated in log space and rescaled so the largest weight is one,
which keeps steep exponents from overflowing. Prices that are zero or negative
count as *free*: free options take the whole pool in proportion to their share
weights, which is the limit of the formula as the price approaches zero.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .constants import MAX_CAPACITY_ITERATIONS, SHARE_SUM_TOLERANCE
from .errors import AllocationError, CapacityLimitError, ModelStructureError

LOGGER = logging.getLogger(__name__)

ArrayInput = float | Sequence[float] | np.ndarray | None


@dataclass(slots=True)
class ChoiceOption:
    """Inputs one option contributes to its parent's discrete choice."""

    price: float
    share_weight: float
    logit_exponent: float
    capacity_limit: float = 1.0
    fixed_share: float = math.nan
    scaler: float = 1.0

    @property
    def is_fixed(self) -> bool:
        return not math.isnan(self.fixed_share)


@dataclass(slots=True)
class ShareAllocation:
    """Result of one allocation: shares, binding limits and any unallocated pool."""

    shares: np.ndarray
    capacity_limited: np.ndarray
    unallocated: float = 0.0

    @property
    def total(self) -> float:
        return float(self.shares.sum())


def _as_array(values: ArrayInput, size: int, label: str, fill: float) -> np.ndarray:
    if values is None:
        return np.full(size, fill, dtype=float)
    arr = np.asarray(values, dtype=float)
    if arr.ndim == 0:
        return np.full(size, float(arr), dtype=float)
    if arr.ndim != 1 or arr.shape[0] != size:
        raise ModelStructureError(
            f"Expected {size} values for {label}; received shape {arr.shape}."
        )
    return arr.astype(float, copy=True)


def logit_weights(
    prices: Sequence[float] | np.ndarray,
    share_weights: ArrayInput,
    exponents: ArrayInput,
    scalers: ArrayInput = None,
) -> np.ndarray:
    """Return relative logit weights, the largest eligible weight being one.

    Options with a zero share weight or an undefined (non-finite) price get a
    weight of zero. Logit exponents must not be positive.
    """
    price = np.asarray(prices, dtype=float)
    if price.ndim != 1:
        raise ModelStructureError("Prices must be a one-dimensional sequence.")
    size = price.shape[0]
    weight = _as_array(share_weights, size, "share weights", 1.0)
    exponent = _as_array(exponents, size, "logit exponents", 0.0)
    scaler = _as_array(scalers, size, "preference scalers", 1.0)

    if np.any(~np.isfinite(weight)) or np.any(weight < 0):
        raise ModelStructureError(f"Share weights must be finite and non-negative: {weight}.")
    if np.any(~np.isfinite(exponent)) or np.any(exponent > 0):
        raise ModelStructureError(
            f"Logit exponents must be finite and not positive: {exponent}."
        )
    if np.any(~np.isfinite(scaler)) or np.any(scaler <= 0):
        raise ModelStructureError(f"Preference scalers must be positive: {scaler}.")

    result = np.zeros(size, dtype=float)
    eligible = (weight > 0) & np.isfinite(price)
    if not eligible.any():
        return result

    free = eligible & (price <= 0) & (exponent < 0)
    if free.any():
        result[free] = weight[free] / weight[free].max()
        return result

    positive = np.where(price > 0, price, 1.0)
    price_term = np.where(price > 0, exponent * np.log(positive), 0.0)
    log_weight = np.log(np.where(eligible, weight, 1.0)) + price_term + np.log(scaler)
    log_weight = log_weight - log_weight[eligible].max()
    result[eligible] = np.exp(log_weight[eligible])
    return result


def cap_limit_transform(
    weights: Sequence[float] | np.ndarray,
    pool: float,
    capacity_limits: ArrayInput,
    *,
    max_iterations: int = MAX_CAPACITY_ITERATIONS,
) -> tuple[np.ndarray, np.ndarray]:
    """Split ``pool`` by ``weights`` and clamp-and-redistribute at capacity limits.

    Returns the allocated amounts and a mask of options whose limit was binding.
    Raises :class:`CapacityLimitError` when the limits cannot absorb the pool or
    the redistribution does not settle within ``max_iterations`` passes.
    """
    weight = np.asarray(weights, dtype=float)
    limits = _as_array(capacity_limits, weight.shape[0], "capacity limits", 1.0)
    allocated = np.zeros_like(weight)
    limited = np.zeros(weight.shape[0], dtype=bool)
    active = weight > 0
    if pool <= 0 or not active.any():
        return allocated, limited

    for _ in range(max_iterations):
        remaining = pool - limits[limited].sum()
        allocated[active] = remaining * (weight[active] / weight[active].sum())
        over = active & (allocated > limits)
        if not over.any():
            return allocated, limited
        allocated[over] = limits[over]
        limited |= over
        active &= ~over
        if not active.any():
            shortfall = pool - limits[limited].sum()
            if shortfall > SHARE_SUM_TOLERANCE:
                raise CapacityLimitError(
                    f"Capacity limits absorb only {limits[limited].sum():.6g} "
                    f"of a share pool of {pool:.6g}."
                )
            return allocated, limited
    raise CapacityLimitError(
        f"Capacity-limit redistribution did not settle within {max_iterations} iterations."
    )


def allocate_shares(
    prices: Sequence[float] | np.ndarray,
    share_weights: ArrayInput,
    exponents: ArrayInput,
    *,
    capacity_limits: ArrayInput = None,
    fixed_shares: ArrayInput = None,
    reserved: ArrayInput = None,
    scalers: ArrayInput = None,
    max_iterations: int = MAX_CAPACITY_ITERATIONS,
) -> ShareAllocation:
    """Allocate normalised shares among sibling options.

    Parameters
    ----------
    prices, share_weights, exponents:
        Per-option logit inputs. Scalars are broadcast.
    capacity_limits:
        Maximum share per option (defaults to 1).
    fixed_shares:
        Externally imposed shares; ``nan`` marks options that take part in the
        choice.
    reserved:
        Share already committed to an option outside the choice (for example
        exogenously fixed supply). The option's final share is its reserved
        share plus whatever it wins from the pool.
    scalers:
        Positive multipliers applied to the logit weight (fuel preference).

    Returns
    -------
    ShareAllocation
        ``shares`` sums to one, unless no option can take the pool, in which
        case the remainder is reported as ``unallocated``.
    """
    price = np.asarray(prices, dtype=float)
    if price.ndim != 1:
        raise ModelStructureError("Prices must be a one-dimensional sequence.")
    size = price.shape[0]
    if size == 0:
        return ShareAllocation(np.zeros(0), np.zeros(0, dtype=bool), 0.0)

    limits = _as_array(capacity_limits, size, "capacity limits", 1.0)
    if np.any(~np.isfinite(limits)) or np.any(limits < 0) or np.any(limits > 1):
        raise ModelStructureError(f"Capacity limits must lie in [0, 1]: {limits}.")
    fixed = _as_array(fixed_shares, size, "fixed shares", math.nan)
    is_fixed = ~np.isnan(fixed)
    if np.any(fixed[is_fixed] < 0) or np.any(fixed[is_fixed] > 1):
        raise ModelStructureError(f"Fixed shares must lie in [0, 1]: {fixed[is_fixed]}.")
    held = _as_array(reserved, size, "reserved shares", 0.0)
    if np.any(~np.isfinite(held)) or np.any(held < 0):
        raise ModelStructureError(f"Reserved shares must be non-negative: {held}.")
    held[is_fixed] = 0.0

    fixed_total = float(fixed[is_fixed].sum())
    if fixed_total > 1.0 + SHARE_SUM_TOLERANCE:
        raise ModelStructureError(f"Fixed shares sum to {fixed_total:.6g}, more than one.")
    pool = 1.0 - fixed_total - float(held.sum())
    if pool < -SHARE_SUM_TOLERANCE:
        raise AllocationError(
            f"Fixed and reserved shares sum to {1.0 - pool:.6g}, more than one."
        )
    pool = max(pool, 0.0)

    over_limit = held > limits + SHARE_SUM_TOLERANCE
    if over_limit.any():
        raise CapacityLimitError(
            f"Reserved shares {held[over_limit]} exceed capacity limits {limits[over_limit]}."
        )

    weights = logit_weights(price, share_weights, exponents, scalers)
    weights[is_fixed] = 0.0
    # Options whose reservation already fills their limit take nothing from the pool.
    saturated = (held > 0) & (held >= limits - SHARE_SUM_TOLERANCE)
    weights[saturated] = 0.0
    effective_limits = np.clip(limits - held, 0.0, None)
    allocated, limited = cap_limit_transform(
        weights, pool, effective_limits, max_iterations=max_iterations
    )
    limited |= saturated

    shares = held + allocated
    shares[is_fixed] = fixed[is_fixed]
    shares[limited] = limits[limited]

    unallocated = 0.0
    if pool > SHARE_SUM_TOLERANCE and not (weights > 0).any():
        if fixed_total > 0:
            LOGGER.warning(
                "No option competes for a share pool of %.6g; assigning it to fixed options.",
                pool,
            )
            shares[is_fixed] += pool * fixed[is_fixed] / fixed_total
        else:
            unallocated = pool

    total = float(shares.sum()) + unallocated
    if abs(total - 1.0) > SHARE_SUM_TOLERANCE:
        raise AllocationError(f"Shares sum to {total!r} instead of one.")
    return ShareAllocation(shares=shares, capacity_limited=limited, unallocated=unallocated)


def allocate_options(
    options: Sequence[ChoiceOption],
    *,
    reserved: ArrayInput = None,
    max_iterations: int = MAX_CAPACITY_ITERATIONS,
) -> ShareAllocation:
    """Run :func:`allocate_shares` over a sequence of :class:`ChoiceOption`."""
    return allocate_shares(
        [opt.price for opt in options],
        [opt.share_weight for opt in options],
        [opt.logit_exponent for opt in options],
        capacity_limits=[opt.capacity_limit for opt in options],
        fixed_shares=[opt.fixed_share for opt in options],
        reserved=reserved,
        scalers=[opt.scaler for opt in options],
        max_iterations=max_iterations,
    )
