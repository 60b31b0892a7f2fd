from __future__ import annotations

import math

# Capacity-limit redistribution rarely cascades more than a few levels; the
# bound only guarantees termination.
MAX_CAPACITY_ITERATIONS = 25

# Relative slack allowed when checking that sibling shares sum to one.
SHARE_SUM_TOLERANCE = 1e-9

# Marker for a price that could not be computed (no technology available).
UNDEFINED_PRICE = math.nan

DEFAULT_LOGIT_EXPONENT = -3.0

# Share weights above this after recalibration usually point at bad inputs.
LARGE_SHARE_WEIGHT = 1e4
