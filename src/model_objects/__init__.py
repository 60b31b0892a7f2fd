"""Model hierarchy: world → region → sector → subsector → technology."""

from .builder import build_world, load_calibration_targets, load_config, load_world
from .calc_counter import CalcCounter
from .errors import AllocationError, CapacityLimitError, ModelStructureError, PeriodIndexError
from .ghg_policy import GHGPolicy
from .model_time import ModelTime
from .region import FinalDemand, Region, RegionKind
from .region_index import RegionAtom, RegionIndex
from .sector import Sector
from .subsector import Subsector
from .technology import Technology
from .visitor import ModelVisitor
from .world import World

__all__ = [
    "AllocationError",
    "CalcCounter",
    "CapacityLimitError",
    "FinalDemand",
    "GHGPolicy",
    "ModelStructureError",
    "ModelTime",
    "ModelVisitor",
    "PeriodIndexError",
    "Region",
    "RegionAtom",
    "RegionIndex",
    "RegionKind",
    "Sector",
    "Subsector",
    "Technology",
    "World",
    "build_world",
    "load_calibration_targets",
    "load_config",
    "load_world",
]
