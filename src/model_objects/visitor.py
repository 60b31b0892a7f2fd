"""Read-only traversal hooks for reporting.

Every ``accept(visitor, period)`` call visits the entity before its children and
each owned child exactly once.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .region import Region
    from .sector import Sector
    from .subsector import Subsector
    from .technology import Technology
    from .world import World


class ModelVisitor:
    """Base visitor; override the hooks you need."""

    def start_visit_world(self, world: World, period: int) -> None:
        pass

    def end_visit_world(self, world: World, period: int) -> None:
        pass

    def start_visit_region(self, region: Region, period: int) -> None:
        pass

    def end_visit_region(self, region: Region, period: int) -> None:
        pass

    def start_visit_sector(self, sector: Sector, period: int) -> None:
        pass

    def end_visit_sector(self, sector: Sector, period: int) -> None:
        pass

    def start_visit_subsector(self, subsector: Subsector, period: int) -> None:
        pass

    def end_visit_subsector(self, subsector: Subsector, period: int) -> None:
        pass

    def visit_technology(self, technology: Technology, period: int) -> None:
        pass
