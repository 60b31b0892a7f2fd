"""Tidy result tables collected by walking the model tree."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

import pandas as pd

from model_objects.visitor import ModelVisitor

if TYPE_CHECKING:  # pragma: no cover
    from model_objects.region import Region
    from model_objects.sector import Sector
    from model_objects.subsector import Subsector
    from model_objects.technology import Technology
    from model_objects.world import World

SUMMARY_COLUMNS = (
    "year",
    "region",
    "sector",
    "subsector",
    "technology",
    "level",
    "share",
    "price",
    "output",
    "input",
    "emissions",
    "share_weight",
    "capacity_limited",
)


class SummaryVisitor(ModelVisitor):
    """Collect one row per sector, subsector and technology for a period."""

    def __init__(self) -> None:
        self.rows: list[dict[str, object]] = []
        self._region = ""
        self._sector = ""
        self._subsector = ""
        self._year = 0

    def start_visit_world(self, world: World, period: int) -> None:
        self._year = world.time.year(period)

    def start_visit_region(self, region: Region, period: int) -> None:
        self._region = region.name

    def start_visit_sector(self, sector: Sector, period: int) -> None:
        self._sector = sector.name
        self._append(
            "sector",
            subsector="",
            technology="",
            share=1.0,
            price=sector.get_price(period),
            output=sector.get_output(period),
            input=sector.get_input(period),
            emissions=sector.get_emissions(period),
            share_weight=float("nan"),
            capacity_limited=False,
        )

    def start_visit_subsector(self, subsector: Subsector, period: int) -> None:
        self._subsector = subsector.name
        self._append(
            "subsector",
            subsector=subsector.name,
            technology="",
            share=subsector.get_share(period),
            price=subsector.get_price(period),
            output=subsector.get_output(period),
            input=subsector.get_input(period),
            emissions=float(subsector.emissions[period]),
            share_weight=float(subsector.share_weight[period]),
            capacity_limited=subsector.get_cap_limit_status(period),
        )

    def visit_technology(self, technology: Technology, period: int) -> None:
        self._append(
            "technology",
            subsector=self._subsector,
            technology=technology.name,
            share=float(technology.share[period]),
            price=technology.get_cost(period),
            output=float(technology.output[period]),
            input=float(technology.input[period]),
            emissions=float(technology.emissions[period]),
            share_weight=float(technology.share_weight[period]),
            capacity_limited=False,
        )

    def _append(self, level: str, **values: object) -> None:
        self.rows.append(
            {"year": self._year, "region": self._region, "sector": self._sector, "level": level, **values}
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=list(SUMMARY_COLUMNS))


def summary_frame(world: World, periods: Iterable[int]) -> pd.DataFrame:
    """Summary rows of ``world`` for each of ``periods``."""
    visitor = SummaryVisitor()
    for period in periods:
        world.accept(visitor, period)
    return visitor.to_frame()


def emissions_frame(world: World, periods: Iterable[int] | None = None) -> pd.DataFrame:
    """World CO₂ emissions and carbon tax by year."""
    quantity = world.get_emissions_quantity_curves(periods)
    price = world.get_emissions_price_curves(periods)
    return pd.DataFrame(
        {"year": quantity.index.astype(int), "co2_emissions": quantity.values, "carbon_tax": price.values}
    )
