"""Ensure the project package is importable during tests without installation."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

root_path = str(ROOT)
if root_path not in sys.path:
    sys.path.insert(0, root_path)

src_path = str(SRC)
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from model_objects import (  # noqa: E402
    FinalDemand,
    ModelTime,
    Region,
    Sector,
    Subsector,
    Technology,
    World,
)


@pytest.fixture
def time() -> ModelTime:
    return ModelTime((2010, 2020, 2030))


def build_region(time: ModelTime, name: str, *, demand: float = 100.0, gas_price: float = 4.0) -> Region:
    """Electricity from coal or gas, plus a transport sector using electricity."""
    electricity = Sector(
        "electricity",
        time,
        [
            Subsector(
                "coal",
                time,
                [
                    Technology(
                        "coal_steam",
                        time,
                        fuel="coal",
                        efficiency=0.4,
                        non_energy_cost=2.0,
                        emissions_coefficient=0.1,
                    )
                ],
                logit_exponent=-3.0,
            ),
            Subsector(
                "gas",
                time,
                [
                    Technology(
                        "gas_cc",
                        time,
                        fuel="gas",
                        efficiency=0.5,
                        non_energy_cost=1.5,
                        emissions_coefficient=0.05,
                    )
                ],
                logit_exponent=-3.0,
            ),
        ],
    )
    transport = Sector(
        "transport",
        time,
        [
            Subsector(
                "cars",
                time,
                [
                    Technology("electric", time, fuel="electricity", efficiency=2.0, non_energy_cost=5.0),
                    Technology(
                        "petrol",
                        time,
                        fuel="gas",
                        efficiency=0.25,
                        non_energy_cost=3.0,
                        emissions_coefficient=0.07,
                    ),
                ],
                logit_exponent=-2.0,
            )
        ],
    )
    return Region(
        name,
        time,
        [electricity, transport],
        gdp_per_capita={2010: 1.0, 2030: 2.0},
        prices={"coal": 2.0, "gas": gas_price},
        final_demand={
            "electricity": FinalDemand("electricity", time.new_array(demand), price_elasticity=-0.3),
            "transport": FinalDemand("transport", time.new_array(demand / 2)),
        },
    )


@pytest.fixture
def make_world(time):
    def _make(**kwargs) -> World:
        world = World(time, **kwargs)
        world.add_region(build_region(time, "north"))
        world.add_region(build_region(time, "south", demand=60.0, gas_price=6.0))
        return world

    return _make
