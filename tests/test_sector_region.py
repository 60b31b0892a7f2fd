import math

import numpy as np
import pytest

from conftest import build_region
from model_objects import (
    FinalDemand,
    GHGPolicy,
    ModelStructureError,
    Region,
    RegionKind,
    Sector,
    Subsector,
    Technology,
)


def no_fuel(good):
    raise AssertionError(f"unexpected price lookup for {good}")


def two_option_sector(time, *, limit=1.0, fixed_output=None):
    return Sector(
        "electricity",
        time,
        [
            Subsector(
                "hydro",
                time,
                [Technology("dam", time, non_energy_cost=5.0, fixed_output=fixed_output)],
                capacity_limit=limit,
                logit_exponent=-2.0,
                share_weight=1.5,
            ),
            Subsector(
                "wind",
                time,
                [Technology("turbine", time, non_energy_cost=5.0)],
                logit_exponent=-2.0,
            ),
        ],
        region_name="north",
    )


def test_sector_capacity_limit_scenario(time):
    sector = two_option_sector(time, limit=0.3)
    sector.calc_price(0, no_fuel)
    hydro, wind = sector.subsectors
    assert hydro.get_share(0) == 0.3
    assert hydro.get_cap_limit_status(0)
    assert wind.get_share(0) == pytest.approx(0.7)
    sector.set_output(100.0, 0)
    assert hydro.get_output(0) == pytest.approx(30.0)
    assert wind.get_output(0) == pytest.approx(70.0)
    assert sector.get_output(0) == pytest.approx(100.0)


def test_sector_price_is_share_weighted(time):
    sector = Sector(
        "heat",
        time,
        [
            Subsector("a", time, [Technology("a1", time, non_energy_cost=10.0)], logit_exponent=-1.0),
            Subsector("b", time, [Technology("b1", time, non_energy_cost=20.0)], logit_exponent=-1.0),
        ],
    )
    price = sector.calc_price(0, no_fuel)
    assert price == pytest.approx(2 / 3 * 10 + 1 / 3 * 20)


def test_fixed_supply_is_reserved_before_the_logit(time):
    sector = two_option_sector(time, fixed_output={2010: 30.0})
    sector.calc_price(0, no_fuel)
    sector.set_output(100.0, 0)
    hydro, wind = sector.subsectors
    assert hydro.get_share(0) == pytest.approx(0.3)
    assert hydro.get_output(0) == pytest.approx(30.0)
    assert wind.get_output(0) == pytest.approx(70.0)


def test_fixed_supply_above_demand_is_scaled_to_fit(time):
    sector = two_option_sector(time, fixed_output={2010: 150.0})
    sector.calc_price(0, no_fuel)
    sector.set_output(100.0, 0)
    hydro, wind = sector.subsectors
    assert hydro.get_output(0) == pytest.approx(100.0)
    assert wind.get_output(0) == pytest.approx(0.0)
    # the configured value comes back on the next pass
    sector.set_output(200.0, 0)
    assert hydro.get_output(0) == pytest.approx(150.0)
    assert wind.get_output(0) == pytest.approx(50.0)


def test_sector_records_unmet_demand(time):
    sector = Sector(
        "heat", time, [Subsector("a", time, [Technology("a1", time)], share_weight=0.0)]
    )
    sector.calc_price(0, no_fuel)
    sector.set_output(10.0, 0)
    assert sector.unmet_demand[0] == pytest.approx(10.0)
    assert sector.get_output(0) == 0.0
    assert math.isnan(sector.get_price(0))


def test_sector_rejects_negative_demand(time):
    sector = two_option_sector(time)
    with pytest.raises(ModelStructureError):
        sector.set_output(-1.0, 0)


def test_region_feeds_input_demand_upstream(time):
    region = build_region(time, "north")
    region.calc(0)
    transport = region.get_sector("transport")
    electric = transport.subsectors[0].technologies[0]
    electricity = region.get_sector("electricity")
    assert electricity.get_demand(0) == pytest.approx(100.0 + electric.output[0] / 2.0)
    assert region.get_demand("coal", 0) > 0
    assert region.get_demand("gas", 0) > 0
    assert region.get_emissions(0) > 0
    total_share = sum(sub.get_share(0) for sub in electricity.subsectors)
    assert total_share == pytest.approx(1.0, abs=1e-9)


def test_partial_equilibrium_demand_reacts_to_income(time):
    region = build_region(time, "north")
    region.final_demand["transport"] = FinalDemand(
        "transport", time.new_array(50.0), income_elasticity=1.0
    )
    region.calc(0)
    region.calc(2)
    demand = region.calc_final_demand(2)
    assert demand["transport"] == pytest.approx(100.0)


def test_partial_equilibrium_demand_reacts_to_price(time):
    region = build_region(time, "north")
    region.calc(0)
    region.prices["coal"][1] = 20.0
    region.prices["gas"][1] = 40.0
    region.calc(1)
    assert region.get_sector("electricity").get_demand(1) < region.get_sector("electricity").get_demand(0)


def test_general_equilibrium_uses_supplied_demand(time):
    region = build_region(time, "south")
    region.kind = RegionKind.GENERAL_EQUILIBRIUM
    region.set_final_demand("electricity", 42.0, 0)
    region.set_final_demand("transport", 0.0, 0)
    region.calc(0)
    assert region.get_sector("electricity").get_demand(0) == pytest.approx(42.0)
    with pytest.raises(ModelStructureError):
        region.set_final_demand("steel", 1.0, 0)


def test_partial_equilibrium_demand_cannot_be_supplied(time):
    region = build_region(time, "north")
    with pytest.raises(ModelStructureError):
        region.set_final_demand("electricity", 1.0, 0)


def test_region_kind_parsing():
    assert RegionKind.parse("general-equilibrium") is RegionKind.GENERAL_EQUILIBRIUM
    assert RegionKind.parse("PE") is RegionKind.PARTIAL_EQUILIBRIUM
    with pytest.raises(ValueError):
        RegionKind.parse("mixed")


def test_region_prices(time):
    region = build_region(time, "north")
    region.set_price("coal", 3.0, 1)
    assert region.get_price("coal", 1) == 3.0
    with pytest.raises(ModelStructureError):
        region.set_price("electricity", 1.0, 0)
    with pytest.raises(ModelStructureError):
        region.get_price("uranium", 0)


def test_region_requires_dependency_order(time):
    consumer = Sector("transport", time, [Subsector("cars", time, [Technology("ev", time, fuel="electricity")])])
    producer = Sector("electricity", time, [Subsector("wind", time, [Technology("turbine", time)])])
    with pytest.raises(ModelStructureError):
        Region("north", time, [consumer, producer])
    region = Region("north", time, [producer, consumer])
    assert region.produced_goods == ["electricity", "transport"]


def test_region_rejects_unpriced_fuel(time):
    sector = Sector("heat", time, [Subsector("s", time, [Technology("t", time, fuel="uranium")])])
    with pytest.raises(ModelStructureError):
        Region("north", time, [sector])


def test_carbon_tax_shifts_shares_away_from_coal(time):
    untaxed = build_region(time, "north")
    untaxed.calc(1)
    taxed = build_region(time, "north")
    taxed.set_tax(GHGPolicy.from_mapping("tax", 50.0, time))
    taxed.calc(1)
    coal_untaxed = untaxed.get_sector("electricity").subsectors[0].get_share(1)
    coal_taxed = taxed.get_sector("electricity").subsectors[0].get_share(1)
    assert coal_taxed < coal_untaxed
    assert taxed.get_sector("electricity").get_total_carbon_tax_paid(1) > 0


def test_region_calc_is_idempotent(time):
    region = build_region(time, "north")
    region.init_calc(0)
    region.calc(0)
    first = {
        sub.name: (sub.share.copy(), sub.output.copy(), sub.price.copy())
        for sector in region.sectors
        for sub in sector.subsectors
    }
    region.calc(0)
    for sector in region.sectors:
        for sub in sector.subsectors:
            share, output, price = first[sub.name]
            np.testing.assert_array_equal(sub.share, share)
            np.testing.assert_array_equal(sub.output, output)
            np.testing.assert_array_equal(sub.price, price)
