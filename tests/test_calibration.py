import numpy as np
import pytest

from calibration import (
    CalibrationSettings,
    adjust_share_weight,
    interpolate_share_weights,
    is_calibrated,
    normalize_share_weights,
    relative_error,
    reserve_fixed_supply,
    sector_cal_consistency,
)
from model_objects import FinalDemand, Region, Sector, Subsector, Technology, World
from conftest import build_region


def no_fuel(good):
    raise AssertionError(f"unexpected price lookup for {good}")


def calibrated_sector(time, target=70.0, cal_years=(2010,)):
    return Sector(
        "electricity",
        time,
        [
            Subsector(
                "coal",
                time,
                [Technology("steam", time, non_energy_cost=5.0)],
                logit_exponent=-2.0,
                calibration_output={year: target for year in cal_years},
            ),
            Subsector("gas", time, [Technology("cc", time, non_energy_cost=5.0)], logit_exponent=-2.0),
        ],
        region_name="north",
    )


def test_adjust_share_weight_rules():
    assert adjust_share_weight(1.0, 60.0, 30.0) == pytest.approx(2.0)
    assert adjust_share_weight(0.0, 5.0, 0.0) == 1.0
    assert adjust_share_weight(0.0, 0.0, 0.0) == 0.0
    assert adjust_share_weight(2.0, 0.0, 10.0) == 0.0


def test_relative_error_and_accuracy():
    assert relative_error(101.0, 100.0) == pytest.approx(0.01)
    assert relative_error(0.5, 0.0) == 0.5
    assert is_calibrated(100.05, 100.0, 1e-3)
    assert not is_calibrated(101.0, 100.0, 1e-3)


def test_calibration_reaches_target(time):
    settings = CalibrationSettings(enabled=True, accuracy=1e-4)
    sector = calibrated_sector(time)
    sector.init_calc(0)
    sector.calc_price(0, no_fuel)
    sector.set_output(100.0, 0, settings)
    coal = sector.subsectors[0]
    assert coal.get_output(0) == pytest.approx(70.0, rel=2e-4)
    assert sector.is_all_calibrated(0, 1e-4)
    assert coal.share_weight[0] > 1.0
    assert sector.check_cal_consistency(0, 1e-4)


def test_calibration_off_leaves_logit_result(time):
    sector = calibrated_sector(time)
    sector.init_calc(0)
    sector.calc_price(0, no_fuel)
    sector.set_output(100.0, 0, CalibrationSettings(enabled=False))
    assert sector.subsectors[0].get_output(0) == pytest.approx(50.0)
    assert not sector.is_all_calibrated(0, 1e-3)
    failures = sector.calibration_failures(0, 1e-3)
    assert [failure.subsector for failure in failures] == ["coal"]
    assert "north/electricity/coal" in failures[0].describe()


def test_capacity_limited_subsector_is_not_pushed_up(time):
    settings = CalibrationSettings(enabled=True)
    sector = calibrated_sector(time, target=90.0)
    coal = sector.subsectors[0]
    coal.capacity_limit[:] = 0.6
    sector.init_calc(0)
    sector.calc_price(0, no_fuel)
    sector.set_output(100.0, 0, settings)
    assert coal.get_share(0) == 0.6
    assert coal.get_cap_limit_status(0)
    assert coal.share_weight[0] == pytest.approx(1.8)


def test_post_calc_normalises_and_carries_weights_forward(time):
    settings = CalibrationSettings(enabled=True, accuracy=1e-6)
    sector = calibrated_sector(time)
    sector.init_calc(0)
    sector.calc_price(0, no_fuel)
    sector.set_output(100.0, 0, settings)
    coal, gas = sector.subsectors
    ratio = coal.share_weight[0] / gas.share_weight[0]

    sector.post_calc(0, settings)
    assert coal.share_weight[0] / gas.share_weight[0] == pytest.approx(ratio)
    assert (coal.share_weight[0] + gas.share_weight[0]) / 2 == pytest.approx(1.0)
    np.testing.assert_allclose(coal.share_weight, coal.share_weight[0])
    np.testing.assert_allclose(gas.share_weight, gas.share_weight[0])

    # the next, uncalibrated period reproduces the calibrated split
    sector.init_calc(1)
    sector.calc_price(1, no_fuel)
    sector.set_output(100.0, 1, settings)
    assert coal.get_output(1) == pytest.approx(70.0, rel=1e-5)


def test_interpolation_between_anchors():
    values = np.array([2.0, 0.0, 0.0, 4.0, 0.0])
    np.testing.assert_allclose(
        interpolate_share_weights(values, [0, 3]), [2.0, 8 / 3, 10 / 3, 4.0, 4.0]
    )
    np.testing.assert_allclose(
        interpolate_share_weights([1.0, 0.0, 4.0], [0, 2], space="log"), [1.0, 2.0, 4.0]
    )
    np.testing.assert_allclose(
        interpolate_share_weights([0.0, 0.0, 4.0], [0, 2], space="log"), [0.0, 2.0, 4.0]
    )
    with pytest.raises(ValueError):
        interpolate_share_weights(values, [0], space="cubic")


def test_interpolation_towards_target():
    result = interpolate_share_weights([2.0, 0.0, 0.0, 0.0, 0.0], [0], target=(4, 6.0))
    np.testing.assert_allclose(result, [2.0, 3.0, 4.0, 5.0, 6.0])


def test_interpolation_leaves_periods_before_first_anchor():
    result = interpolate_share_weights([7.0, 1.0, 0.0], [1])
    np.testing.assert_allclose(result, [7.0, 1.0, 1.0])


def test_normalize_share_weights():
    np.testing.assert_allclose(normalize_share_weights([2.0, 0.0, 6.0]), [0.5, 0.0, 1.5])
    np.testing.assert_allclose(normalize_share_weights([0.0, 0.0]), [0.0, 0.0])


def test_reserve_fixed_supply_scales_by_one_ratio(time):
    sector = Sector(
        "electricity",
        time,
        [
            Subsector("hydro", time, [Technology("dam", time, fixed_output={2010: 60.0})]),
            Subsector("nuclear", time, [Technology("npp", time, fixed_output={2010: 90.0})]),
            Subsector("wind", time, [Technology("turbine", time)], fixed_share={2010: 0.25}),
        ],
    )
    reserved = reserve_fixed_supply(sector, 100.0, 0)
    np.testing.assert_allclose(reserved, [0.3, 0.45, 0.0])
    hydro, nuclear, _ = sector.subsectors
    assert hydro.get_fixed_supply(0) == pytest.approx(30.0)
    assert nuclear.get_fixed_supply(0) == pytest.approx(45.0)


def test_consistency_flags_targets_above_demand(time):
    sector = calibrated_sector(time, target=120.0)
    sector.init_calc(0)
    sector.calc_price(0, no_fuel)
    sector.set_output(100.0, 0)
    assert not sector_cal_consistency(sector, 0, 1e-3)


def test_world_calibration_sweep(time):
    world = World(time, calibration=CalibrationSettings(enabled=True, accuracy=1e-4))
    region = build_region(time, "north")
    coal = region.get_sector("electricity").subsectors[0]
    coal.calibration_value[0] = 80.0
    coal.do_calibration[0] = True
    world.add_region(region)
    world.init_calc(0)
    world.calc(0)
    assert world.is_all_calibrated(0, 1e-4)
    prices = {sector.name: sector.price.copy() for sector in region.sectors}
    world.calc(0)
    for sector in region.sectors:
        np.testing.assert_array_equal(sector.price, prices[sector.name])
    world.turn_calibrations_off()
    assert world.is_all_calibrated(0)


def test_calibrated_price_matches_final_shares_and_repeats(time):
    sector = Sector(
        "electricity",
        time,
        [
            Subsector("coal", time, [Technology("steam", time, non_energy_cost=5.0)], logit_exponent=-2.0),
            Subsector(
                "gas",
                time,
                [Technology("cc", time, non_energy_cost=10.0)],
                logit_exponent=-2.0,
                calibration_output={2010: 70.0},
            ),
        ],
    )
    region = Region(
        "north",
        time,
        [sector],
        final_demand={
            "electricity": FinalDemand("electricity", time.new_array(100.0), price_elasticity=-0.3)
        },
    )
    world = World(time, calibration=CalibrationSettings(enabled=True, accuracy=1e-6))
    world.add_region(region)
    world.init_calc(0)
    world.calc(0)
    coal, gas = sector.subsectors
    assert gas.get_output(0) == pytest.approx(70.0, rel=1e-5)
    assert sector.get_price(0) == pytest.approx(coal.get_share(0) * 5.0 + gas.get_share(0) * 10.0)

    price = sector.price.copy()
    shares = [sub.share.copy() for sub in sector.subsectors]
    world.calc(0)
    np.testing.assert_array_equal(sector.price, price)
    for sub, before in zip(sector.subsectors, shares):
        np.testing.assert_array_equal(sub.share, before)


def renewables_sector(time, *, target=None, limit=1.0):
    return Sector(
        "electricity",
        time,
        [
            Subsector(
                "renewables",
                time,
                [
                    Technology("wind", time, non_energy_cost=5.0),
                    Technology("hydro", time, non_energy_cost=1.0, fixed_output={2010: 50.0}),
                ],
                logit_exponent=-2.0,
                capacity_limit=limit,
                calibration_output={2010: target} if target is not None else None,
            ),
            Subsector("gas", time, [Technology("cc", time, non_energy_cost=5.0)], logit_exponent=-2.0),
        ],
        region_name="north",
    )


def test_fixed_supply_above_target_is_scaled_to_target(time):
    settings = CalibrationSettings(enabled=True, accuracy=1e-6)
    sector = renewables_sector(time, target=30.0)
    sector.init_calc(0)
    sector.calc_price(0, no_fuel)
    sector.set_output(100.0, 0, settings)
    renewables, gas = sector.subsectors
    wind, hydro = renewables.technologies
    assert renewables.get_output(0) == pytest.approx(30.0)
    assert hydro.output[0] == pytest.approx(30.0)
    assert wind.output[0] == pytest.approx(0.0, abs=1e-9)
    assert gas.get_output(0) == pytest.approx(70.0)
    assert sector.is_all_calibrated(0, 1e-6)
    # the configured value is restored without calibration
    sector.set_output(100.0, 0)
    assert hydro.output[0] == pytest.approx(50.0)


def test_fixed_supply_is_held_to_capacity_limit(time):
    sector = renewables_sector(time, limit=0.3)
    reserved = reserve_fixed_supply(sector, 100.0, 0)
    np.testing.assert_allclose(reserved, [0.3, 0.0])
    renewables, gas = sector.subsectors
    assert renewables.get_fixed_supply(0) == pytest.approx(30.0)

    sector.calc_price(0, no_fuel)
    sector.set_output(100.0, 0)
    assert renewables.get_share(0) == 0.3
    assert renewables.get_cap_limit_status(0)
    assert renewables.get_output(0) == pytest.approx(30.0)
    assert gas.get_share(0) == pytest.approx(0.7)
