import textwrap

import pytest
import yaml

from climate_module import NullClimateModel
from model_objects import RegionKind, build_world, load_calibration_targets, load_world

CONFIG = textwrap.dedent(
    """
    time_horizon: {start: 2010, end: 2030, step: 10}
    calibration:
      enabled: true
      accuracy: 0.0001
      calibration_file: calibration.csv
    solver: {max_workers: 2}
    policy:
      name: carbon_tax
      taxes: {2010: 0.0, 2030: 20.0}
    regions:
      - name: north
        gdp_per_capita: {2010: 10.0, 2030: 20.0}
        prices: {gas: 4.0}
        final_demand:
          electricity: {base: 100.0, price_elasticity: -0.2}
        sectors:
          - name: electricity
            subsectors:
              - name: gas
                technologies:
                  - {name: gas_cc, fuel: gas, efficiency: 0.5, non_energy_cost: 1.5, emissions_coefficient: 0.05}
              - name: wind
                capacity_limit: 0.5
                share_weight_target: {year: 2030, value: 2.0}
                technologies:
                  - {name: turbine, non_energy_cost: {2010: 12.0, 2030: 6.0}}
      - name: south
        kind: general_equilibrium
        final_demand:
          electricity: 40.0
        sectors:
          - name: electricity
            subsectors:
              - name: hydro
                technologies:
                  - {name: dam, non_energy_cost: 3.0, fixed_output: {2010: 10.0}}
              - name: solar
                technologies:
                  - {name: pv, non_energy_cost: 8.0}
    """
)

CALIBRATION = textwrap.dedent(
    """\
    region,sector,subsector,technology,year,value
    north,electricity,wind,,2010,30.0
    south,electricity,solar,pv,2010,30.0
    """
)


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG)
    (tmp_path / "calibration.csv").write_text(CALIBRATION)
    return path


def test_load_world_builds_hierarchy(config_path):
    world = load_world(config_path)
    assert world.time.years == (2010, 2020, 2030)
    assert [atom.name for atom in world.get_region_ids()] == ["north", "south"]
    assert world.max_workers == 2
    assert world.get_calibration_setting()
    assert isinstance(world.get_climate_model(), NullClimateModel)

    north, south = world.regions
    assert north.kind is RegionKind.PARTIAL_EQUILIBRIUM
    assert south.kind is RegionKind.GENERAL_EQUILIBRIUM
    wind = north.get_sector("electricity").subsectors[1]
    assert wind.capacity_limit[0] == 0.5
    assert wind.do_calibration.tolist() == [True, False, False]
    assert wind.calibration_value[0] == 30.0
    assert wind.share_weight_target == (2, 2.0)
    assert wind.technologies[0].non_energy_cost.tolist() == [12.0, 9.0, 6.0]
    pv = south.get_sector("electricity").subsectors[1].technologies[0]
    assert pv.calibration_output[0] == 30.0
    assert north.policy is not None and north.policy.tax(2) == 20.0


def test_built_world_calibrates(config_path):
    world = load_world(config_path)
    world.init_calc(0)
    world.calc(0)
    world.calc(0)
    assert world.is_all_calibrated(0)
    wind = world.regions[0].get_sector("electricity").subsectors[1]
    assert wind.get_output(0) == pytest.approx(30.0, rel=2e-4)


def test_calibration_targets_table(tmp_path):
    path = tmp_path / "cal.csv"
    path.write_text(CALIBRATION)
    targets = load_calibration_targets(path)
    assert targets[("north", "electricity", "wind", "")] == {2010: 30.0}
    assert targets[("south", "electricity", "solar", "pv")] == {2010: 30.0}

    bad = tmp_path / "bad.csv"
    bad.write_text("region,sector,value\nnorth,electricity,1\n")
    with pytest.raises(ValueError):
        load_calibration_targets(bad)
    with pytest.raises(FileNotFoundError):
        load_calibration_targets(tmp_path / "missing.csv")


def test_config_errors_are_reported():
    with pytest.raises(ValueError):
        build_world({"time_horizon": {"start": 2010, "end": 2020, "step": 10}})
    base = yaml.safe_load(CONFIG)
    base["calibration"].pop("calibration_file")
    base["regions"][1]["kind"] = "mixed"
    with pytest.raises(ValueError):
        build_world(base)
    base["regions"][1]["kind"] = "ge"
    base["regions"][0]["sectors"][0]["subsectors"][0].pop("name")
    with pytest.raises(ValueError):
        build_world(base)


def test_load_world_honours_env_override(config_path, monkeypatch):
    monkeypatch.setenv("MARKET_SHARE_CONFIG_PATH", str(config_path))
    world = load_world()
    assert len(world.regions) == 2
