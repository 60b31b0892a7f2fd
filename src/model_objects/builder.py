"""Build a :class:`World` from ``config.yaml`` and an optional calibration table."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

import pandas as pd
import yaml

from calibration.settings import CalibrationSettings
from climate_module.base import build_climate_model
from config_paths import get_config_path, get_config_root, set_config_root
from market_share.constants import DEFAULT_LOGIT_EXPONENT

from .ghg_policy import GHGPolicy
from .model_time import ModelTime
from .region import FinalDemand, Region, RegionKind
from .sector import Sector
from .subsector import Subsector
from .technology import Technology
from .world import World

LOGGER = logging.getLogger(__name__)

CALIBRATION_COLUMNS = ("region", "sector", "subsector", "technology", "year", "value")

# (region, sector, subsector, technology or "") -> {year: value}
CalibrationTargets = dict[tuple[str, str, str, str], dict[int, float]]


def load_config(path: Path | str | None = None) -> dict[str, Any]:
    config_path = Path(path).resolve() if path is not None else get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    with config_path.open() as handle:
        config = yaml.safe_load(handle) or {}
    if not isinstance(config, dict):
        raise ValueError(f"Configuration in {config_path} must be a mapping.")
    set_config_root(config, config_path.parent)
    return config


def load_world(path: Path | str | None = None) -> World:
    return build_world(load_config(path))


def load_calibration_targets(path: Path | str) -> CalibrationTargets:
    """Read calibration outputs from CSV.

    A blank ``technology`` cell makes the row a subsector target.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Calibration file not found: {path}")
    df = pd.read_csv(path, comment="#", dtype={"technology": "string"})
    missing = [col for col in CALIBRATION_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Calibration file '{path}' is missing columns: {missing}")
    df["technology"] = df["technology"].fillna("").str.strip()
    df["year"] = pd.to_numeric(df["year"], errors="raise").astype(int)
    df["value"] = pd.to_numeric(df["value"], errors="raise").astype(float)

    targets: CalibrationTargets = {}
    for row in df.itertuples(index=False):
        key = (str(row.region).strip(), str(row.sector).strip(), str(row.subsector).strip(), row.technology)
        targets.setdefault(key, {})[int(row.year)] = float(row.value)
    return targets


def build_world(config: Mapping[str, Any]) -> World:
    """Construct the world described by ``config``."""
    time = ModelTime.from_config(config.get("time_horizon"))
    cal_cfg = config.get("calibration") or {}
    calibration = CalibrationSettings.from_config(cal_cfg)
    targets: CalibrationTargets = {}
    if cal_cfg.get("calibration_file"):
        root = get_config_root(config)
        targets = load_calibration_targets(root / str(cal_cfg["calibration_file"]))

    solver_cfg = config.get("solver") or {}
    world = World(
        time,
        calibration=calibration,
        climate_model=build_climate_model(config.get("climate_module")),
        max_workers=int(solver_cfg.get("max_workers", 1)),
    )

    regions_cfg = config.get("regions")
    if not regions_cfg:
        raise ValueError("'regions' section missing from config.yaml")
    for region_cfg in regions_cfg:
        world.add_region(_build_region(region_cfg, time, targets))

    policy_cfg = config.get("policy")
    if policy_cfg:
        world.set_tax(
            GHGPolicy.from_mapping(
                str(policy_cfg.get("name", "carbon_tax")),
                policy_cfg.get("taxes", 0.0),
                time,
                market=str(policy_cfg.get("market", "global")),
            )
        )

    unused = set(targets) - _target_keys(world)
    if unused:
        LOGGER.warning("Calibration rows match no model entity: %s", sorted(unused))
    LOGGER.info(
        "Built world with %d region(s) over %d period(s).", len(world.regions), time.n_periods
    )
    return world


def _target_keys(world: World) -> set[tuple[str, str, str, str]]:
    keys: set[tuple[str, str, str, str]] = set()
    for region in world.regions:
        for sector in region.sectors:
            for subsector in sector.subsectors:
                keys.add((region.name, sector.name, subsector.name, ""))
                for tech in subsector.technologies:
                    keys.add((region.name, sector.name, subsector.name, tech.name))
    return keys


def _require_name(cfg: Mapping[str, Any], kind: str) -> str:
    name = cfg.get("name")
    if not name:
        raise ValueError(f"Every {kind} entry needs a 'name'.")
    return str(name)


def _build_region(cfg: Mapping[str, Any], time: ModelTime, targets: CalibrationTargets) -> Region:
    name = _require_name(cfg, "region")
    sectors_cfg = cfg.get("sectors")
    if not sectors_cfg:
        raise ValueError(f"Region '{name}' must define at least one sector.")
    sectors = [_build_sector(sector_cfg, time, name, targets) for sector_cfg in sectors_cfg]
    final_demand = {
        good: FinalDemand.from_config(good, demand_cfg, time)
        for good, demand_cfg in (cfg.get("final_demand") or {}).items()
    }
    return Region(
        name,
        time,
        sectors,
        kind=RegionKind.parse(cfg.get("kind", RegionKind.PARTIAL_EQUILIBRIUM.value)),
        gdp_per_capita=cfg.get("gdp_per_capita", 1.0),
        prices=cfg.get("prices") or {},
        final_demand=final_demand,
    )


def _build_sector(
    cfg: Mapping[str, Any], time: ModelTime, region: str, targets: CalibrationTargets
) -> Sector:
    name = _require_name(cfg, "sector")
    subsectors_cfg = cfg.get("subsectors")
    if not subsectors_cfg:
        raise ValueError(f"Sector '{region}/{name}' must define at least one subsector.")
    subsectors = [
        _build_subsector(sub_cfg, time, region, name, targets) for sub_cfg in subsectors_cfg
    ]
    return Sector(name, time, subsectors, region_name=region)


def _build_subsector(
    cfg: Mapping[str, Any],
    time: ModelTime,
    region: str,
    sector: str,
    targets: CalibrationTargets,
) -> Subsector:
    name = _require_name(cfg, "subsector")
    techs_cfg = cfg.get("technologies")
    if not techs_cfg:
        raise ValueError(f"Subsector '{region}/{sector}/{name}' must define technologies.")
    technologies = [
        _build_technology(tech_cfg, time, (region, sector, name), targets) for tech_cfg in techs_cfg
    ]
    calibration_output = dict(cfg.get("calibration_output") or {})
    calibration_output.update(targets.get((region, sector, name, ""), {}))

    target = cfg.get("share_weight_target")
    share_weight_target = None
    if target is not None:
        share_weight_target = (time.period(int(target["year"])), float(target["value"]))

    return Subsector(
        name,
        time,
        technologies,
        share_weight=cfg.get("share_weight", 1.0),
        logit_exponent=cfg.get("logit_exponent", DEFAULT_LOGIT_EXPONENT),
        capacity_limit=cfg.get("capacity_limit", 1.0),
        fixed_share=cfg.get("fixed_share"),
        calibration_output=calibration_output or None,
        fuel_preference_elasticity=cfg.get("fuel_preference_elasticity", 0.0),
        share_weight_target=share_weight_target,
        region_name=region,
        sector_name=sector,
    )


def _build_technology(
    cfg: Mapping[str, Any],
    time: ModelTime,
    parent: tuple[str, str, str],
    targets: CalibrationTargets,
) -> Technology:
    name = _require_name(cfg, "technology")
    calibration_output = dict(cfg.get("calibration_output") or {})
    calibration_output.update(targets.get((*parent, name), {}))
    fuel = cfg.get("fuel")
    return Technology(
        name,
        time,
        fuel=str(fuel) if fuel else None,
        efficiency=cfg.get("efficiency", 1.0),
        non_energy_cost=cfg.get("non_energy_cost", 0.0),
        share_weight=cfg.get("share_weight", 1.0),
        logit_exponent=cfg.get("logit_exponent", DEFAULT_LOGIT_EXPONENT),
        emissions_coefficient=float(cfg.get("emissions_coefficient", 0.0)),
        fixed_output=cfg.get("fixed_output"),
        calibration_output=calibration_output or None,
    )
