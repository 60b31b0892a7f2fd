"""FaIR-backed climate model for world CO₂ emissions.

The model runs two FaIR configurations for one RCMIP scenario: ``baseline``
keeps the scenario emissions and ``modelled`` adds the change of the modelled
world CO₂ emissions relative to the first reported model year. Model emissions
are multiplied by ``unit_scale`` to convert them to GtCO₂/yr, FaIR's unit for
``CO2 FFI``.

Supported scenario identifiers are those bundled with FaIR's RCMIP data set,
for example ``ssp119``, ``ssp245`` (default) or ``ssp370``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np
import pandas as pd
from fair import FAIR

from .base import LOGGER

# AR6 species table shipped with FaIR.
_SPECIES_CONFIG_PATH = Path(FAIR.fill_species_configs.__defaults__[0]).resolve()

SPECIES: Sequence[str] = (
    "CO2 FFI",
    "CO2 AFOLU",
    "CO2",
    "CH4",
    "N2O",
    "Solar",
    "Volcanic",
    "Aerosol-radiation interactions",
    "Aerosol-cloud interactions",
    "Ozone",
    "Stratospheric water vapour",
    "Contrails",
    "Land use",
    "Light absorbing particles on snow and ice",
)

CLIMATE_PRESETS: Mapping[str, Mapping[str, Sequence[float] | float]] = {
    "ar6": {
        "ocean_heat_capacity": (7.0, 100.0, 1000.0),
        "ocean_heat_transfer": (0.7, 0.3, 0.05),
        "deep_ocean_efficacy": 1.28,
        "forcing_4co2": 7.4,
    },
    "two_box": {
        "ocean_heat_capacity": (8.2, 109.0),
        "ocean_heat_transfer": (1.7, 0.18),
        "deep_ocean_efficacy": 1.0,
        "forcing_4co2": 7.2,
    },
}

CONFIGS = ("baseline", "modelled")
EMISSIONS_SPECIE = "CO2 FFI"

ClimateSetup = Union[str, Mapping[str, Sequence[float] | float]]


@dataclass
class ClimateRun:
    """Surface temperature anomalies of one FaIR run."""

    years: np.ndarray
    baseline: np.ndarray
    modelled: np.ndarray

    @property
    def delta(self) -> np.ndarray:
        return self.modelled - self.baseline

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "year": self.years,
                "temperature_baseline": self.baseline,
                "temperature_modelled": self.modelled,
                "temperature_delta": self.delta,
            }
        )


class FairClimateModel:
    def __init__(
        self,
        *,
        scenario: str = "ssp245",
        start_year: int = 1750,
        end_year: int = 2100,
        climate_setup: ClimateSetup = "ar6",
        unit_scale: float = 1.0,
    ) -> None:
        if end_year <= start_year:
            raise ValueError("climate_module.end_year must be after start_year.")
        self.scenario = scenario
        self.start_year = int(start_year)
        self.end_year = int(end_year)
        self.climate_setup = climate_setup
        self.unit_scale = float(unit_scale)
        self.emissions: dict[str, dict[int, float]] = {}
        self.result: ClimateRun | None = None

    @classmethod
    def from_config(cls, cfg: Mapping[str, object]) -> "FairClimateModel":
        return cls(
            scenario=str(cfg.get("scenario", "ssp245")),
            start_year=int(cfg.get("start_year", 1750)),  # type: ignore[arg-type]
            end_year=int(cfg.get("end_year", 2100)),  # type: ignore[arg-type]
            climate_setup=cfg.get("climate_setup", "ar6"),  # type: ignore[arg-type]
            unit_scale=float(cfg.get("unit_scale", 1.0)),  # type: ignore[arg-type]
        )

    def set_emissions(self, gas: str, year: int, value: float) -> None:
        self.emissions.setdefault(gas, {})[int(year)] = float(value)

    def run_model(self) -> None:
        LOGGER.info("Running FaIR for scenario '%s'", self.scenario)
        model = _build_model(self.scenario, self.start_year, self.end_year, self.climate_setup)
        delta = emission_delta(self.emissions.get("CO2", {}), model.timepoints) * self.unit_scale
        selection = {"specie": EMISSIONS_SPECIE, "scenario": self.scenario, "config": "modelled"}
        model.emissions.loc[selection] = model.emissions.loc[selection].values + delta
        model.run(progress=False)

        surface = model.temperature.sel(layer=0, scenario=self.scenario)
        self.result = ClimateRun(
            years=np.asarray(model.timebounds, dtype=float).copy(),
            baseline=np.asarray(surface.sel(config="baseline").values, dtype=float),
            modelled=np.asarray(surface.sel(config="modelled").values, dtype=float),
        )

    def get_temperature(self, year: int) -> float:
        if self.result is None:
            raise RuntimeError("Call run_model() before asking for temperatures.")
        return float(np.interp(float(year), self.result.years, self.result.modelled))


def emission_delta(emissions: Mapping[int, float], timepoints: np.ndarray) -> np.ndarray:
    """Emissions change relative to the first reported year, on FaIR timepoints.

    Linear between reported years, held after the last one and zero before the
    first one.
    """
    delta = np.zeros(len(timepoints), dtype=float)
    if not emissions:
        return delta
    years = np.array(sorted(emissions), dtype=float)
    values = np.array([emissions[int(year)] for year in years], dtype=float) - emissions[int(years[0])]
    # FaIR timepoints sit mid-year: 2020.5 carries the 2020 emissions.
    calendar = np.floor(np.asarray(timepoints, dtype=float))
    active = calendar >= years[0]
    delta[active] = np.interp(calendar[active], years, values)
    return delta


def _build_model(scenario: str, start_year: int, end_year: int, setup: ClimateSetup) -> FAIR:
    model = FAIR()
    model.define_time(start_year, end_year, 1)
    model.define_scenarios([scenario])
    model.define_configs(list(CONFIGS))
    model.define_species(list(SPECIES), _species_properties(SPECIES))
    model.allocate()
    model.fill_species_configs()
    _apply_climate_setup(model, setup)
    model.fill_from_rcmip()

    first = float(model.timebounds[0])
    model.cumulative_emissions.loc[{"timebounds": first}] = 0.0
    model.airborne_emissions.loc[{"timebounds": first}] = 0.0
    model.temperature.loc[{"timebounds": first}] = 0.0
    baselines = model.species_configs["baseline_concentration"]
    for specie in model.properties_df.index[model.properties_df["greenhouse_gas"]]:
        model.concentration.loc[{"timebounds": first, "specie": specie}] = baselines.sel(
            specie=specie
        ).values
    return model


def _species_properties(species: Sequence[str]) -> dict[str, dict[str, object]]:
    table = pd.read_csv(_SPECIES_CONFIG_PATH, index_col=0)
    missing = sorted(set(species) - set(table.index))
    if missing:
        raise ValueError(f"Species not recognised by FaIR defaults: {missing}")
    return {
        specie: {
            "type": row["type"],
            "input_mode": row["input_mode"],
            "greenhouse_gas": bool(row["greenhouse_gas"]),
            "aerosol_chemistry_from_emissions": bool(row["aerosol_chemistry_from_emissions"]),
            "aerosol_chemistry_from_concentration": bool(
                row["aerosol_chemistry_from_concentration"]
            ),
        }
        for specie, row in table.loc[list(species)].iterrows()
    }


def _apply_climate_setup(model: FAIR, setup: ClimateSetup) -> None:
    if isinstance(setup, str):
        if setup.lower() not in CLIMATE_PRESETS:
            raise ValueError(
                f"Unknown climate preset '{setup}'. Available presets: {sorted(CLIMATE_PRESETS)}"
            )
        params = CLIMATE_PRESETS[setup.lower()]
    else:
        params = setup
    required = {"ocean_heat_capacity", "ocean_heat_transfer", "deep_ocean_efficacy", "forcing_4co2"}
    missing = required - set(params)
    if missing:
        raise ValueError("Climate setup is missing required keys: " + ", ".join(sorted(missing)))

    for cfg in model.configs:
        model.climate_configs["ocean_heat_capacity"].loc[cfg, :] = np.asarray(
            params["ocean_heat_capacity"], dtype=float
        )
        model.climate_configs["ocean_heat_transfer"].loc[cfg, :] = np.asarray(
            params["ocean_heat_transfer"], dtype=float
        )
        model.climate_configs["deep_ocean_efficacy"].loc[cfg] = float(params["deep_ocean_efficacy"])  # type: ignore[arg-type]
        model.climate_configs["forcing_4co2"].loc[cfg] = float(params["forcing_4co2"])  # type: ignore[arg-type]
