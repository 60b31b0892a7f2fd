import math

import numpy as np
import pandas as pd
import pytest

from climate_module import ClimateModel, NullClimateModel, build_climate_model


def test_null_climate_model_records_emissions():
    model = NullClimateModel()
    assert isinstance(model, ClimateModel)
    model.set_emissions("CO2", 2020, 10.0)
    model.set_emissions("CO2", 2030, 12.0)
    model.run_model()
    assert model.emissions == {"CO2": {2020: 10.0, 2030: 12.0}}
    assert math.isnan(model.get_temperature(2030))


def test_disabled_climate_config_gives_null_model():
    assert isinstance(build_climate_model(None), NullClimateModel)
    assert isinstance(build_climate_model({"enabled": False, "scenario": "ssp119"}), NullClimateModel)


def test_fair_model_from_config():
    pytest.importorskip("fair")
    from climate_module.fair_model import FairClimateModel

    model = build_climate_model({"enabled": True, "scenario": "ssp119", "start_year": 1750, "end_year": 2100})
    assert isinstance(model, FairClimateModel)
    assert model.scenario == "ssp119"
    with pytest.raises(RuntimeError):
        model.get_temperature(2050)
    with pytest.raises(ValueError):
        FairClimateModel(start_year=2100, end_year=2000)


def test_emission_delta_is_relative_to_first_year():
    pytest.importorskip("fair")
    from climate_module.fair_model import emission_delta

    timepoints = np.arange(2008.5, 2034.5, 1.0)
    delta = emission_delta({2010: 5.0, 2020: 7.0, 2030: 6.0}, timepoints)
    by_year = dict(zip(np.floor(timepoints).astype(int), delta))
    assert by_year[2008] == 0.0 and by_year[2009] == 0.0
    assert by_year[2010] == 0.0
    assert by_year[2015] == pytest.approx(1.0)
    assert by_year[2020] == pytest.approx(2.0)
    assert by_year[2033] == pytest.approx(1.0)
    np.testing.assert_allclose(emission_delta({}, timepoints), 0.0)


def test_climate_run_frame():
    pytest.importorskip("fair")
    from climate_module.fair_model import ClimateRun

    run = ClimateRun(
        years=np.array([2020.0, 2021.0]),
        baseline=np.array([1.0, 1.2]),
        modelled=np.array([1.1, 1.5]),
    )
    np.testing.assert_allclose(run.delta, [0.1, 0.3])
    frame = run.to_frame()
    assert isinstance(frame, pd.DataFrame)
    assert frame.columns.tolist() == [
        "year",
        "temperature_baseline",
        "temperature_modelled",
        "temperature_delta",
    ]
