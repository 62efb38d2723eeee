import numpy as np
import pandas as pd
import pytest

from soil_flux.bundle import SiteBundle

START = pd.Timestamp("2021-06-01 00:00")
TIMES = pd.date_range(START, periods=7, freq="30min")
POSITIONS = ["001", "002"]

# sensor depths (m) by vertical position
CO2_DEPTHS = {"501": -0.02, "502": -0.06, "503": -0.16}
TEMP_DEPTHS = {"501": -0.02, "502": -0.06, "503": -0.16, "504": -0.26}
SWC_DEPTHS = {"501": -0.02, "502": -0.10, "503": -0.20}


def _profile(depths, func, value_column, qf_column, skip=()):
    rows = []
    for position in POSITIONS:
        for time in TIMES:
            if (position, time) in skip:
                continue
            for vertical, z in depths.items():
                rows.append(
                    {
                        "startDateTime": time,
                        "horizontalPosition": position,
                        "verticalPosition": vertical,
                        value_column: func(z),
                        qf_column: 0,
                    }
                )
    return pd.DataFrame(rows)


@pytest.fixture
def sensor_positions():
    rows = []
    for measurement, depths in [
        ("co2", CO2_DEPTHS),
        ("temperature", TEMP_DEPTHS),
        ("soil_water", SWC_DEPTHS),
    ]:
        for position in POSITIONS:
            for vertical, z in depths.items():
                rows.append(
                    {
                        "measurement": measurement,
                        "horizontalPosition": position,
                        "verticalPosition": vertical,
                        "zOffset": z,
                    }
                )
    return pd.DataFrame(rows)


@pytest.fixture
def megapit_biogeo():
    return pd.DataFrame(
        {
            "horizonID": ["H1", "H2", "H3"],
            "pitID": ["P1", "P1", "P1"],
            "siteID": ["TEST", "TEST", "TEST"],
            "biogeoTopDepth": [0.0, 10.0, 30.0],
            "biogeoBottomDepth": [10.0, 30.0, 60.0],
            "biogeoCenterDepth": [5.0, 20.0, 45.0],
            "coarseFrag2To5": [50.0, 40.0, 20.0],
            "coarseFrag5To20": [100.0, 60.0, 30.0],
        }
    )


@pytest.fixture
def megapit_bulk():
    return pd.DataFrame(
        {
            "horizonID": ["H1", "H2", "H3"],
            "pitID": ["P1", "P1", "P1"],
            "siteID": ["TEST", "TEST", "TEST"],
            "bulkDensExclCoarseFrag": [1.1, 1.3, np.nan],
        }
    )


@pytest.fixture
def bundle(sensor_positions, megapit_biogeo, megapit_bulk):
    """Two positions, seven half-hours; position 002 misses the 01:00 CO2 reading."""
    gap = {("002", START + pd.Timedelta("1h"))}

    co2 = _profile(
        CO2_DEPTHS, lambda z: 400.0 - 13000.0 * z, "soilCO2concentrationMean", "finalQF", gap
    )
    temperature = _profile(TEMP_DEPTHS, lambda z: 20.0 + 10.0 * z, "soilTempMean", "finalQF")
    soil_water = _profile(SWC_DEPTHS, lambda z: 0.2 - 0.5 * z, "VSWCMean", "VSWCFinalQF")
    pressure = pd.DataFrame(
        {"startDateTime": TIMES, "staPresMean": 95.0, "staPresFinalQF": 0}
    )

    return SiteBundle(
        soil_water=soil_water,
        temperature=temperature,
        co2=co2,
        pressure=pressure,
        sensor_positions=sensor_positions,
        megapit_biogeo=megapit_biogeo,
        megapit_bulk=megapit_bulk,
        site="TEST",
    )


@pytest.fixture
def horizons():
    """Two adjacent horizons in metres, 0 to -0.1 and -0.1 to -0.3."""
    return pd.DataFrame(
        {
            "horizonID": ["A", "B"],
            "pitID": ["P1", "P1"],
            "biogeoTopDepth": [0.0, -0.1],
            "biogeoBottomDepth": [-0.1, -0.3],
            "biogeoCenterDepth": [-0.05, -0.2],
            "bulkDensExclCoarseFrag": [1.1, 1.4],
            "coarseFrag2To5": [0.05, 0.02],
            "coarseFrag5To20": [0.10, 0.03],
        }
    )
