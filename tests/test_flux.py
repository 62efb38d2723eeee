import logging

import numpy as np
import pandas as pd
import pytest

from soil_flux.flux import (
    FLUX_COLUMNS,
    attach_diffusivity,
    co2_molar_density,
    compute_fluxes,
    gradient_flux,
    regularize_time_grid,
)

T0 = pd.Timestamp("2021-06-01 00:00")


@pytest.fixture
def profile():
    """One position, one time, three depths with CO2 increasing downward."""
    return pd.DataFrame(
        {
            "startDateTime": T0,
            "horizontalPosition": "001",
            "zOffset": [-0.02, -0.06, -0.16],
            "co2": [600.0, 1200.0, 2500.0],
            "temperature": 20.0,
            "pressure": 101.325,
            "soil_water": 0.2,
            "diffusivity": [2e-6, 1e-6, 5e-7],
        }
    )


class TestMolarDensity:
    def test_standard_conditions(self):
        # 400 ppm at 0 °C and 101.325 kPa
        assert co2_molar_density(400.0, 0.0, 101.325) == pytest.approx(17846.2, rel=1e-4)

    def test_vectorised(self):
        result = co2_molar_density(np.array([400.0, 800.0]), 20.0, 101.325)
        assert result[1] == pytest.approx(2 * result[0])


class TestGradientFlux:
    def test_adjacent_layers(self, profile):
        out = gradient_flux(profile)

        assert list(out.columns) == FLUX_COLUMNS
        assert out["zOffset"].tolist() == pytest.approx([-0.04, -0.11])
        assert out["diffusivity"].tolist() == pytest.approx([1.5e-6, 7.5e-7])

        c = co2_molar_density(np.array([600.0, 1200.0, 2500.0]), 20.0, 101.325)
        expected_upper = -1.5e-6 * (c[0] - c[1]) / (-0.02 - -0.06)
        expected_lower = -7.5e-7 * (c[1] - c[2]) / (-0.06 - -0.16)
        assert out["flux"].tolist() == pytest.approx([expected_upper, expected_lower])

    def test_upward_flux_is_positive(self, profile):
        assert (gradient_flux(profile)["flux"] > 0).all()

    def test_input_order_does_not_matter(self, profile):
        shuffled = profile.iloc[[2, 0, 1]]
        pd.testing.assert_frame_equal(gradient_flux(shuffled), gradient_flux(profile))

    def test_surface_layer(self, profile):
        out = gradient_flux(profile, surface_co2=410.0)
        assert len(out) == 3

        surface = out.iloc[0]
        assert surface["zOffset"] == pytest.approx(-0.01)
        assert surface["diffusivity"] == pytest.approx(2e-6)
        c_air = co2_molar_density(410.0, 20.0, 101.325)
        c_top = co2_molar_density(600.0, 20.0, 101.325)
        assert surface["flux"] == pytest.approx(-2e-6 * (c_air - c_top) / 0.02)

    def test_positions_and_times_are_separate(self, profile):
        other = profile.assign(horizontalPosition="002", co2=[700.0, 900.0, 1500.0])
        later = profile.assign(startDateTime=T0 + pd.Timedelta("30min"))
        out = gradient_flux(pd.concat([profile, other, later], ignore_index=True))
        assert len(out) == 6
        assert out.groupby(["horizontalPosition", "startDateTime"]).size().eq(2).all()

    def test_single_depth_gives_no_flux(self, profile):
        assert gradient_flux(profile.iloc[[0]]).empty


class TestRegularizeTimeGrid:
    @pytest.fixture
    def fluxes(self):
        times = pd.to_datetime(["2021-06-01 00:00", "2021-06-01 01:30"])
        return pd.DataFrame(
            {
                "startDateTime": list(times) * 2,
                "horizontalPosition": ["001", "001", "002", "002"],
                "zOffset": -0.04,
                "diffusivity": 1e-6,
                "flux": [1.0, 1.2, 0.8, 0.9],
            }
        )

    def test_no_gaps(self, fluxes):
        start, end = T0, T0 + pd.Timedelta("2h")
        out = regularize_time_grid(fluxes, start, end)

        expected = set(pd.date_range(start, end, freq="30min"))
        for position in ("001", "002"):
            times = set(out.loc[out["horizontalPosition"] == position, "startDateTime"])
            assert times == expected

    def test_missing_ticks_are_null(self, fluxes):
        out = regularize_time_grid(fluxes, T0, T0 + pd.Timedelta("2h"))
        gap = out[(out["horizontalPosition"] == "001") & (out["startDateTime"] == T0 + pd.Timedelta("30min"))]
        assert len(gap) == 1
        assert gap["flux"].isna().all()
        assert out["flux"].notna().sum() == 4
        assert len(out) == 10

    def test_ordering(self, fluxes):
        out = regularize_time_grid(fluxes, T0, T0 + pd.Timedelta("2h"))
        assert out["horizontalPosition"].tolist() == ["001"] * 5 + ["002"] * 5
        first = out[out["horizontalPosition"] == "001"]["startDateTime"]
        assert first.is_monotonic_increasing

    def test_custom_frequency(self, fluxes):
        out = regularize_time_grid(fluxes, T0, T0 + pd.Timedelta("2h"), freq="1h")
        assert out.groupby("horizontalPosition").size().tolist() == [3, 3]

    def test_empty(self):
        out = regularize_time_grid(pd.DataFrame(columns=FLUX_COLUMNS), T0, T0)
        assert out.empty


class TestComputeFluxes:
    @pytest.fixture
    def enriched(self, profile):
        later = profile.assign(startDateTime=T0 + pd.Timedelta("1h"))
        return pd.concat([profile, later], ignore_index=True).drop(columns="diffusivity").assign(
            bulkDensExclCoarseFrag=1.2, coarseFrag2To5=0.05, coarseFrag5To20=0.10
        )

    def test_attach_diffusivity(self, enriched):
        out = attach_diffusivity(enriched)
        assert (out["diffusivity"] > 0).all()
        assert len(out) == len(enriched)

    def test_grid_spans_input_range(self, enriched):
        out = compute_fluxes(enriched)
        assert set(out["startDateTime"]) == set(pd.date_range(T0, T0 + pd.Timedelta("1h"), freq="30min"))
        middle = out[out["startDateTime"] == T0 + pd.Timedelta("30min")]
        assert len(middle) == 1
        assert middle["flux"].isna().all()
        assert (out["flux"].dropna() > 0).all()

    def test_position_without_layers_is_logged(self, enriched, caplog):
        shallow = enriched[enriched["zOffset"] == -0.02].assign(horizontalPosition="002")
        with caplog.at_level(logging.INFO, logger="soil_flux.flux"):
            out = compute_fluxes(pd.concat([enriched, shallow], ignore_index=True))

        assert set(out["horizontalPosition"]) == {"001"}
        assert "positions 002" in caplog.text

    def test_empty_input(self, enriched):
        with pytest.raises(ValueError):
            compute_fluxes(enriched.iloc[0:0])
