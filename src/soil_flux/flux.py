"""
Soil CO2 flux from concentration gradients.

Fluxes follow Fick's first law between adjacent measurement depths,

.. math::
    F = -\\bar{D}_s \\frac{\\Delta C}{\\Delta z}

with :math:`z` positive upward (``zOffset`` is negative below the surface),
so CO2 increasing with depth gives a positive, upward flux.  Concentrations
are converted from mole fraction to molar density with the ideal gas law at
the soil temperature and barometric pressure of each layer.

The flux series of every horizontal position is finally placed on a
complete, evenly spaced time grid; missing intervals are kept as empty
records instead of being dropped.
"""

import logging
from typing import Optional, Union

import numpy as np
import pandas as pd

from .constants import R_GAS, T_ZERO_C, UNIT_CONVERSION, ProcessingConfig
from .diffusivity import diffusivity

logger = logging.getLogger(__name__)

FLUX_COLUMNS = ["startDateTime", "horizontalPosition", "zOffset", "diffusivity", "flux"]
LAYER_KEYS = ["horizontalPosition", "startDateTime"]

ArrayLike = Union[float, np.ndarray, pd.Series]


def co2_molar_density(
    co2: ArrayLike, temperature: ArrayLike, pressure: ArrayLike
) -> ArrayLike:
    """
    Convert a CO2 mole fraction to a molar density.

    Parameters
    ----------
    co2 : float or array_like
        CO2 mole fraction (µmol mol⁻¹, i.e. ppm).
    temperature : float or array_like
        Gas temperature (°C).
    pressure : float or array_like
        Barometric pressure (kPa).

    Returns
    -------
    float or array_like
        CO2 molar density (µmol m⁻³).
    """
    air_density = pressure * UNIT_CONVERSION["kpa_to_pa"] / (R_GAS * (temperature + T_ZERO_C))
    return co2 * air_density


def attach_diffusivity(enriched: pd.DataFrame) -> pd.DataFrame:
    """Add a ``diffusivity`` column computed from each horizon-matched record."""
    return enriched.assign(
        diffusivity=diffusivity(
            enriched["temperature"].to_numpy(dtype=float),
            enriched["soil_water"].to_numpy(dtype=float),
            enriched["pressure"].to_numpy(dtype=float),
            enriched["coarseFrag2To5"].to_numpy(dtype=float),
            enriched["coarseFrag5To20"].to_numpy(dtype=float),
            enriched["bulkDensExclCoarseFrag"].to_numpy(dtype=float),
        )
    )


def gradient_flux(
    profiles: pd.DataFrame, surface_co2: Optional[float] = None
) -> pd.DataFrame:
    """
    Flux between adjacent depths for every position and time.

    Parameters
    ----------
    profiles : pandas.DataFrame
        Depth records with ``startDateTime``, ``horizontalPosition``,
        ``zOffset``, ``co2``, ``temperature``, ``pressure`` and
        ``diffusivity``.
    surface_co2 : float, optional
        Atmospheric CO2 at the soil surface (ppm).  When given, the flux
        between the surface (z = 0) and the shallowest depth is added using
        the diffusivity of that depth.

    Returns
    -------
    pandas.DataFrame
        One record per layer with ``startDateTime``, ``horizontalPosition``,
        ``zOffset`` (mid-depth of the layer), ``diffusivity`` (mean of the
        bounding depths) and ``flux`` (µmol m⁻² s⁻¹).
    """
    layers = profiles.assign(
        density=co2_molar_density(
            profiles["co2"], profiles["temperature"], profiles["pressure"]
        )
    ).sort_values(LAYER_KEYS + ["zOffset"], ascending=[True, True, False])

    below = layers.groupby(LAYER_KEYS, sort=False)[
        ["zOffset", "density", "diffusivity"]
    ].shift(-1)
    pairs = layers.join(below, rsuffix="_below").dropna(subset=["zOffset_below"])

    d_mean = 0.5 * (pairs["diffusivity"] + pairs["diffusivity_below"])
    gradient = (pairs["density"] - pairs["density_below"]) / (
        pairs["zOffset"] - pairs["zOffset_below"]
    )
    fluxes = pd.DataFrame(
        {
            "startDateTime": pairs["startDateTime"],
            "horizontalPosition": pairs["horizontalPosition"],
            "zOffset": 0.5 * (pairs["zOffset"] + pairs["zOffset_below"]),
            "diffusivity": d_mean,
            "flux": -d_mean * gradient,
        }
    )

    if surface_co2 is not None:
        top = layers.groupby(LAYER_KEYS, sort=False).head(1)
        top = top[top["zOffset"] < 0]
        surface_density = co2_molar_density(surface_co2, top["temperature"], top["pressure"])
        surface = pd.DataFrame(
            {
                "startDateTime": top["startDateTime"],
                "horizontalPosition": top["horizontalPosition"],
                "zOffset": 0.5 * top["zOffset"],
                "diffusivity": top["diffusivity"],
                "flux": -top["diffusivity"]
                * (surface_density - top["density"])
                / (0.0 - top["zOffset"]),
            }
        )
        fluxes = pd.concat([surface, fluxes], ignore_index=True)

    return fluxes.sort_values(
        LAYER_KEYS + ["zOffset"], ascending=[True, True, False]
    ).reset_index(drop=True)[FLUX_COLUMNS]


def regularize_time_grid(
    fluxes: pd.DataFrame,
    start: pd.Timestamp,
    end: pd.Timestamp,
    freq: str = ProcessingConfig.OUTPUT_FREQUENCY,
) -> pd.DataFrame:
    """
    Place each position's flux series on a complete time grid.

    For every horizontal position the fluxes are right-joined onto all
    ticks from *start* to *end* (inclusive) at *freq*; ticks without a flux
    appear once with empty ``zOffset``, ``diffusivity`` and ``flux``.

    Parameters
    ----------
    fluxes : pandas.DataFrame
        Output of :func:`gradient_flux`.
    start, end : pandas.Timestamp
        First and last tick of the grid.
    freq : str, optional
        Grid spacing as a pandas offset alias (default ``"30min"``).

    Returns
    -------
    pandas.DataFrame
        Gap-free flux table ordered by position, time and depth.
    """
    grid = pd.DataFrame({"startDateTime": pd.date_range(start, end, freq=freq)})
    if not fluxes.empty:
        grid["startDateTime"] = grid["startDateTime"].astype(fluxes["startDateTime"].dtype)

    frames = []
    for position, series in fluxes.groupby("horizontalPosition", sort=True):
        filled = series.drop(columns="horizontalPosition").merge(
            grid, on="startDateTime", how="right"
        )
        filled = filled.sort_values(
            ["startDateTime", "zOffset"], ascending=[True, False], na_position="last"
        )
        frames.append(filled.assign(horizontalPosition=position))

        n_missing = int(filled["flux"].isna().sum())
        if n_missing:
            logger.debug("Position %s: %d empty grid records", position, n_missing)

    if not frames:
        return pd.DataFrame(columns=FLUX_COLUMNS)

    return pd.concat(frames, ignore_index=True)[FLUX_COLUMNS]


def compute_fluxes(
    enriched: pd.DataFrame,
    surface_co2: Optional[float] = None,
    freq: str = ProcessingConfig.OUTPUT_FREQUENCY,
) -> pd.DataFrame:
    """
    Diffusivity, gradient flux and time-grid regularisation in one step.

    The grid spans the earliest to the latest timestamp of *enriched*.

    Parameters
    ----------
    enriched : pandas.DataFrame
        Horizon-matched depth profiles (must not be empty).
    surface_co2 : float, optional
        Atmospheric CO2 at the surface (ppm); see :func:`gradient_flux`.
    freq : str, optional
        Output grid spacing.

    Returns
    -------
    pandas.DataFrame
        Flux table with columns ``startDateTime``, ``horizontalPosition``,
        ``zOffset``, ``diffusivity`` and ``flux``.
    """
    if enriched.empty:
        raise ValueError("Cannot compute fluxes from an empty profile table")

    profiles = attach_diffusivity(enriched)
    fluxes = gradient_flux(profiles, surface_co2=surface_co2)
    logger.info(
        "Computed %d layer fluxes at %d positions",
        len(fluxes),
        fluxes["horizontalPosition"].nunique(),
    )

    dropped = sorted(set(enriched["horizontalPosition"]) - set(fluxes["horizontalPosition"]))
    if dropped:
        logger.info(
            "No layer with two matched depths at positions %s; omitted from output",
            ", ".join(map(str, dropped)),
        )

    return regularize_time_grid(
        fluxes,
        enriched["startDateTime"].min(),
        enriched["startDateTime"].max(),
        freq=freq,
    )
