"""
Vertical alignment of soil sensor measurements.

Soil water, soil temperature and soil CO2 are measured by separate sensors
installed at different depths.  This module finds the timestamps where every
variable has enough quality-passing sensors, interpolates each variable
linearly in depth onto a standard set of depths, and reshapes the result to
one record per (time, position, depth) holding all variables together with
the barometric pressure of that time.

Interpolation never extrapolates: standard depths above the shallowest or
below the deepest anchor of a variable receive no value, and the
corresponding record is dropped.
"""

import logging
from typing import Dict, Iterable, Mapping, Sequence

import numpy as np
import pandas as pd
from scipy.interpolate import interp1d

from .constants import CO2, MEASUREMENTS, PRESSURE, ProcessingConfig
from .sensor_merge import drop_flagged, sensor_positions

logger = logging.getLogger(__name__)

GROUP_KEYS = ["horizontalPosition", "startDateTime"]
PROFILE_KEYS = ["startDateTime", "horizontalPosition", "zOffset"]
PROFILE_COLUMNS = PROFILE_KEYS + list(MEASUREMENTS)


def detect_coverage(
    measurements: pd.DataFrame,
    required: Sequence[str] = ProcessingConfig.REQUIRED_MEASUREMENTS,
    min_anchors: int = ProcessingConfig.MIN_ANCHOR_DEPTHS,
) -> pd.DataFrame:
    """
    Keep the timestamps with enough quality-passing sensors.

    A (horizontal position, timestamp) pair is kept only when each of the
    *required* measurements has passing readings at *min_anchors* or more
    distinct depths there.  All other readings are silently dropped.

    Parameters
    ----------
    measurements : pandas.DataFrame
        Long-format table from :func:`soil_flux.sensor_merge.merge_measurements`.
    required : sequence of str, optional
        Measurements that must all be present.
    min_anchors : int, optional
        Minimum number of distinct sensor depths per measurement.

    Returns
    -------
    pandas.DataFrame
        Passing readings of the required measurements at covered timestamps.
    """
    passed = drop_flagged(measurements)
    passed = passed[passed["measurement"].isin(required) & passed["zOffset"].notna()]
    if passed.empty:
        return passed.reset_index(drop=True)

    anchors = passed.groupby(GROUP_KEYS + ["measurement"])["zOffset"].nunique()
    anchors = anchors[anchors >= min_anchors].reset_index()

    n_covered = anchors.groupby(GROUP_KEYS)["measurement"].nunique()
    covered = n_covered[n_covered == len(required)].index

    keep = pd.MultiIndex.from_frame(passed[GROUP_KEYS]).isin(covered)
    out = passed[keep].reset_index(drop=True)

    n_total = passed[GROUP_KEYS].drop_duplicates().shape[0]
    logger.debug(
        "Coverage check kept %d of %d position/time pairs", len(covered), n_total
    )
    return out


def target_depths(
    positions: pd.DataFrame, measurement: str = CO2
) -> Dict[str, np.ndarray]:
    """
    Standard depths for each horizontal position.

    The depths of the *measurement* sensors (CO2 by default) at each
    horizontal position define where the other variables are interpolated.

    Returns
    -------
    dict
        Maps horizontal position to a sorted array of ``zOffset`` values.
    """
    locations = sensor_positions(positions, measurement)
    return {
        position: np.sort(group["zOffset"].to_numpy(dtype=float))
        for position, group in locations.groupby("horizontalPosition")
    }


def interpolate_profile(
    depths: Iterable[float],
    values: Iterable[float],
    targets: Iterable[float],
) -> np.ndarray:
    """
    Piecewise-linear interpolation of one sensor profile in depth.

    Repeated anchor depths are averaged.  Targets outside the anchor range
    are not extrapolated and come back as NaN, as do all targets when fewer
    than two distinct anchor depths exist.

    Parameters
    ----------
    depths : array_like
        Sensor depths (m, negative below surface).
    values : array_like
        Sensor values at *depths*.
    targets : array_like
        Depths to interpolate to.

    Returns
    -------
    numpy.ndarray
        Interpolated values aligned with *targets*.
    """
    depths = np.asarray(depths, dtype=float)
    values = np.asarray(values, dtype=float)
    targets = np.asarray(targets, dtype=float)

    anchors, inverse = np.unique(depths, return_inverse=True)
    if anchors.size < 2:
        return np.full(targets.shape, np.nan)

    means = np.bincount(inverse, weights=values) / np.bincount(inverse)
    profile = interp1d(
        anchors, means, kind="linear", bounds_error=False, fill_value=np.nan
    )
    return profile(targets)


def depth_interpolate(
    measurements: pd.DataFrame, targets: Mapping[str, Sequence[float]]
) -> pd.DataFrame:
    """
    Interpolate every measurement onto the standard depths.

    Parameters
    ----------
    measurements : pandas.DataFrame
        Covered readings from :func:`detect_coverage`.
    targets : mapping
        Standard depths per horizontal position (see :func:`target_depths`).

    Returns
    -------
    pandas.DataFrame
        Long table with ``startDateTime``, ``horizontalPosition``,
        ``zOffset``, ``measurement`` and ``value``; depths that could not
        be interpolated are left out.
    """
    times, positions, depths, names, values = [], [], [], [], []

    for (position, time, name), group in measurements.groupby(
        GROUP_KEYS + ["measurement"], sort=True
    ):
        standard = targets.get(position)
        if standard is None or len(standard) == 0:
            continue

        interpolated = interpolate_profile(group["zOffset"], group["value"], standard)
        n = len(standard)
        times.extend([time] * n)
        positions.extend([position] * n)
        depths.extend(standard)
        names.extend([name] * n)
        values.extend(interpolated)

    out = pd.DataFrame(
        {
            "startDateTime": pd.to_datetime(pd.Series(times, dtype=object)),
            "horizontalPosition": positions,
            "zOffset": np.asarray(depths, dtype=float),
            "measurement": names,
            "value": np.asarray(values, dtype=float),
        }
    )
    return out.dropna(subset=["value"]).reset_index(drop=True)


def pivot_profiles(interpolated: pd.DataFrame, pressure: pd.DataFrame) -> pd.DataFrame:
    """
    Reshape interpolated readings into one record per depth and time.

    Each (time, position, depth) key is mapped to a fixed-width record of
    soil water, temperature, CO2 and pressure.  Pressure is a single site
    reading per time and is attached to every depth at that time; times
    without a passing pressure reading are dropped, as is every record with
    a missing variable.

    Parameters
    ----------
    interpolated : pandas.DataFrame
        Output of :func:`depth_interpolate`.
    pressure : pandas.DataFrame
        Long-format pressure stream with ``startDateTime`` and ``value``
        (and ``finalQF``, which is honoured when present).

    Returns
    -------
    pandas.DataFrame
        Columns ``startDateTime``, ``horizontalPosition``, ``zOffset``,
        ``soil_water``, ``temperature``, ``co2``, ``pressure``.
    """
    if interpolated.empty:
        return pd.DataFrame(columns=PROFILE_COLUMNS)

    wide = (
        interpolated.set_index(PROFILE_KEYS + ["measurement"])["value"]
        .unstack("measurement")
        .reset_index()
    )
    wide.columns.name = None

    if "finalQF" in pressure.columns:
        pressure = drop_flagged(pressure)
    station = (
        pressure.groupby("startDateTime")["value"].mean().rename(PRESSURE).reset_index()
    )
    station["startDateTime"] = station["startDateTime"].astype(wide["startDateTime"].dtype)
    wide = wide.merge(station, on="startDateTime", how="inner")

    for name in MEASUREMENTS:
        if name not in wide.columns:
            wide[name] = np.nan

    n_before = len(wide)
    wide = wide.dropna(subset=list(MEASUREMENTS))
    if len(wide) < n_before:
        logger.debug("Dropped %d incomplete depth records", n_before - len(wide))

    return wide[PROFILE_COLUMNS].sort_values(PROFILE_KEYS).reset_index(drop=True)
