"""
Normalisation of raw sensor streams into a single long-format table.

Every raw stream carries its own value and quality-flag column names.  The
functions here rename those to a common ``value``/``finalQF`` schema, tag
each row with its measurement name and attach the sensor depth
(``zOffset``) so that the streams can be stacked and processed together.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd

from .constants import QF_PASS, STREAMS

logger = logging.getLogger(__name__)

MEASUREMENT_COLUMNS = [
    "startDateTime",
    "horizontalPosition",
    "zOffset",
    "measurement",
    "value",
    "finalQF",
]

POSITION_KEYS = ["horizontalPosition", "verticalPosition"]


@dataclass(frozen=True)
class StreamSpec:
    """
    Layout of one raw sensor stream.

    Parameters
    ----------
    measurement : str
        Name given to the stream in the merged table (``soil_water``,
        ``temperature``, ``co2`` or ``pressure``).
    value_column : str
        Column holding the averaged sensor value.
    qf_column : str
        Column holding the final quality flag (0 = pass).
    data_product : str, optional
        Archive data product number, kept for reference only.
    """

    measurement: str
    value_column: str
    qf_column: str
    data_product: Optional[str] = None

    @classmethod
    def default(cls, measurement: str) -> "StreamSpec":
        """Return the standard layout for *measurement* from ``STREAMS``."""
        layout = STREAMS[measurement]
        return cls(measurement=measurement, **layout)


def sensor_positions(
    positions: pd.DataFrame, measurement: Optional[str] = None
) -> pd.DataFrame:
    """
    Select the sensor location table, optionally for a single measurement.

    Parameters
    ----------
    positions : pandas.DataFrame
        Sensor metadata with ``horizontalPosition``, ``verticalPosition`` and
        ``zOffset`` columns, plus a ``measurement`` column when several
        streams share the table.
    measurement : str, optional
        Restrict to the sensors of this measurement.

    Returns
    -------
    pandas.DataFrame
        One row per sensor with ``horizontalPosition``, ``verticalPosition``
        and ``zOffset``.
    """
    if measurement is not None and "measurement" in positions.columns:
        positions = positions[positions["measurement"] == measurement]

    return (
        positions[POSITION_KEYS + ["zOffset"]]
        .drop_duplicates(subset=POSITION_KEYS)
        .reset_index(drop=True)
    )


def merge_measurement(
    raw: pd.DataFrame,
    spec: StreamSpec,
    positions: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Convert one raw stream to the common long-format schema.

    The value and quality-flag columns are renamed to ``value`` and
    ``finalQF`` and every row is tagged with ``spec.measurement``.  When the
    raw table has no ``zOffset`` column, sensor depths are attached from
    *positions* by horizontal and vertical position.  No rows are added and
    none are removed on quality grounds.

    Parameters
    ----------
    raw : pandas.DataFrame
        Raw stream with ``startDateTime`` and the columns named in *spec*.
    spec : StreamSpec
        Layout of the stream.
    positions : pandas.DataFrame, optional
        Sensor location table (see :func:`sensor_positions`).

    Returns
    -------
    pandas.DataFrame
        Columns ``startDateTime``, ``horizontalPosition``, ``zOffset``,
        ``measurement``, ``value``, ``finalQF``.
    """
    out = raw.rename(columns={spec.value_column: "value", spec.qf_column: "finalQF"})

    if "zOffset" not in out.columns:
        if positions is not None and set(POSITION_KEYS).issubset(out.columns):
            locations = sensor_positions(positions, spec.measurement)
            # inner join on a de-duplicated table never adds rows
            out = out.merge(locations, on=POSITION_KEYS, how="inner")
        else:
            out = out.assign(zOffset=np.nan)

    if "horizontalPosition" not in out.columns:
        out = out.assign(horizontalPosition=np.nan)

    out = out.assign(
        measurement=spec.measurement,
        startDateTime=pd.to_datetime(out["startDateTime"]),
    )

    logger.debug("Merged %d %s rows", len(out), spec.measurement)
    return out[MEASUREMENT_COLUMNS].reset_index(drop=True)


def merge_measurements(
    streams: Iterable[tuple],
    positions: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Stack several raw streams into one long-format table.

    Parameters
    ----------
    streams : iterable of (pandas.DataFrame, StreamSpec)
        Raw table and layout for each stream.
    positions : pandas.DataFrame, optional
        Shared sensor location table.

    Returns
    -------
    pandas.DataFrame
        Concatenation of :func:`merge_measurement` for every stream.
    """
    frames: List[pd.DataFrame] = [
        merge_measurement(raw, spec, positions) for raw, spec in streams
    ]
    if not frames:
        return pd.DataFrame(columns=MEASUREMENT_COLUMNS)

    return pd.concat(frames, ignore_index=True)


def drop_flagged(measurements: pd.DataFrame) -> pd.DataFrame:
    """Keep only rows that passed quality control and carry a value."""
    passed = (measurements["finalQF"] == QF_PASS) & measurements["value"].notna()
    n_dropped = int((~passed).sum())
    if n_dropped:
        logger.debug("Dropped %d flagged or missing readings", n_dropped)

    return measurements[passed].reset_index(drop=True)
