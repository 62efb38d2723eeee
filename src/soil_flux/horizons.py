"""
Soil horizon lookup for interpolated depth profiles.

Soil-pit (megapit) samples describe each horizon by its depth bounds and its
physical properties: bulk density of the fine earth and the coarse-fragment
content.  Each interpolated depth is assigned the horizon whose closed depth
interval contains it.  Horizons are kept sorted by depth so the lookup is a
binary search over the bounds.

Depths follow the sensor convention: metres, negative below the surface.
"""

import logging
from bisect import bisect_right
from typing import List, Optional, Union

import numpy as np
import pandas as pd

from .constants import (
    HORIZON_DEPTHS,
    HORIZON_KEYS,
    HORIZON_PROPERTIES,
    MEGAPIT_JOIN_COLUMNS,
    ROCK_DENSITY,
    UNIT_CONVERSION,
)

logger = logging.getLogger(__name__)

HORIZON_COLUMNS = HORIZON_KEYS + HORIZON_DEPTHS + HORIZON_PROPERTIES


class HorizonOverlapError(ValueError):
    """Raised when two soil horizons share more than a boundary depth."""


def coarse_volume_fractions(mass_2to5, mass_5to20, bulk_density):
    """
    Convert coarse-fragment mass fractions to volume fractions.

    Per unit mass of whole soil the fragments occupy ``w / ρ_rock`` and the
    fine earth ``(1 - w) / ρ_b``, where ``w`` is the total fragment mass
    fraction and ``ρ_b`` the fine-earth bulk density.

    Parameters
    ----------
    mass_2to5, mass_5to20 : float, ndarray or pandas.Series
        Mass fractions (0–1) of 2–5 mm and 5–20 mm fragments in the whole
        soil.
    bulk_density : float, ndarray or pandas.Series
        Fine-earth bulk density excluding coarse fragments (g cm⁻³).

    Returns
    -------
    tuple
        Volume fractions of the 2–5 mm and 5–20 mm fragments.
    """
    mass_coarse = mass_2to5 + mass_5to20
    volume = mass_coarse / ROCK_DENSITY + (1.0 - mass_coarse) / bulk_density
    return mass_2to5 / ROCK_DENSITY / volume, mass_5to20 / ROCK_DENSITY / volume


def prepare_horizons(
    biogeo: pd.DataFrame, bulk: Optional[pd.DataFrame] = None
) -> pd.DataFrame:
    """
    Build the horizon table from megapit samples.

    The biogeochemistry and bulk density samples are joined on their shared
    identifying columns.  Depths are converted from positive centimetres to
    negative metres and coarse fragments from g kg⁻¹ to volume fractions of
    the whole soil (see :func:`coarse_volume_fractions`).  Horizons with any
    missing depth or property are discarded.

    Parameters
    ----------
    biogeo : pandas.DataFrame
        Per-horizon biogeochemistry samples (depth bounds, coarse fragments).
    bulk : pandas.DataFrame, optional
        Per-horizon bulk density samples.  When omitted, *biogeo* must
        already carry ``bulkDensExclCoarseFrag``.

    Returns
    -------
    pandas.DataFrame
        Columns ``horizonID``, ``pitID``, ``biogeoTopDepth``,
        ``biogeoBottomDepth``, ``biogeoCenterDepth``,
        ``bulkDensExclCoarseFrag``, ``coarseFrag2To5``, ``coarseFrag5To20``.
    """
    samples = biogeo
    if bulk is not None:
        keys = [c for c in MEGAPIT_JOIN_COLUMNS if c in biogeo.columns and c in bulk.columns]
        samples = biogeo.merge(bulk, on=keys, how="inner")

    horizons = samples[HORIZON_COLUMNS].copy()
    for column in HORIZON_DEPTHS:
        horizons[column] = -horizons[column] * UNIT_CONVERSION["cm_to_m"]
    frag_5, frag_20 = coarse_volume_fractions(
        horizons["coarseFrag2To5"] * UNIT_CONVERSION["g_per_kg_to_fraction"],
        horizons["coarseFrag5To20"] * UNIT_CONVERSION["g_per_kg_to_fraction"],
        horizons["bulkDensExclCoarseFrag"],
    )
    horizons["coarseFrag2To5"] = frag_5
    horizons["coarseFrag5To20"] = frag_20

    n_samples = len(horizons)
    horizons = horizons.dropna().reset_index(drop=True)
    if len(horizons) < n_samples:
        logger.info(
            "Discarded %d horizons with incomplete physical properties",
            n_samples - len(horizons),
        )

    return horizons


class HorizonTable:
    """
    Horizons sorted by depth with interval lookup.

    Parameters
    ----------
    horizons : pandas.DataFrame
        Horizon table as returned by :func:`prepare_horizons`.

    Raises
    ------
    ValueError
        If a horizon's bottom lies above its top.
    HorizonOverlapError
        If two horizons overlap by more than a shared boundary.

    Notes
    -----
    Intervals are closed, so a depth on the boundary between two adjacent
    horizons is contained in both; the upper (shallower) horizon is chosen.

    Examples
    --------
    >>> table = HorizonTable(pd.DataFrame({
    ...     "horizonID": ["A", "B"], "pitID": ["P1", "P1"],
    ...     "biogeoTopDepth": [0.0, -0.1], "biogeoBottomDepth": [-0.1, -0.3],
    ...     "biogeoCenterDepth": [-0.05, -0.2],
    ...     "bulkDensExclCoarseFrag": [1.1, 1.4],
    ...     "coarseFrag2To5": [0.0, 0.0], "coarseFrag5To20": [0.0, 0.0]}))
    >>> table.lookup(-0.2)["horizonID"]
    'B'
    """

    def __init__(self, horizons: pd.DataFrame):
        inverted = horizons["biogeoBottomDepth"] > horizons["biogeoTopDepth"]
        if inverted.any():
            ids = horizons.loc[inverted, "horizonID"].tolist()
            raise ValueError(f"Horizon bottom lies above its top: {ids}")

        self.horizons = horizons.sort_values("biogeoBottomDepth").reset_index(drop=True)
        self._bottoms: List[float] = self.horizons["biogeoBottomDepth"].tolist()
        self._tops: List[float] = self.horizons["biogeoTopDepth"].tolist()
        self._check_overlap()

    def __len__(self) -> int:
        return len(self.horizons)

    def _check_overlap(self) -> None:
        for lower in range(len(self._bottoms) - 1):
            upper = lower + 1
            if self._tops[lower] > self._bottoms[upper]:
                ids = self.horizons.loc[[lower, upper], "horizonID"].tolist()
                raise HorizonOverlapError(f"Overlapping horizons: {ids}")

    def locate(self, depth: float) -> Optional[int]:
        """Row position of the horizon containing *depth*, or None."""
        i = bisect_right(self._bottoms, depth) - 1
        if i < 0 or depth > self._tops[i]:
            return None
        return i

    def lookup(self, depth: float) -> Optional[pd.Series]:
        """Horizon record containing *depth*, or None."""
        i = self.locate(depth)
        if i is None:
            return None
        return self.horizons.iloc[i]


def match_horizons(
    profiles: pd.DataFrame, horizons: Union[pd.DataFrame, HorizonTable]
) -> pd.DataFrame:
    """
    Attach horizon properties to every depth profile record.

    Each distinct ``zOffset`` is looked up once and the matching horizon's
    columns are joined to all records at that depth.  Records at depths
    covered by no horizon are excluded.

    Parameters
    ----------
    profiles : pandas.DataFrame
        Depth profiles with a ``zOffset`` column.
    horizons : pandas.DataFrame or HorizonTable
        Horizon table.

    Returns
    -------
    pandas.DataFrame
        *profiles* joined with the horizon columns.
    """
    table = horizons if isinstance(horizons, HorizonTable) else HorizonTable(horizons)

    matched_depths, rows = [], []
    for depth in np.unique(profiles["zOffset"].to_numpy(dtype=float)):
        i = table.locate(depth)
        if i is None:
            logger.info("No horizon contains depth %.3f m; records excluded", depth)
            continue
        matched_depths.append(depth)
        rows.append(i)

    attached = table.horizons.iloc[rows].assign(
        zOffset=np.asarray(matched_depths, dtype=float)
    )
    return profiles.merge(attached, on="zOffset", how="inner")
