"""
Container for the input tables of one site and period.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from .constants import CO2, PRESSURE, SOIL_WATER, TEMPERATURE

logger = logging.getLogger(__name__)

# Sensor location codes are zero-padded strings ("001", "501")
POSITION_DTYPES = {"horizontalPosition": str, "verticalPosition": str}


@dataclass
class SiteBundle:
    """
    Named input tables for one site.

    Attributes
    ----------
    soil_water, temperature, co2, pressure : pandas.DataFrame
        Raw 30-minute sensor streams.
    sensor_positions : pandas.DataFrame
        Sensor locations (``measurement``, ``horizontalPosition``,
        ``verticalPosition``, ``zOffset``).
    megapit_biogeo : pandas.DataFrame
        Per-horizon biogeochemistry samples.
    megapit_bulk : pandas.DataFrame, optional
        Per-horizon bulk density samples.
    site : str, optional
        Site code, informational only.
    """

    soil_water: pd.DataFrame
    temperature: pd.DataFrame
    co2: pd.DataFrame
    pressure: pd.DataFrame
    sensor_positions: pd.DataFrame
    megapit_biogeo: pd.DataFrame
    megapit_bulk: Optional[pd.DataFrame] = None
    site: Optional[str] = None

    def stream(self, measurement: str) -> pd.DataFrame:
        """Raw table of *measurement*."""
        return {
            SOIL_WATER: self.soil_water,
            TEMPERATURE: self.temperature,
            CO2: self.co2,
            PRESSURE: self.pressure,
        }[measurement]

    @classmethod
    def from_directory(
        cls, path: Union[str, Path], site: Optional[str] = None
    ) -> "SiteBundle":
        """
        Read a bundle stored as one CSV file per table.

        The directory must hold ``soil_water.csv``, ``temperature.csv``,
        ``co2.csv``, ``pressure.csv``, ``sensor_positions.csv`` and
        ``megapit_biogeo.csv``; ``megapit_bulk.csv`` is optional.

        Raises
        ------
        FileNotFoundError
            If a required table is missing.
        """
        path = Path(path)

        def read(name: str, required: bool = True) -> Optional[pd.DataFrame]:
            file = path / f"{name}.csv"
            if not file.exists():
                if required:
                    raise FileNotFoundError(f"Missing input table: {file}")
                return None
            logger.debug("Reading %s", file)
            frame = pd.read_csv(file, dtype=POSITION_DTYPES)
            if "startDateTime" in frame.columns:
                frame["startDateTime"] = pd.to_datetime(frame["startDateTime"])
            return frame

        return cls(
            soil_water=read(SOIL_WATER),
            temperature=read(TEMPERATURE),
            co2=read(CO2),
            pressure=read(PRESSURE),
            sensor_positions=read("sensor_positions"),
            megapit_biogeo=read("megapit_biogeo"),
            megapit_bulk=read("megapit_bulk", required=False),
            site=site or path.name,
        )
