"""
Physical constants and configuration parameters for soil CO2 flux calculations.

This module provides:
1. Physical constants
2. Gas diffusion reference values
3. Sensor stream definitions
4. Processing defaults
"""

from typing import Dict, Tuple

# Physical constants
R_GAS = 8.3144598  # Universal gas constant (J/mol/K)

# Temperature conversions
T_ZERO_C = 273.15  # 0°C in Kelvin

# Pressure reference values
P_REFERENCE = 101.325  # Standard atmospheric pressure (kPa)

# Soil properties
PARTICLE_DENSITY = 2.65  # Mineral particle density (g/cm^3)
ROCK_DENSITY = 2.65  # Coarse fragment (rock) density (g/cm^3)

# CO2 diffusion in free air, Massman (1998)
D0_CO2 = 1.381e-5  # Diffusion coefficient at T_REFERENCE_DIFF, P_REFERENCE (m^2/s)
T_REFERENCE_DIFF = T_ZERO_C  # Reference temperature for D0_CO2 (K)
DIFFUSIVITY_EXPONENT = 1.81  # Temperature exponent (dimensionless)

# Millington and Quirk (1961) exponents
MQ_AIR_EXPONENT = 10.0 / 3.0
MQ_POROSITY_EXPONENT = 2.0

# Measurement names used throughout the pipeline
SOIL_WATER = "soil_water"
TEMPERATURE = "temperature"
CO2 = "co2"
PRESSURE = "pressure"

MEASUREMENTS: Tuple[str, ...] = (SOIL_WATER, TEMPERATURE, CO2, PRESSURE)

# Raw stream layout: value column, quality flag column, data product number
STREAMS: Dict[str, Dict[str, str]] = {
    SOIL_WATER: {
        "value_column": "VSWCMean",
        "qf_column": "VSWCFinalQF",
        "data_product": "00094",
    },
    TEMPERATURE: {
        "value_column": "soilTempMean",
        "qf_column": "finalQF",
        "data_product": "00041",
    },
    CO2: {
        "value_column": "soilCO2concentrationMean",
        "qf_column": "finalQF",
        "data_product": "00095",
    },
    PRESSURE: {
        "value_column": "staPresMean",
        "qf_column": "staPresFinalQF",
        "data_product": "00004",
    },
}

# Megapit horizon properties
HORIZON_KEYS = ["horizonID", "pitID"]
HORIZON_DEPTHS = ["biogeoTopDepth", "biogeoBottomDepth", "biogeoCenterDepth"]
HORIZON_PROPERTIES = ["bulkDensExclCoarseFrag", "coarseFrag2To5", "coarseFrag5To20"]

# Columns shared by the megapit biogeochemistry and bulk density tables
MEGAPIT_JOIN_COLUMNS = [
    "horizonID",
    "pitID",
    "domainID",
    "siteID",
    "pitNamedLocation",
    "horizonName",
    "laboratoryName",
    "labProjID",
    "setDate",
    "collectDate",
]

# Quality flag value for a passing measurement
QF_PASS = 0


# Processing parameters
class ProcessingConfig:
    """Default configuration for soil flux processing"""

    # Output time grid
    OUTPUT_FREQUENCY = "30min"

    # Interpolation requirements
    MIN_ANCHOR_DEPTHS = 2
    REQUIRED_MEASUREMENTS = (SOIL_WATER, TEMPERATURE, CO2)

    # Measurement whose sensor depths define the standard depth grid
    TARGET_MEASUREMENT = CO2

    # Atmospheric CO2 at the soil surface (ppm); None disables the surface layer
    SURFACE_CO2 = None


# Unit conversion factors
UNIT_CONVERSION = {
    "cm_to_m": 0.01,
    "kpa_to_pa": 1000.0,
    "g_per_kg_to_fraction": 0.001,
}
