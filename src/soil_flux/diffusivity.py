"""
Effective diffusivity of CO2 in soil.

The free-air diffusion coefficient of CO2 is scaled to the observed
temperature and pressure (Massman, 1998) and then reduced for the soil pore
space with the Millington and Quirk (1961) model, using porosities corrected
for the volume taken up by coarse fragments.

References:
    Massman (1998) A review of the molecular diffusivities of H2O, CO2, CH4,
        CO, O3, SO2, NH3, N2O, NO, and NO2 in air, O2 and N2 near STP
    Millington and Quirk (1961) Permeability of porous solids
"""

from typing import Union

import numpy as np

from .constants import (
    D0_CO2,
    DIFFUSIVITY_EXPONENT,
    MQ_AIR_EXPONENT,
    MQ_POROSITY_EXPONENT,
    P_REFERENCE,
    PARTICLE_DENSITY,
    T_REFERENCE_DIFF,
    T_ZERO_C,
)

ArrayLike = Union[float, np.ndarray]


def free_air_diffusivity(temperature: ArrayLike, pressure: ArrayLike) -> ArrayLike:
    """
    Diffusion coefficient of CO2 in free air.

    .. math::
        D_a = D_0 \\left(\\frac{T}{T_0}\\right)^{1.81} \\frac{P_0}{P}

    Parameters
    ----------
    temperature : float or ndarray
        Air temperature in the pore space (°C).
    pressure : float or ndarray
        Barometric pressure (kPa).

    Returns
    -------
    float or ndarray
        Free-air diffusivity (m² s⁻¹).
    """
    t_k = np.asarray(temperature, dtype=float) + T_ZERO_C
    p = np.asarray(pressure, dtype=float)
    return D0_CO2 * (t_k / T_REFERENCE_DIFF) ** DIFFUSIVITY_EXPONENT * (P_REFERENCE / p)


def diffusivity(
    temperature: ArrayLike,
    soil_water: ArrayLike,
    pressure: ArrayLike,
    coarse_frag_2to5: ArrayLike,
    coarse_frag_5to20: ArrayLike,
    bulk_density_excl_coarse_frag: ArrayLike,
) -> ArrayLike:
    """
    Effective CO2 diffusivity through soil.

    The free-air coefficient :math:`D_a` (see :func:`free_air_diffusivity`)
    is reduced by the Millington–Quirk tortuosity model

    .. math::
        D_s = D_a \\frac{\\varepsilon^{10/3}}{\\phi^{2}}

    where the total porosity :math:`\\phi` and the air-filled porosity
    :math:`\\varepsilon` are computed from the fine-earth bulk density
    :math:`\\rho_b`, the particle density :math:`\\rho_p = 2.65` g cm⁻³, the
    volumetric water content :math:`\\theta` and the fine-earth fraction
    :math:`f = 1 - V_{2-5} - V_{5-20}`:

    .. math::
        \\phi = (1 - \\rho_b/\\rho_p)\\,f, \\qquad
        \\varepsilon = \\phi - \\theta

    All inputs broadcast against each other following NumPy rules.

    Parameters
    ----------
    temperature : float or ndarray
        Soil temperature (°C).
    soil_water : float or ndarray
        Volumetric soil water content (m³ m⁻³).
    pressure : float or ndarray
        Barometric pressure (kPa).  Must be positive.
    coarse_frag_2to5 : float or ndarray
        Volume fraction of 2–5 mm coarse fragments (0–1).
    coarse_frag_5to20 : float or ndarray
        Volume fraction of 5–20 mm coarse fragments (0–1).
    bulk_density_excl_coarse_frag : float or ndarray
        Bulk density of the fine earth, excluding coarse fragments (g cm⁻³).

    Returns
    -------
    float or ndarray
        Soil CO2 diffusivity (m² s⁻¹).  A float when every input is scalar.

    Raises
    ------
    ValueError
        If any pressure is not positive or any temperature lies below
        absolute zero.

    Notes
    -----
    * Air-filled porosity is clipped at zero: a water-filled pore space
      gives zero diffusivity rather than an undefined power.
    * Missing (NaN) inputs propagate to a NaN diffusivity.

    Examples
    --------
    >>> d = diffusivity(20.0, 0.25, 101.3, 0.05, 0.10, 1.2)
    >>> 1e-7 < d < 1e-5
    True
    """
    temperature = np.asarray(temperature, dtype=float)
    pressure = np.asarray(pressure, dtype=float)

    if np.any(pressure <= 0):
        raise ValueError("Pressure must be positive")
    if np.any(temperature + T_ZERO_C <= 0):
        raise ValueError("Temperature must be above absolute zero")

    theta = np.asarray(soil_water, dtype=float)
    rho_b = np.asarray(bulk_density_excl_coarse_frag, dtype=float)
    fine_fraction = 1.0 - np.asarray(coarse_frag_2to5, dtype=float) - np.asarray(
        coarse_frag_5to20, dtype=float
    )

    porosity = (1.0 - rho_b / PARTICLE_DENSITY) * fine_fraction
    air_porosity = np.clip(porosity - theta, 0.0, None)

    d_soil = (
        free_air_diffusivity(temperature, pressure)
        * air_porosity**MQ_AIR_EXPONENT
        / porosity**MQ_POROSITY_EXPONENT
    )

    if np.ndim(d_soil) == 0:
        return float(d_soil)
    return d_soil
