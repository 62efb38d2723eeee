# soil_flux/__init__.py
from . import constants
from . import sensor_merge
from . import depth_interpolation
from . import horizons
from . import diffusivity
from . import flux
from . import bundle

from .bundle import SiteBundle
from .diffusivity import diffusivity as soil_diffusivity
from .main import SoilFluxProcessor, compute_site_flux

__version__ = "0.1.0"
