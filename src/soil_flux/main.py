"""
Main processing script for soil CO2 flux estimation.

This script coordinates the processing of one site bundle:

1. merge the soil water, temperature, CO2 and pressure streams
2. keep timestamps with enough quality-passing sensors
3. interpolate every variable onto the CO2 sensor depths
4. attach the soil horizon properties of each depth
5. compute diffusivity and gradient fluxes on a 30-minute grid
"""
import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

import pandas as pd

from .bundle import SiteBundle
from .constants import CO2, PRESSURE, SOIL_WATER, TEMPERATURE, ProcessingConfig
from .depth_interpolation import (
    PROFILE_COLUMNS,
    depth_interpolate,
    detect_coverage,
    pivot_profiles,
    target_depths,
)
from .flux import compute_fluxes
from .horizons import match_horizons, prepare_horizons
from .sensor_merge import StreamSpec, drop_flagged, merge_measurement, merge_measurements

logger = logging.getLogger(__name__)


class SoilFluxProcessor:
    """Main class for computing soil CO2 fluxes at a site"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize processor with configuration.

        Args:
            config: Dictionary of processing options; missing keys fall back
                to ``ProcessingConfig``
        """
        self.config = config or {}
        self.initialize_parameters()

    def initialize_parameters(self) -> None:
        """Initialize processing parameters"""
        self.output_frequency = self.config.get(
            "output_frequency", ProcessingConfig.OUTPUT_FREQUENCY
        )
        self.min_anchor_depths = self.config.get(
            "min_anchor_depths", ProcessingConfig.MIN_ANCHOR_DEPTHS
        )
        self.required_measurements = tuple(
            self.config.get("required_measurements", ProcessingConfig.REQUIRED_MEASUREMENTS)
        )
        self.target_measurement = self.config.get(
            "target_measurement", ProcessingConfig.TARGET_MEASUREMENT
        )
        self.surface_co2 = self.config.get("surface_co2", ProcessingConfig.SURFACE_CO2)

        # Raw stream layouts, overridable per measurement
        streams = self.config.get("streams", {})
        self.streams = {
            name: streams.get(name, StreamSpec.default(name))
            for name in (SOIL_WATER, TEMPERATURE, CO2, PRESSURE)
        }

    def merge(self, bundle: SiteBundle) -> pd.DataFrame:
        """Long-format soil measurements of the bundle."""
        return merge_measurements(
            [(bundle.stream(name), self.streams[name]) for name in self.required_measurements],
            bundle.sensor_positions,
        )

    def profiles(self, bundle: SiteBundle) -> pd.DataFrame:
        """Interpolated depth profiles with pressure, before horizon matching."""
        covered = detect_coverage(
            self.merge(bundle),
            required=self.required_measurements,
            min_anchors=self.min_anchor_depths,
        )
        if covered.empty:
            return pd.DataFrame(columns=PROFILE_COLUMNS)

        targets = target_depths(bundle.sensor_positions, self.target_measurement)
        interpolated = depth_interpolate(covered, targets)

        pressure = drop_flagged(merge_measurement(bundle.pressure, self.streams[PRESSURE]))
        return pivot_profiles(interpolated, pressure)

    def process(self, bundle: SiteBundle) -> Optional[pd.DataFrame]:
        """
        Compute the flux table of one bundle.

        Args:
            bundle: Input tables of the site

        Returns:
            Flux table on a complete time grid, or None when no usable
            records remain after filtering
        """
        profiles = self.profiles(bundle)
        logger.info("%d depth records after interpolation", len(profiles))

        if not profiles.empty:
            horizons = prepare_horizons(bundle.megapit_biogeo, bundle.megapit_bulk)
            profiles = match_horizons(profiles, horizons)

        if profiles.empty:
            logger.warning("No usable data for site %s", bundle.site)
            return None

        fluxes = compute_fluxes(
            profiles, surface_co2=self.surface_co2, freq=self.output_frequency
        )
        if fluxes.empty:
            logger.warning("No usable data for site %s", bundle.site)
            return None

        return fluxes


def compute_site_flux(
    bundle: SiteBundle, config: Optional[Dict[str, Any]] = None
) -> Optional[pd.DataFrame]:
    """Compute soil CO2 fluxes for *bundle*; None when no data is usable."""
    return SoilFluxProcessor(config).process(bundle)


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure logging based on verbosity."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="soil-flux",
        description="Compute soil CO2 fluxes from a directory of site tables.",
    )
    parser.add_argument("input_dir", help="Directory holding the site CSV tables")
    parser.add_argument("output", help="Path of the flux CSV to write")
    parser.add_argument("--site", default=None, help="Site code (default: directory name)")
    parser.add_argument(
        "--surface-co2",
        type=float,
        default=None,
        help="Atmospheric CO2 at the surface (ppm); adds a surface layer flux",
    )
    parser.add_argument(
        "--freq",
        default=ProcessingConfig.OUTPUT_FREQUENCY,
        help="Output time grid spacing (pandas offset alias)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose, debug=args.debug)

    bundle = SiteBundle.from_directory(args.input_dir, site=args.site)
    config = {"surface_co2": args.surface_co2, "output_frequency": args.freq}

    fluxes = compute_site_flux(bundle, config)
    if fluxes is None:
        return 0

    fluxes.to_csv(args.output, index=False)
    logger.info("Wrote %d records to %s", len(fluxes), args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
