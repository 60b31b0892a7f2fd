"""Solve every model period from ``config.yaml`` and write summary tables.

Each period runs ``init_calc`` → ``calc`` (repeated while calibration is
converging) → ``post_calc``. The market prices of goods a region does not
produce stay at their configured values; no price discovery happens here.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

import _path_setup  # noqa: F401

from config_paths import get_config_path, resolve_results_dir  # noqa: E402
from model_objects import build_world, load_config  # noqa: E402
from reporting import (  # noqa: E402
    emissions_frame,
    summary_frame,
    write_emissions_csv,
    write_region_directory,
    write_summary_csv,
)

LOGGER = logging.getLogger("equilibrium.run")


def solve_periods(world, periods, *, max_passes: int = 10) -> dict[int, bool]:
    """Calculate ``periods`` in order; return the calibration verdict per period."""
    verdicts: dict[int, bool] = {}
    for period in periods:
        world.init_calc(period)
        world.calc(period)
        passes = 1
        while world.get_calibration_setting() and passes < max_passes:
            if world.is_all_calibrated(period):
                break
            world.calc(period)
            passes += 1
        calibrated = world.is_all_calibrated(period, print_warnings=world.get_calibration_setting())
        if not world.check_cal_consistency(period):
            LOGGER.warning("Calibration targets in %d do not fit the demand.", world.time.year(period))
        world.post_calc(period)
        verdicts[period] = calibrated
        LOGGER.info(
            "Solved %d in %d pass(es); world CO2 %.6g.",
            world.time.year(period),
            passes,
            world.get_emissions(period),
        )
    return verdicts


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml.")
    parser.add_argument("--output", type=Path, default=None, help="Results directory override.")
    parser.add_argument(
        "--no-calibration", action="store_true", help="Ignore calibration targets."
    )
    parser.add_argument("--climate", action="store_true", help="Run the climate model afterwards.")
    args = parser.parse_args(argv)

    config = load_config(args.config or get_config_path())
    world = build_world(config)
    if args.no_calibration:
        world.turn_calibrations_off()

    periods = list(range(world.time.n_periods))
    verdicts = solve_periods(world, periods)
    failed = [world.time.year(period) for period, ok in verdicts.items() if not ok]
    if failed and world.get_calibration_setting():
        LOGGER.warning("Calibration not reached for years: %s", failed)

    out_dir = args.output or resolve_results_dir(config)
    summary = summary_frame(world, periods)
    write_summary_csv(summary, out_dir / "summary.csv")
    write_region_directory(summary, out_dir)
    write_emissions_csv(emissions_frame(world, periods), out_dir / "emissions.csv")
    LOGGER.info("Results written to %s", out_dir)

    if args.climate:
        world.run_climate_model()
        result = getattr(world.get_climate_model(), "result", None)
        if result is not None:
            result.to_frame().to_csv(out_dir / "temperature.csv", index=False)
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(name)s: %(message)s")
    raise SystemExit(main())
