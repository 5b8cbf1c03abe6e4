"""
Register a numbered scan sequence into the frame of its first scan.

Usage:
    python scripts/run_registration.py data/scans 0 10
    python scripts/run_registration.py data/scans 0 10 --format xyz --no-poses

Writes <output-dir>/<i>.<format> for every pair i and, unless disabled in the
config, <output-dir>/global_transforms.txt with one 4x4 matrix per scan.
"""

import argparse
import sys
import time
from pathlib import Path

# Add the src to the path to import modules
sys.path.append(str(Path(__file__).parent.parent / "src"))

from scan_registration.utils.config import load_config
from scan_registration.utils.logging import set_log_level, setup_logger
from scan_registration.workflow import run_from_directory


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Pairwise incremental scan registration")
    parser.add_argument("directory", type=str, help="Directory containing scanNNN files")
    parser.add_argument("start_index", type=int, help="First scan index (inclusive)")
    parser.add_argument("end_index", type=int, help="Last scan index (inclusive)")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file (defaults to config/default.yaml)",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Directory for registered clouds and transforms (overrides output.output_dir)",
    )
    parser.add_argument(
        "--no-poses",
        action="store_true",
        help="Ignore odometry pose files and start every pair from identity",
    )
    parser.add_argument(
        "--no-downsample",
        action="store_true",
        help="Align full-resolution clouds (disables downsample.enabled)",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["pcd", "ply", "las", "laz", "xyz"],
        default=None,
        help="Output cloud format (overrides output.format)",
    )
    args = parser.parse_args(argv)

    cfg = load_config(args.config)
    if args.no_downsample:
        cfg = cfg.model_copy(update={"downsample": cfg.downsample.model_copy(update={"enabled": False})})

    set_log_level(cfg.logging.level, cfg.logging.file)
    logger = setup_logger(__name__, cfg.logging.level)

    start = time.time()
    try:
        output = run_from_directory(
            args.directory,
            args.start_index,
            args.end_index,
            cfg,
            output_dir=args.output_dir,
            use_poses=not args.no_poses,
            output_format=args.format,
        )
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        return 1

    if not output.succeeded:
        return 1

    result = output.result
    logger.info("=== REGISTRATION SUMMARY ===")
    for record in result.pairs:
        if record.skipped:
            logger.info(f"Pair {record.index}: skipped ({record.error})")
        else:
            logger.info(
                f"Pair {record.index}: {record.result.state.value}, "
                f"{record.result.iterations} iterations, RMSE {record.result.rmse:.6f}"
            )
    logger.info(f"Final global translation: {result.final_transform[:3, 3]}")
    logger.info(f"Total time: {time.time() - start:.2f} s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
