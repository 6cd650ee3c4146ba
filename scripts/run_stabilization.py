#!/usr/bin/env python3
"""
run_stabilization.py - Stabilization diagnostic harness

Replays a recorded tracking log or a synthetic scenario through one or
more stability modes and reports how much jitter each preset removes.

Usage:
    # recorded log
    python scripts/run_stabilization.py \
        --log_file logs/session_01.csv \
        --output_dir output

    # synthetic scenario, all presets
    python scripts/run_stabilization.py \
        --scenario jitter \
        --modes responsive stable ultra-stable

Author: AR Brochure Team
"""

import argparse
import logging
import sys
from pathlib import Path

# arbrochure module path
sys.path.insert(0, str(Path(__file__).parents[1]))

from arbrochure.main import ARTrackingSystem
from arbrochure.config.system_config import SystemConfig, load_config
from arbrochure.input.data_loader import TrackingLogLoader, save_tracking_log
from arbrochure.input.scenario_generator import generate_scenario, SCENARIOS
from arbrochure.output.result_exporter import ResultExporter
from arbrochure.tracking.pose_stabilizer import StabilityMode

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str, log_file: str = None):
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Run AR pose stabilization replay')

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        '--log_file',
        type=str,
        help='Recorded tracking log (CSV/JSON)'
    )
    source.add_argument(
        '--scenario',
        choices=SCENARIOS,
        help='Synthetic scenario'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='YAML config path'
    )
    parser.add_argument(
        '--modes',
        nargs='+',
        choices=[m.value for m in StabilityMode],
        default=None,
        help='Stability modes to compare (default: config mode)'
    )
    parser.add_argument(
        '--output_dir',
        type=str,
        default=None,
        help='Output directory (overrides config)'
    )
    parser.add_argument(
        '--num_frames',
        type=int,
        default=150,
        help='Frames for synthetic scenarios'
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=0,
        help='Scenario RNG seed'
    )
    parser.add_argument(
        '--save_log',
        type=str,
        default=None,
        help='Also write the replayed input as a tracking log'
    )
    parser.add_argument(
        '--no_save',
        action='store_true',
        help='Do not write result files'
    )
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config) if args.config else SystemConfig()
    except ValueError as e:
        parser.error(str(e))

    output_dir = args.output_dir or config.output.output_dir
    log_file = None
    if config.output.log_to_file:
        Path(output_dir).mkdir(parents=True, exist_ok=True)
        log_file = str(Path(output_dir) / 'stabilization.log')
    setup_logging(config.output.log_level, log_file)

    # input
    if args.log_file:
        try:
            loader = TrackingLogLoader(args.log_file, fps=config.tracking.fps)
        except (FileNotFoundError, ValueError) as e:
            parser.error(str(e))
        frames = loader.load_all()
        source_name = Path(args.log_file).stem
    else:
        frames = generate_scenario(
            args.scenario,
            num_frames=args.num_frames,
            fps=config.tracking.fps,
            seed=args.seed
        )
        source_name = args.scenario

    if args.save_log:
        save_tracking_log(frames, args.save_log)

    # without --modes the configured overrides are used as-is
    modes = args.modes or [config.stabilizer.stability_mode]
    logger.info(f"Replaying {len(frames)} frames from '{source_name}' with modes: {modes}")

    for mode in modes:
        system = ARTrackingSystem.from_config(config)
        if args.modes:
            system.set_stability_mode(mode)

        exporter = ResultExporter(output_dir, output_format=config.output.output_format)
        system.add_listener(exporter.add_event)

        for result in system.process_sequence(frames):
            exporter.add_result(result)

        summary = exporter.get_summary()
        logger.info(
            f"[{mode}] frames={summary['num_frames']}, "
            f"mean_offset={summary.get('mean_position_offset', 0.0) * 1000:.2f} mm, "
            f"jitter_ratio={summary.get('jitter_ratio', 0.0):.2f}, "
            f"events={summary['events']}"
        )

        if config.output.save_results and not args.no_save:
            filepath = exporter.save(f"{source_name}_{mode}")
            logger.info(f"[{mode}] results saved to {filepath}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
