"""
lkflow Command Line Interface

Usage:
    lkflow <command> [options]

Commands:
    track       Estimate the flow of points between two frames
    config      Write a default configuration file

Examples:
    lkflow track frame1.png frame2.png -p points.txt -o flow.txt
    lkflow track frame1.png frame2.png -p points.txt -w 21 21 -n 20 --gaussian
    lkflow config flow_config.json
"""

import sys
import argparse
import logging
from pathlib import Path

from lkflow import __version__


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='lkflow',
        description='Sparse Lucas-Kanade optical flow',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        '-V', '--version',
        action='version',
        version=f'lkflow {__version__}',
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Track command
    track_parser = subparsers.add_parser(
        'track',
        help='Estimate the flow of points between two frames',
    )
    track_parser.add_argument('frame1', help='First frame image')
    track_parser.add_argument('frame2', help='Second frame image')
    track_parser.add_argument(
        '-p', '--points',
        required=True,
        help='Point file (ROW COL [HEIGHT WIDTH] per line)',
    )
    track_parser.add_argument(
        '-c', '--config',
        default=None,
        help='JSON configuration file',
    )
    track_parser.add_argument(
        '-w', '--window',
        type=float,
        nargs=2,
        metavar=('HEIGHT', 'WIDTH'),
        default=None,
        help='Search window for points without one (default: 15 15)',
    )
    track_parser.add_argument(
        '-n', '--iterations',
        type=int,
        default=None,
        help='Refinement iterations per point (default: 10)',
    )
    track_parser.add_argument(
        '-s', '--sigma',
        type=float,
        default=None,
        help='Spatial weighting width (default: 0.84)',
    )
    track_parser.add_argument(
        '--gaussian',
        action='store_true',
        help='Use Gaussian spatial weighting instead of uniform',
    )
    track_parser.add_argument(
        '-j', '--workers',
        type=int,
        default=None,
        help='Worker threads (default: automatic)',
    )
    track_parser.add_argument(
        '-o', '--output',
        default=None,
        help='Output file (default: stdout)',
    )
    track_parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable debug logging',
    )

    # Config command
    config_parser = subparsers.add_parser(
        'config',
        help='Write a default configuration file',
    )
    config_parser.add_argument(
        'path',
        nargs='?',
        default='flow_config.json',
        help='Output path (default: flow_config.json)',
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == 'track':
        return run_track(args)
    elif args.command == 'config':
        return run_config(args)
    else:
        parser.print_help()
        return 1


def build_config(args):
    """Merge file, environment and command line settings."""
    from lkflow.core.config import FlowConfig, load_config, get_env_config

    config = load_config(args.config) if args.config else FlowConfig()
    config = config.apply_overrides(get_env_config())

    overrides = {}
    if args.window is not None:
        overrides['window_size'] = tuple(args.window)
    if args.iterations is not None:
        overrides['iteration_count'] = args.iterations
    if args.sigma is not None:
        overrides['sigma'] = args.sigma
    if args.gaussian:
        overrides['weighting'] = 'gaussian'
    if args.workers is not None:
        overrides['workers'] = args.workers
    return config.apply_overrides(overrides)


def run_track(args):
    """Run the point tracking command."""
    import cv2

    from lkflow.core.image import to_gray8
    from lkflow.tracking import LucasKanadeFlow, read_points, write_flow

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(name)s: %(message)s')

    try:
        config = build_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    frames = []
    for path in (args.frame1, args.frame2):
        frame = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if frame is None:
            print(f"Error: Failed to read image: {path}", file=sys.stderr)
            return 1
        frames.append(to_gray8(frame))

    try:
        points, windows = read_points(args.points, config.window_size)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Tracking {len(points)} points: {args.frame1} -> {args.frame2}", file=sys.stderr)

    solver = LucasKanadeFlow.from_config(config)
    try:
        flow = solver.evaluate(frames[0], frames[1], points, windows)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.output:
        write_flow(Path(args.output), points, flow, solver.corner_response)
        print(f"Wrote flow: {args.output}", file=sys.stderr)
    else:
        write_flow(sys.stdout, points, flow, solver.corner_response)

    return 0


def run_config(args):
    """Write a default configuration file."""
    from lkflow.core.config import FlowConfig

    FlowConfig().save(args.path)
    print(f"Created configuration: {args.path}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
