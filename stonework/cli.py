"""
Command-line interface for stonework.

    stonework stones INPUT_DIR -o stones.csv --pattern "*.ply" --unit-convert 0.001
    stonework lmt panel.png --length 149 --height 140 --mode horizontal -o results/
"""

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .errors import StoneworkError
from .io import load_binary_grid, write_lmt_table, write_stone_table
from .solvers import available_solvers
from .stone import analyze_stones
from .trace import LMT_MODES, LMTOptions, compute_lmt

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def create_parser():
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="stonework: stone shape descriptors and line of minimum trace for masonry",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"stonework {__version__}")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for info, -vv for debug")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Stone properties
    stones_parser = subparsers.add_parser("stones", help="Compute geometric properties of stone meshes")
    stones_parser.add_argument("input_dir", help="Folder containing stone meshes")
    stones_parser.add_argument("-o", "--output", default="stone_properties.csv", help="Output CSV path")
    stones_parser.add_argument("--pattern", default="*.ply", help="File pattern, e.g. '*.stl'")
    stones_parser.add_argument(
        "--unit-convert",
        type=float,
        default=1.0,
        help="Factor from mesh units to meters (0.001 for mm)",
    )

    # Line of minimum trace
    lmt_parser = subparsers.add_parser("lmt", help="Line of minimum trace of a binary panel")
    lmt_parser.add_argument("grid", help="Binary image (mortar white), .npy array or folder of slices")
    lmt_parser.add_argument("-o", "--output", default=".", help="Output folder")
    lmt_parser.add_argument("--length", type=float, required=True, help="Real panel length")
    lmt_parser.add_argument("--height", type=float, required=True, help="Real panel height")
    lmt_parser.add_argument("--depth", type=float, help="Real extent along axis 0 (3D volumes)")
    lmt_parser.add_argument("--mode", choices=LMT_MODES, default="horizontal", help="LMT variant")
    lmt_parser.add_argument(
        "--interface-weight",
        type=float,
        default=1.0,
        help="Alpha in (0, 1]: weight factor of edges at the stone-mortar interface",
    )
    lmt_parser.add_argument("--connectivity", type=int, help="Pixel/voxel connectivity (default: maximum)")
    lmt_parser.add_argument("--margin", type=int, default=5, help="Boundary margin in pixels")
    lmt_parser.add_argument(
        "--points",
        nargs="+",
        type=int,
        action="append",
        metavar="IDX",
        help="Explicit endpoints: start coordinate followed by end coordinate (row col row col). Repeatable",
    )
    lmt_parser.add_argument("--count", type=int, default=1, help="Number of automatic lines")
    lmt_parser.add_argument("--start", nargs=2, type=int, default=(80, 80), help="Automatic start offsets")
    lmt_parser.add_argument("--step", nargs=2, type=int, default=(100, 100), help="Offset step between lines")
    lmt_parser.add_argument("--solver", choices=available_solvers(), default="scipy", help="Shortest-path backend")
    lmt_parser.add_argument("--timeout", type=float, help="Time limit per path (seconds)")
    lmt_parser.add_argument("--workers", type=int, default=1, help="Threads for the graph build")
    lmt_parser.add_argument("--threshold", type=int, default=0, help="Grey level above which a pixel is mortar")
    lmt_parser.add_argument("--skip-unreachable", action="store_true", help="Skip disconnected endpoint pairs")
    lmt_parser.add_argument("--no-figure", action="store_true", help="Do not save the path figure")

    return parser


def stones_command(args):
    """Handle the stone properties command."""
    stones = analyze_stones(args.input_dir, pattern=args.pattern, unit_convert=args.unit_convert)
    write_stone_table(args.output, stones)
    print(f"Analyzed {len(stones)} stones -> {args.output}")
    return 0


def _parse_points(points, ndim):
    pairs = []
    for values in points:
        if len(values) != 2 * ndim:
            raise ValueError(f"--points needs {2 * ndim} integers for a {ndim}D grid, got {len(values)}")
        pairs.append((tuple(values[:ndim]), tuple(values[ndim:])))
    return pairs


def lmt_command(args):
    """Handle the line of minimum trace command."""
    grid = load_binary_grid(args.grid, threshold=args.threshold)
    options = LMTOptions(
        mode=args.mode,
        real_length=args.length,
        real_height=args.height,
        real_depth=args.depth,
        interface_weight=args.interface_weight,
        connectivity=args.connectivity,
        boundary_margin=args.margin,
        count=args.count,
        start_offsets=tuple(args.start),
        step=tuple(args.step),
        solver=args.solver,
        timeout=args.timeout,
        workers=args.workers,
        skip_unreachable=args.skip_unreachable,
    )
    endpoints = _parse_points(args.points, grid.ndim) if args.points else None
    result = compute_lmt(grid, endpoints, options)

    out_dir = Path(args.output)
    out_dir.mkdir(parents=True, exist_ok=True)
    base = Path(args.grid).stem
    table_path = out_dir / f"{base}_{options.mode}_LMT.csv"
    write_lmt_table(table_path, result)
    if not args.no_figure:
        from .visualization import save_lmt_figure

        save_lmt_figure(out_dir / f"{base}_{options.mode}_LMT.png", result)

    for i, p in enumerate(result.paths, start=1):
        print(f"Line {i}: length={p.length:.4f}, LMT={p.lmt:.4f}")
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    if args.command is None:
        parser.print_help()
        return 1

    commands = {"stones": stones_command, "lmt": lmt_command}
    try:
        return commands[args.command](args)
    except (StoneworkError, ValueError) as e:
        logger.error("%s: %s", type(e).__name__, e)
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
