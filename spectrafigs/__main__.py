"""Command line entry point.

Usage examples:

- Every figure:          python -m spectrafigs --data-dir data
- One figure as PNG:     python -m spectrafigs fig1_site_map --format raster
- With a config file:    python -m spectrafigs --config figures.yaml
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from spectrafigs.config import EXPORT_FORMATS, load_config
from spectrafigs.utils.errors import SpectraFigsError
from spectrafigs.workflows.orchestrator import FIGURE_REGISTRY, FigureRunner

logger = logging.getLogger("spectrafigs")


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="spectrafigs", description="Generate composite figures")
    parser.add_argument(
        "figures",
        nargs="*",
        help=f"Figure names (default: all). Available: {', '.join(FIGURE_REGISTRY)}",
    )
    parser.add_argument("--data-dir", default="data", help="Directory with input files")
    parser.add_argument("--output", default=None, help="Output root (default from config)")
    parser.add_argument("--config", default=None, help="YAML or JSON config file")
    parser.add_argument(
        "--format",
        dest="formats",
        action="append",
        choices=EXPORT_FORMATS,
        help="Export format; repeat for several (default from config)",
    )
    parser.add_argument("--dpi", type=int, default=None, help="Raster resolution")
    parser.add_argument("--list", action="store_true", help="List figure names and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.list:
        print("\n".join(FIGURE_REGISTRY))
        return 0

    overrides = {}
    if args.output is not None:
        overrides["output_root"] = args.output
    if args.formats:
        overrides["formats"] = tuple(args.formats)
    if args.dpi is not None:
        overrides["dpi"] = args.dpi

    try:
        config = load_config(args.config, **overrides)
    except SpectraFigsError as e:
        logger.error(str(e))
        return 2

    report = FigureRunner(config=config, data_dir=args.data_dir).run(args.figures)
    print(report.summary())
    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(main())
