"""Command line entry point that folds DTrace stack output."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from .collapse import default_nthreads
from .dtrace import Folder, Options

_EPILOG = """\
[1] This processes the result of the dtrace ustack() as run with:
        dtrace -x ustackframes=100 -n 'profile-97 /pid == 12345 && arg1/ { @[ustack()] = count(); } tick-60s { exit(0); }'
    or including kernel time:
        dtrace -x ustackframes=100 -n 'profile-97 /pid == 12345/ { @[ustack()] = count(); } tick-60s { exit(0); }'
"""

_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


def _uint(text: str) -> int:
    try:
        value = int(text, 10)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid unsigned integer: {text!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"invalid unsigned integer: {text!r}")
    return value


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flamefold-collapse-dtrace",
        description="Collapse DTrace ustack() output into folded stack lines.",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--includeoffset", action="store_true", help="Include offsets")
    parser.add_argument("-q", "--quiet", action="store_true", help="Silence all log output")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Verbose logging mode (-v, -vv, -vvv)",
    )
    parser.add_argument(
        "-n",
        "--nthreads",
        type=_uint,
        default=default_nthreads(),
        metavar="UINT",
        help="Number of threads to use.",
    )
    parser.add_argument(
        "infile",
        nargs="?",
        metavar="PATH",
        help="Dtrace script output file, or STDIN if not specified",
    )
    return parser


def _configure_logging(quiet: bool, verbose: int) -> None:
    package_logger = logging.getLogger("flamefold")
    if quiet:
        package_logger.setLevel(logging.CRITICAL + 1)
        return
    package_logger.setLevel(_LEVELS[min(verbose, len(_LEVELS) - 1)])
    logging.basicConfig(format="[%(levelname)s %(name)s] %(message)s")


def main(argv: Sequence[str] | None = None) -> int:
    """Run the collapser; return the process exit status."""
    args = _parser().parse_args(argv)
    _configure_logging(args.quiet, args.verbose)
    folder = Folder(Options(includeoffset=args.includeoffset, nthreads=args.nthreads))
    try:
        folder.collapse_file_to_stdout(args.infile)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())