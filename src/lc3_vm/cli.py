"""LC-3 VM Command Line Interface.

Run an LC-3 object image.

Usage:
    lc3-vm programs/hello.obj
    lc3-vm programs/game.obj --trace --trace-delay 0.01
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .cpu import LC3
from .loader import ImageFormatError, ImageReadError, load_image_file

logger = logging.getLogger("lc3_vm")


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on usage errors."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="lc3-vm",
        description="LC-3 VM: 16-bit LC-3 virtual machine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run an image
    lc3-vm hello.obj

    # Print registers and opcode before every instruction, slowed down
    lc3-vm hello.obj --trace --trace-delay 0.01

    # Stop after 100000 instructions
    lc3-vm loop.obj --max-cycles 100000
        """
    )

    parser.add_argument(
        "image",
        help="Path to the object image (big-endian words, first word is the origin)"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print registers, PSR, PC and opcode before every instruction (to stderr)"
    )
    parser.add_argument(
        "--trace-delay",
        type=float,
        default=0.0,
        metavar="SECONDS",
        help="Sleep after each trace line. Default: 0"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Stop after this many instructions. Default: unlimited"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug)"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only log errors"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    return parser


def setup_logging(verbose: int, quiet: bool) -> None:
    """Configure logging to stderr so program output stays on stdout."""
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.quiet)

    try:
        image = load_image_file(args.image)
    except (ImageReadError, ImageFormatError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    logger.debug("Program: %s", [f"x{w:04X}" for w in image.words])

    machine = LC3(
        verbose=args.trace,
        trace_delay=args.trace_delay,
        max_cycles=args.max_cycles,
    )
    machine.load_image(image)
    result = machine.run()

    if result.exit_code != 0:
        print(f"\n{result.message}", file=sys.stderr)

    logger.info("Executed %d instructions, exit %d", result.cycles, result.exit_code)
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
