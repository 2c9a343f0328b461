#!/usr/bin/env python3
"""LC3-VM Command Line Interface.

Run LC-3 object images with the LC3-VM emulator.

Usage:
    python main.py programs/hello.obj
    python main.py os.obj game.obj --trace
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from lc3_vm import LC3VM, ImageLoadError


# Cycle limit applied when --trace is given without --max-cycles
TRACE_MAX_CYCLES = 100000


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lc3",
        description="LC3-VM: LC-3 Virtual Machine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run a program image
    python main.py programs/hello.obj

    # Load several images (later ones overwrite earlier ones)
    python main.py lib.obj main.obj

    # Print a full execution trace after the program halts
    python main.py programs/hello.obj --trace --max-cycles 5000
        """
    )

    parser.add_argument(
        "images",
        nargs="+",
        metavar="image-file",
        help="LC-3 object image(s): big-endian words, first word is the origin"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help=(
            "Stop after this many cycles. Default: run until HALT, "
            f"or {TRACE_MAX_CYCLES} cycles with --trace"
        )
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full execution trace (implies a cycle limit, see --max-cycles)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level for diagnostics on stderr. Default: WARNING"
    )
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    max_cycles = args.max_cycles
    if args.trace and max_cycles is None:
        max_cycles = TRACE_MAX_CYCLES

    vm = LC3VM(max_cycles=max_cycles, trace=args.trace)

    try:
        vm.load_images(args.images)
    except ImageLoadError as e:
        logging.getLogger(__name__).debug("%s", e)
        print(f"failed to load image: {e.path}")
        return 2

    exit_code = 0
    try:
        vm.run()
    except RuntimeError as e:
        print(f"Execution error: {e}", file=sys.stderr)
        exit_code = 1
    except KeyboardInterrupt:
        print(file=sys.stderr)
        exit_code = 130

    if args.trace:
        vm.print_trace()

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
