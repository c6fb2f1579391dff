"""Command line entry point: run cases and report Pass/Fail per case."""

import argparse
import logging
import sys
from typing import Optional, Sequence

from .cases import MEMORY_MODELS, get_case, load_cases
from .config import HarnessConfig
from .device import DeviceQueue
from .errors import FFTConformError
from .runner import run_case

logger = logging.getLogger(__name__)

EXIT_PASS = 0
EXIT_FAIL = -1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fftconform",
        description="Run FFT conformance cases against the torch.fft engine.",
    )
    parser.add_argument(
        "cases",
        nargs="*",
        help="Names of the cases to run (default: every available case)",
    )
    parser.add_argument(
        "--list", action="store_true", help="List available cases and exit"
    )
    parser.add_argument(
        "--memory-model",
        choices=MEMORY_MODELS,
        default=None,
        help="Only run cases written for this memory model",
    )
    parser.add_argument(
        "--device",
        default=None,
        help='Torch device to run on, e.g. "cuda:0" or "cpu" (env: FFTCONFORM_DEVICE)',
    )
    parser.add_argument(
        "--tolerance",
        type=float,
        default=None,
        help="Absolute comparison tolerance (env: FFTCONFORM_TOLERANCE)",
    )
    parser.add_argument(
        "--cases-dir",
        default=None,
        help="Directory with case fixtures (env: FFTCONFORM_CASES_DIR)",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="More logging output"
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = HarnessConfig.from_sources(
            device=args.device, tolerance=args.tolerance, cases_dir=args.cases_dir
        )
        if args.cases:
            cases = [get_case(name, config.cases_dir) for name in args.cases]
            if args.memory_model is not None:
                cases = [c for c in cases if c.memory_model == args.memory_model]
        else:
            cases = load_cases(config.cases_dir, memory_model=args.memory_model)
    except (FFTConformError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAIL

    if args.list:
        for case in cases:
            print(f"{case.name}  [{case.memory_model}, {case.precision}]")
        return EXIT_PASS

    logger.info("Running %d cases with %s", len(cases), config)
    queue = DeviceQueue(config.device)

    all_passed = True
    for case in cases:
        try:
            passed = run_case(case, queue=queue, tolerance=config.tolerance).passed
        except FFTConformError as e:
            logger.error("%s raised %s: %s", case.name, type(e).__name__, e)
            passed = False
        print(f"{case.name}: {'Pass' if passed else 'Fail'}")
        all_passed = all_passed and passed

    print("Pass" if all_passed else "Fail")
    return EXIT_PASS if all_passed else EXIT_FAIL


def run() -> None:
    """Console script wrapper."""
    sys.exit(main())
