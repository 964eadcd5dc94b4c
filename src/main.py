import argparse
import logging
import sys
from typing import List, Optional

from csv_adapter import write_snapshots
from exceptions import InvariantViolationError
from payments_engine import PaymentsEngine

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_INVARIANT_VIOLATION = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="payments-ledger",
        description="Apply a CSV of transactions and print the final account balances.",
    )
    parser.add_argument("input", help="CSV file with type,client,tx,amount columns")
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="number of shard workers; clients are partitioned across them (default: 1)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="diagnostics written to stderr (default: WARNING)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return EXIT_OK if e.code == 0 else EXIT_USAGE

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    if args.workers < 1:
        print("--workers must be at least 1", file=sys.stderr)
        return EXIT_USAGE

    engine = PaymentsEngine(num_workers=args.workers)
    try:
        snapshots = engine.process_file(args.input)
    except OSError as e:
        print(f"Cannot read {args.input}: {e}", file=sys.stderr)
        return EXIT_USAGE
    except InvariantViolationError as e:
        logger.error(f"Aborting run: {e}")
        return EXIT_INVARIANT_VIOLATION

    write_snapshots(snapshots, sys.stdout)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
