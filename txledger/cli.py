"""
txledger command line.

    txledger transactions.csv > accounts.csv
    txledger - --floor -50 --fail-on-reject < transactions.csv

Exit codes:
    0  batch processed (rejected transactions are reported, not fatal)
    1  input unreadable or structurally malformed
    2  usage error
    3  --fail-on-reject given and at least one transaction was rejected
    4  ledger invariant violated
"""

from __future__ import annotations
import argparse
import contextlib
import io
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import List, Optional, TextIO

from . import __version__
from .batch import run_batch
from .core import ApplyResult, LedgerInvariantViolation, MAX_BALANCE, ZERO
from .csv_io import read_transactions, write_balances
from .ledger import Ledger

_log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_USAGE = 2
EXIT_REJECTED = 3
EXIT_INVARIANT = 4


def _floor(text: str) -> Decimal:
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid floor {text!r}") from None
    if not value.is_finite() or value > ZERO:
        raise argparse.ArgumentTypeError(f"floor must be zero or negative, got {text}")
    if value < -MAX_BALANCE:
        raise argparse.ArgumentTypeError(f"floor must not be below -{MAX_BALANCE}, got {text}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="txledger",
        description="Apply a CSV batch of transactions and print the resulting account balances.",
    )
    parser.add_argument("input", help="transactions CSV file, or - for stdin")
    parser.add_argument("-o", "--output", default=None, help="write balances here instead of stdout")
    parser.add_argument("--floor", type=_floor, default=Decimal("0"),
                        help="minimum available balance, zero or negative (default: 0)")
    parser.add_argument("--no-implicit-open", action="store_true",
                        help="reject transactions for accounts without an open record")
    parser.add_argument("--fail-on-reject", action="store_true",
                        help="exit with status 3 if any transaction was rejected")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="trace every transaction on stderr")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _open_input(path: str):
    # Undecodable bytes pass through as surrogates so the reader can name the record
    if path == "-":
        if hasattr(sys.stdin, "buffer"):
            return io.TextIOWrapper(sys.stdin.buffer, encoding="utf-8", errors="surrogateescape", newline="")
        return contextlib.nullcontext(sys.stdin)
    return open(path, newline="", encoding="utf-8", errors="surrogateescape")


def _open_output(path: Optional[str]):
    if path is None:
        return contextlib.nullcontext(sys.stdout)
    return open(path, "w", newline="", encoding="utf-8")


def _log_result(result: ApplyResult) -> None:
    if result.applied:
        _log.debug("applied #%d %r", result.sequence, result.transaction)
    else:
        _log.warning("rejected #%d %r: %s (%s)", result.sequence, result.transaction,
                     result.reason.value, result.detail)


def _write(ledger: Ledger, output: Optional[str]) -> None:
    with _open_output(output) as stream:
        rows = write_balances(ledger, stream)
    _log.info("wrote %d account(s)", rows)


def main(argv: Optional[List[str]] = None) -> int:
    """Parse args, run the batch and write balances. Returns the exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)

    ledger = Ledger(
        name="batch",
        floor=args.floor,
        allow_implicit_open=not args.no_implicit_open,
        verbose=args.verbose,
    )
    try:
        with _open_input(args.input) as stream:
            report = run_batch(ledger, read_transactions(stream), on_result=_log_result)
    except OSError as exc:
        _log.error("cannot read %s: %s", args.input, exc)
        return EXIT_INPUT_ERROR
    except LedgerInvariantViolation as exc:
        _log.critical("ledger invariant violated, batch stopped: %s", exc)
        return EXIT_INVARIANT

    try:
        _write(ledger, args.output)
    except OSError as exc:
        _log.error("cannot write %s: %s", args.output, exc)
        return EXIT_INPUT_ERROR

    _log.info("%d transaction(s) processed, %d applied, %d rejected",
              report.processed, len(report.applied), len(report.rejected))
    if report.error is not None:
        _log.error("batch aborted at %s; %d earlier record(s) applied",
                   report.error, report.processed)
        return EXIT_INPUT_ERROR
    if args.fail_on_reject and report.rejected:
        return EXIT_REJECTED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
