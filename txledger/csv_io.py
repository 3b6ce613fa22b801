"""
csv_io.py - CSV input and output for batch runs.

Input columns (header required, any order, case-insensitive):

    type,client,tx,amount[,to]

Output columns:

    client,available,held,total,locked

The reader is a generator: records are parsed one at a time, so a batch
runner applies every record before the first malformed one and then stops.
"""

from __future__ import annotations
import csv
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, TextIO

from .core import (
    AccountId, AccountSnapshot, InputError, LedgerView, Transaction, TransactionType,
    format_amount, to_amount,
)


INPUT_COLUMNS = ("type", "client", "tx", "amount", "to")
REQUIRED_COLUMNS = ("type", "client")
OUTPUT_COLUMNS = ("client", "available", "held", "total", "locked")


def parse_account_id(text: str) -> AccountId:
    """Digit-only ids become ints (so "01" and "1" are the same client); others stay strings."""
    text = text.strip()
    if not text:
        raise ValueError("missing client")
    if text.isascii() and text.isdigit():
        return int(text)
    return text


def parse_tx_id(text: str) -> Optional[int]:
    text = text.strip()
    if not text:
        return None
    if not (text.isascii() and text.isdigit()):
        raise ValueError(f"tx must be a non-negative integer, got {text!r}")
    return int(text)


def parse_amount(text: str) -> Optional[Decimal]:
    text = text.strip()
    if not text:
        return None
    return to_amount(text)


def parse_record(fields: Dict[str, str]) -> Transaction:
    """
    Build a Transaction from one CSV row.

    Args:
        fields: Column name -> raw cell text (missing optional columns may be absent)

    Raises:
        ValueError: If any field is malformed or a required field is missing
    """
    kind = TransactionType.parse(fields.get("type", ""))
    counterparty_text = fields.get("to", "").strip()
    return Transaction(
        kind=kind,
        account_id=parse_account_id(fields.get("client", "")),
        amount=parse_amount(fields.get("amount", "")),
        tx_id=parse_tx_id(fields.get("tx", "")),
        counterparty=parse_account_id(counterparty_text) if counterparty_text else None,
    )


def _read_header(reader) -> List[str]:
    header = next(reader, None)
    while header is not None and not any(cell.strip() for cell in header):
        header = next(reader, None)
    if header is None:
        raise InputError(0, "input is empty, expected a header row", reader.line_num)
    columns = [cell.strip().lower() for cell in header]
    unknown = [c for c in columns if c not in INPUT_COLUMNS]
    if unknown:
        raise InputError(0, f"unknown column(s) {', '.join(unknown)}", reader.line_num)
    if len(set(columns)) != len(columns):
        raise InputError(0, "duplicate column in header", reader.line_num)
    missing = [c for c in REQUIRED_COLUMNS if c not in columns]
    if missing:
        raise InputError(0, f"missing column(s) {', '.join(missing)}", reader.line_num)
    return columns


def _check_encoding(row: List[str]) -> None:
    # Streams opened with errors="surrogateescape" carry undecodable bytes as lone surrogates
    try:
        ",".join(row).encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError("record is not valid UTF-8") from None


def read_transactions(stream: TextIO) -> Iterator[Transaction]:
    """
    Lazily parse transactions from a CSV stream, in input order.

    Blank lines are skipped and do not count as records. Rows may omit
    trailing optional cells (e.g. "dispute,1,7").

    Open files with errors="surrogateescape" to have undecodable bytes
    reported against the record that holds them. With strict decoding the
    error surfaces wherever the decoder reads its next chunk.

    Yields:
        One Transaction per data row

    Raises:
        InputError: On the first structural problem, with the 1-based record
            position and the line number. Header problems use position 0.
            Decoding and csv-level errors are reported the same way.
    """
    reader = csv.reader(stream)
    try:
        columns = _read_header(reader)
    except (csv.Error, UnicodeDecodeError) as exc:
        raise InputError(0, f"unreadable header: {exc}", reader.line_num) from exc
    position = 0
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except (csv.Error, UnicodeDecodeError) as exc:
            raise InputError(position + 1, f"unreadable record: {exc}", reader.line_num) from exc
        if not any(cell.strip() for cell in row):
            continue
        position += 1
        if len(row) > len(columns):
            raise InputError(position, f"expected at most {len(columns)} fields, got {len(row)}",
                             reader.line_num)
        fields = dict(zip(columns, row))
        try:
            _check_encoding(row)
            transaction = parse_record(fields)
        except ValueError as exc:
            raise InputError(position, str(exc), reader.line_num) from exc
        yield transaction


def format_row(account: AccountSnapshot) -> List[str]:
    """Output cells for one account."""
    return [
        str(account.account_id),
        format_amount(account.available),
        format_amount(account.held),
        format_amount(account.total),
        "true" if account.locked else "false",
    ]


def write_balances(view: LedgerView, stream: TextIO) -> int:
    """
    Write one row per account, in the ledger's snapshot order.

    Returns:
        Number of account rows written
    """
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_COLUMNS)
    count = 0
    for account in view.snapshot():
        writer.writerow(format_row(account))
        count += 1
    return count
