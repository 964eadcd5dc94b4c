import csv
import logging
from decimal import Decimal
from typing import Dict, Iterable, Iterator, Optional, TextIO

from models import AMOUNT_PRECISION, AccountSnapshot, Transaction, TransactionType, parse_amount

logger = logging.getLogger(__name__)

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1

OUTPUT_HEADER = ["client", "available", "held", "total", "locked"]


def read_transactions(stream: TextIO) -> Iterator[Transaction]:
    """Lazily yield transactions from a CSV stream, skipping rows that fail to parse."""
    reader = csv.DictReader(stream)
    for row in reader:
        transaction = parse_csv_row(row)
        if transaction:
            yield transaction


def parse_csv_row(row: Dict[Optional[str], Optional[str]]) -> Optional[Transaction]:
    """Parse CSV row into Transaction. Returns None for rows that cannot be parsed."""
    try:
        normalized = {
            k.strip().lower(): (v or "").strip()
            for k, v in row.items()
            if k is not None
        }

        transaction_type = TransactionType(normalized["type"].lower())
        client_id = _parse_id(normalized["client"], MAX_CLIENT_ID, "client")
        transaction_id = _parse_id(normalized["tx"], MAX_TRANSACTION_ID, "tx")

        amount = None
        amount_str = normalized.get("amount", "")
        if amount_str and transaction_type in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL):
            amount = parse_amount(amount_str)

        return Transaction(
            transaction_type=transaction_type,
            client_id=client_id,
            transaction_id=transaction_id,
            amount=amount,
        )
    except (KeyError, ValueError) as e:
        logger.warning(f"Failed to parse row {row}: {e}")
        return None


def _parse_id(text: str, maximum: int, field: str) -> int:
    value = int(text)
    if not 0 <= value <= maximum:
        raise ValueError(f"{field} id {value} out of range 0..{maximum}")
    return value


def format_decimal(value: Decimal) -> str:
    """Format decimal with exactly 4 decimal places."""
    return f"{value.quantize(AMOUNT_PRECISION):f}"


def write_snapshots(snapshots: Iterable[AccountSnapshot], stream: TextIO) -> None:
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_HEADER)
    for snapshot in snapshots:
        writer.writerow([
            snapshot.client_id,
            format_decimal(snapshot.available),
            format_decimal(snapshot.held),
            format_decimal(snapshot.total),
            str(snapshot.locked).lower(),
        ])
