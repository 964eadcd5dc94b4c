import sys
import os
import io
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from csv_adapter import format_decimal, parse_csv_row, read_transactions, write_snapshots
from models import AccountSnapshot, TransactionType


class TestParseCsvRow:
    def test_deposit_with_whitespace(self):
        transaction = parse_csv_row({"type": " deposit", " client": " 1", " tx": " 2", " amount": " 1.5"})

        assert transaction.transaction_type == TransactionType.DEPOSIT
        assert transaction.client_id == 1
        assert transaction.transaction_id == 2
        assert transaction.amount == Decimal("1.5")

    def test_type_is_case_insensitive(self):
        transaction = parse_csv_row({"type": "Withdrawal", "client": "1", "tx": "2", "amount": "3"})
        assert transaction.transaction_type == TransactionType.WITHDRAWAL

    def test_dispute_without_amount_column(self):
        transaction = parse_csv_row({"type": "dispute", "client": "1", "tx": "2", "amount": None})

        assert transaction.transaction_type == TransactionType.DISPUTE
        assert transaction.amount is None

    def test_dispute_amount_ignored(self):
        transaction = parse_csv_row({"type": "resolve", "client": "1", "tx": "2", "amount": "junk"})
        assert transaction.amount is None

    def test_deposit_without_amount_reaches_core(self):
        transaction = parse_csv_row({"type": "deposit", "client": "1", "tx": "2", "amount": ""})
        assert transaction is not None
        assert transaction.amount is None

    @pytest.mark.parametrize("row", [
        {"type": "transfer", "client": "1", "tx": "1", "amount": "1"},
        {"type": "deposit", "client": "-1", "tx": "1", "amount": "1"},
        {"type": "deposit", "client": "65536", "tx": "1", "amount": "1"},
        {"type": "deposit", "client": "1", "tx": "4294967296", "amount": "1"},
        {"type": "deposit", "client": "1.0", "tx": "1", "amount": "1"},
        {"type": "deposit", "client": "1", "tx": "1", "amount": "1.23456"},
        {"type": "deposit", "client": "1", "tx": "1", "amount": "nan"},
        {"type": "deposit", "client": "1", "amount": "1"},
    ])
    def test_invalid_rows_return_none(self, row):
        assert parse_csv_row(row) is None

    def test_invalid_row_is_logged(self, caplog):
        parse_csv_row({"type": "bogus", "client": "1", "tx": "1", "amount": "1"})
        assert "Failed to parse row" in caplog.text


class TestReadTransactions:
    def test_skips_bad_rows(self):
        stream = io.StringIO("\n".join([
            "type,client,tx,amount",
            "deposit,1,1,1.0",
            "oops,1,2,1.0",
            "deposit,2,3",
            "dispute,1,1,",
        ]))

        transactions = list(read_transactions(stream))

        assert [t.transaction_id for t in transactions] == [1, 3, 1]
        assert transactions[1].amount is None

    def test_is_lazy(self):
        stream = io.StringIO("type,client,tx,amount\ndeposit,1,1,1.0\ndeposit,1,2,1.0\n")
        iterator = read_transactions(stream)

        assert next(iterator).transaction_id == 1
        assert next(iterator).transaction_id == 2
        with pytest.raises(StopIteration):
            next(iterator)


class TestWriteSnapshots:
    def test_format_decimal(self):
        assert format_decimal(Decimal("1.5")) == "1.5000"
        assert format_decimal(Decimal("0")) == "0.0000"

    def test_writes_rows_in_given_order(self):
        snapshots = [
            AccountSnapshot(client_id=2, available=Decimal("1.5"), held=Decimal("0"), total=Decimal("1.5"), locked=False),
            AccountSnapshot(client_id=1, available=Decimal("0"), held=Decimal("0"), total=Decimal("0"), locked=True),
        ]
        out = io.StringIO()

        write_snapshots(snapshots, out)

        assert out.getvalue() == (
            "client,available,held,total,locked\n"
            "2,1.5000,0.0000,1.5000,false\n"
            "1,0.0000,0.0000,0.0000,true\n"
        )
