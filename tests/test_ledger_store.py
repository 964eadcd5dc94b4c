import sys
import os
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from exceptions import DuplicateTransactionError, TransactionNotFoundError
from ledger_store import LedgerStore
from models import DisputeState


class TestLedgerStore:
    def setup_method(self):
        self.ledger = LedgerStore()

    def test_record_and_lookup(self):
        entry = self.ledger.record(1, client_id=2, amount=Decimal("5"))

        assert self.ledger.lookup(1) is entry
        assert entry.client_id == 2
        assert entry.amount == Decimal("5")
        assert entry.disputed is False
        assert len(self.ledger) == 1

    def test_lookup_missing(self):
        assert self.ledger.lookup(42) is None

    def test_duplicate_deposit_rejected(self):
        self.ledger.record(1, client_id=1, amount=Decimal("5"))
        with pytest.raises(DuplicateTransactionError) as exc_info:
            self.ledger.record(1, client_id=1, amount=Decimal("7"))

        assert exc_info.value.transaction_id == 1
        assert self.ledger.lookup(1).amount == Decimal("5")

    def test_withdrawal_id_blocks_deposit_reuse(self):
        self.ledger.record_withdrawal(9)

        assert 9 in self.ledger
        assert self.ledger.is_withdrawal(9)
        assert self.ledger.lookup(9) is None
        with pytest.raises(DuplicateTransactionError):
            self.ledger.record(9, client_id=1, amount=Decimal("1"))

    def test_deposit_id_blocks_withdrawal_reuse(self):
        self.ledger.record(3, client_id=1, amount=Decimal("1"))
        with pytest.raises(DuplicateTransactionError):
            self.ledger.record_withdrawal(3)

    def test_mark_disputed_round_trip(self):
        self.ledger.record(1, client_id=1, amount=Decimal("5"))

        self.ledger.mark_disputed(1, True)
        assert self.ledger.lookup(1).disputed is True

        self.ledger.mark_disputed(1, False)
        assert self.ledger.lookup(1).state == DisputeState.UNDISPUTED

    def test_mark_charged_back(self):
        self.ledger.record(1, client_id=1, amount=Decimal("5"))
        self.ledger.mark_charged_back(1)
        assert self.ledger.lookup(1).state == DisputeState.CHARGED_BACK

    def test_mark_unknown_raises(self):
        with pytest.raises(TransactionNotFoundError):
            self.ledger.mark_disputed(5, True)
        with pytest.raises(TransactionNotFoundError):
            self.ledger.mark_charged_back(5)
