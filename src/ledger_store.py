import threading
from decimal import Decimal
from typing import Dict, Optional, Set

from exceptions import DuplicateTransactionError, TransactionNotFoundError
from models import DisputeState, LedgerEntry


class LedgerStore:
    """
    Insertion-only record of applied deposits, keyed by transaction id.
    Also remembers withdrawal ids so a reused id is caught as a duplicate.
    Only the dispute state of an entry changes after it is recorded.
    """

    def __init__(self):
        self._entries: Dict[int, LedgerEntry] = {}
        self._withdrawal_ids: Set[int] = set()

        # Guards the duplicate check and insert when shards share one store.
        self._insert_lock = threading.Lock()

    def record(self, transaction_id: int, client_id: int, amount: Decimal) -> LedgerEntry:
        """Record an applied deposit. Raises DuplicateTransactionError if the id was seen before."""
        with self._insert_lock:
            if transaction_id in self:
                raise DuplicateTransactionError(transaction_id)
            entry = LedgerEntry(transaction_id=transaction_id, client_id=client_id, amount=amount)
            self._entries[transaction_id] = entry
            return entry

    def record_withdrawal(self, transaction_id: int) -> None:
        """Reserve a withdrawal id. Withdrawals are never disputable, so no entry is kept."""
        with self._insert_lock:
            if transaction_id in self:
                raise DuplicateTransactionError(transaction_id)
            self._withdrawal_ids.add(transaction_id)

    def lookup(self, transaction_id: int) -> Optional[LedgerEntry]:
        return self._entries.get(transaction_id)

    def is_withdrawal(self, transaction_id: int) -> bool:
        return transaction_id in self._withdrawal_ids

    def mark_disputed(self, transaction_id: int, value: bool) -> None:
        """Flip an entry between disputed and undisputed. The caller keeps balances consistent."""
        entry = self._require(transaction_id)
        entry.state = DisputeState.DISPUTED if value else DisputeState.UNDISPUTED

    def mark_charged_back(self, transaction_id: int) -> None:
        self._require(transaction_id).state = DisputeState.CHARGED_BACK

    def _require(self, transaction_id: int) -> LedgerEntry:
        entry = self._entries.get(transaction_id)
        if entry is None:
            raise TransactionNotFoundError(transaction_id)
        return entry

    def __contains__(self, transaction_id: int) -> bool:
        return transaction_id in self._entries or transaction_id in self._withdrawal_ids

    def __len__(self) -> int:
        return len(self._entries)
