import threading
from typing import Dict, List

from ledger_store import LedgerStore
from models import AccountSnapshot, ClientAccount


class StateManager:
    """
    Owns every client account and the ledger of deposits for one run.
    Accounts are kept in first-seen order so snapshots are deterministic.
    Per-client locks let sharded workers serialize work on the same client.
    """

    def __init__(self):
        self._accounts: Dict[int, ClientAccount] = {}
        self.ledger = LedgerStore()

        # Global lock protects creation of new entries in _accounts and _client_locks dicts.
        self._global_lock = threading.Lock()
        self._client_locks: Dict[int, threading.Lock] = {}

    def get_client_lock(self, client_id: int) -> threading.Lock:
        """
        Get or create a lock for a specific client.
        A worker acquires this before processing any transaction for that client.
        """
        with self._global_lock:
            if client_id not in self._client_locks:
                self._client_locks[client_id] = threading.Lock()
            return self._client_locks[client_id]

    def get_or_create_account(self, client_id: int) -> ClientAccount:
        """Get existing account or create new one."""
        with self._global_lock:
            if client_id not in self._accounts:
                self._accounts[client_id] = ClientAccount(client_id=client_id)
            return self._accounts[client_id]

    def get_all_accounts(self) -> Dict[int, ClientAccount]:
        """Return all accounts in first-seen order."""
        with self._global_lock:
            return dict(self._accounts)

    def snapshot(self) -> List[AccountSnapshot]:
        return [account.snapshot() for account in self.get_all_accounts().values()]
