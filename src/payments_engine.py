import logging
import threading
from typing import Iterable, List, Optional

from csv_adapter import read_transactions
from message_queue import InMemoryQueue
from models import AccountSnapshot, ProcessingStats, Transaction
from state_manager import StateManager
from transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)


class PaymentsEngine:
    """
    Folds a stream of transactions into per-client account state.

    With one worker (the default) transactions are applied on the calling
    thread in input order. With more workers, transactions are sharded by
    client id: each shard has its own queue and worker, so a client's
    transactions are still applied in input order while different clients
    proceed in parallel.
    """

    def __init__(self, num_workers: int = 1):
        if num_workers < 1:
            raise ValueError(f"num_workers must be at least 1, got {num_workers}")
        self._num_workers = num_workers
        self._state = StateManager()
        self._processor = TransactionProcessor(self._state)
        self._stats = ProcessingStats()

        self._abort_event = threading.Event()
        self._worker_error: Optional[BaseException] = None
        self._error_lock = threading.Lock()

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    def process_file(self, filepath: str) -> List[AccountSnapshot]:
        """Process CSV file and return final account snapshots."""
        with open(filepath, "r", newline="") as f:
            return self.process(read_transactions(f))

    def process(self, transactions: Iterable[Transaction]) -> List[AccountSnapshot]:
        """
        Apply every transaction and return the account snapshots.
        InvariantViolationError propagates to the caller and no snapshot is produced.
        """
        logger.info(f"Starting processing with {self._num_workers} worker(s)")

        if self._num_workers == 1:
            for transaction in transactions:
                self._apply(transaction)
        else:
            self._process_sharded(transactions)

        logger.info(f"Processing summary: {self._stats.as_dict()}")
        return self.snapshot()

    def snapshot(self) -> List[AccountSnapshot]:
        """Snapshot of every account, in the order clients were first seen."""
        return self._state.snapshot()

    def _apply(self, transaction: Transaction) -> None:
        outcome = self._processor.process_transaction(transaction)
        self._stats.record(outcome)

    def _process_sharded(self, transactions: Iterable[Transaction]) -> None:
        queues = [InMemoryQueue() for _ in range(self._num_workers)]
        workers = []
        for queue in queues:
            worker = threading.Thread(target=self._consume_transactions, args=(queue,))
            worker.start()
            workers.append(worker)

        try:
            for transaction in transactions:
                if self._abort_event.is_set():
                    break
                # Accounts are created here, in input order, so snapshots keep first-seen order.
                self._state.get_or_create_account(transaction.client_id)
                queues[transaction.client_id % self._num_workers].publish_message(transaction)
        finally:
            for queue in queues:
                queue.shutdown()
            for worker in workers:
                worker.join()

        if self._worker_error is not None:
            raise self._worker_error

    def _consume_transactions(self, queue: InMemoryQueue) -> None:
        """Worker loop: pull from this shard's queue and apply under the client lock."""
        while not self._abort_event.is_set():
            transaction = queue.consume_message()
            if transaction is None:
                if queue.is_drained():
                    break
                continue

            try:
                with self._state.get_client_lock(transaction.client_id):
                    self._apply(transaction)
            except Exception as e:
                logger.error(f"Worker stopped on {transaction}: {e}")
                with self._error_lock:
                    if self._worker_error is None:
                        self._worker_error = e
                self._abort_event.set()
