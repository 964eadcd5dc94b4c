import logging
from typing import Optional, Tuple

from exceptions import DuplicateTransactionError
from models import (
    ClientAccount,
    LedgerEntry,
    MAX_AMOUNT,
    ProcessingOutcome,
    SkipReason,
    Transaction,
    TransactionType,
    ZERO,
)
from state_manager import StateManager

logger = logging.getLogger(__name__)


class TransactionProcessor:
    """
    Applies one transaction at a time to the account and ledger state.

    Every transition checks its preconditions first. A failed precondition
    leaves all state untouched and comes back as a SKIPPED outcome carrying
    the reason; it is never raised. InvariantViolationError from the account
    is the only exception that escapes, and it means the run must stop.
    Caller is responsible for holding the client lock in sharded mode.
    """

    def __init__(self, state: StateManager):
        self._state = state

    def process_transaction(self, transaction: Transaction) -> ProcessingOutcome:
        """
        Process a single transaction.

        Returns:
            SUCCESS: the transition was applied
            SKIPPED: a precondition failed; reason says which
        """
        account = self._state.get_or_create_account(transaction.client_id)

        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                return self._handle_deposit(account, transaction)
            case TransactionType.WITHDRAWAL:
                return self._handle_withdrawal(account, transaction)
            case TransactionType.DISPUTE:
                return self._handle_dispute(account, transaction)
            case TransactionType.RESOLVE:
                return self._handle_resolve(account, transaction)
            case TransactionType.CHARGEBACK:
                return self._handle_chargeback(account, transaction)

        raise ValueError(f"Unhandled transaction type: {transaction.transaction_type}")

    def _handle_deposit(self, account: ClientAccount, transaction: Transaction) -> ProcessingOutcome:
        reason = self._check_amount(account, transaction)
        if reason is not None:
            return ProcessingOutcome.skipped(reason)

        try:
            self._state.ledger.record(transaction.transaction_id, account.client_id, transaction.amount)
        except DuplicateTransactionError:
            logger.info(f"Deposit tx {transaction.transaction_id}: id already used, skipping")
            return ProcessingOutcome.skipped(SkipReason.DUPLICATE_TRANSACTION)

        account.credit(transaction.amount)
        return ProcessingOutcome.success()

    def _handle_withdrawal(self, account: ClientAccount, transaction: Transaction) -> ProcessingOutcome:
        reason = self._check_amount(account, transaction)
        if reason is not None:
            return ProcessingOutcome.skipped(reason)

        if account.available < transaction.amount:
            logger.warning(
                f"Withdrawal tx {transaction.transaction_id}: insufficient funds "
                f"(available {account.available}, requested {transaction.amount})"
            )
            return ProcessingOutcome.skipped(SkipReason.INSUFFICIENT_FUNDS)

        try:
            self._state.ledger.record_withdrawal(transaction.transaction_id)
        except DuplicateTransactionError:
            logger.info(f"Withdrawal tx {transaction.transaction_id}: id already used, skipping")
            return ProcessingOutcome.skipped(SkipReason.DUPLICATE_TRANSACTION)

        account.debit(transaction.amount)
        return ProcessingOutcome.success()

    def _handle_dispute(self, account: ClientAccount, transaction: Transaction) -> ProcessingOutcome:
        entry, reason = self._find_entry(transaction)
        if reason is not None:
            return ProcessingOutcome.skipped(reason)

        if account.locked:
            logger.warning(f"Dispute for tx {transaction.transaction_id}: account {account.client_id} is locked")
            return ProcessingOutcome.skipped(SkipReason.ACCOUNT_LOCKED)

        if entry.disputed:
            logger.warning(f"Dispute for tx {transaction.transaction_id}: transaction already disputed")
            return ProcessingOutcome.skipped(SkipReason.ALREADY_DISPUTED)

        if entry.charged_back:
            logger.warning(f"Dispute for tx {transaction.transaction_id}: transaction already charged back")
            return ProcessingOutcome.skipped(SkipReason.CHARGED_BACK)

        # Funds from this deposit may already have been withdrawn.
        if account.available < entry.amount:
            logger.warning(
                f"Dispute for tx {transaction.transaction_id}: available {account.available} "
                f"cannot cover disputed amount {entry.amount}"
            )
            return ProcessingOutcome.skipped(SkipReason.INSUFFICIENT_FUNDS)

        account.hold(entry.amount)
        self._state.ledger.mark_disputed(entry.transaction_id, True)
        return ProcessingOutcome.success()

    def _handle_resolve(self, account: ClientAccount, transaction: Transaction) -> ProcessingOutcome:
        entry, reason = self._find_entry(transaction)
        if reason is None:
            reason = self._check_disputed(entry, "Resolve")
        if reason is not None:
            return ProcessingOutcome.skipped(reason)

        account.release_hold(entry.amount)
        self._state.ledger.mark_disputed(entry.transaction_id, False)
        return ProcessingOutcome.success()

    def _handle_chargeback(self, account: ClientAccount, transaction: Transaction) -> ProcessingOutcome:
        entry, reason = self._find_entry(transaction)
        if reason is None:
            reason = self._check_disputed(entry, "Chargeback")
        if reason is not None:
            return ProcessingOutcome.skipped(reason)

        account.remove_held(entry.amount)
        account.lock()
        self._state.ledger.mark_charged_back(entry.transaction_id)
        logger.info(f"Chargeback for tx {transaction.transaction_id}: account {account.client_id} locked")
        return ProcessingOutcome.success()

    def _check_amount(self, account: ClientAccount, transaction: Transaction) -> Optional[SkipReason]:
        """Shared preconditions of deposits and withdrawals."""
        label = transaction.transaction_type.value.capitalize()
        tx_id = transaction.transaction_id

        if transaction.amount is None:
            logger.warning(f"{label} tx {tx_id}: missing amount")
            return SkipReason.MISSING_AMOUNT

        if transaction.amount <= ZERO or transaction.amount > MAX_AMOUNT:
            logger.warning(f"{label} tx {tx_id}: invalid amount {transaction.amount}")
            return SkipReason.INVALID_AMOUNT

        if tx_id in self._state.ledger:
            logger.info(f"{label} tx {tx_id}: id already used, skipping")
            return SkipReason.DUPLICATE_TRANSACTION

        if account.locked:
            logger.warning(f"{label} tx {tx_id}: account {account.client_id} is locked")
            return SkipReason.ACCOUNT_LOCKED

        return None

    def _find_entry(self, transaction: Transaction) -> Tuple[Optional[LedgerEntry], Optional[SkipReason]]:
        """Look up the deposit a dispute, resolve or chargeback refers to."""
        label = transaction.transaction_type.value.capitalize()
        tx_id = transaction.transaction_id
        entry = self._state.ledger.lookup(tx_id)

        if entry is None:
            if self._state.ledger.is_withdrawal(tx_id):
                logger.warning(f"{label} for tx {tx_id}: only deposits can be disputed")
                return None, SkipReason.NOT_DISPUTABLE
            logger.warning(f"{label} for tx {tx_id}: transaction not found")
            return None, SkipReason.UNKNOWN_TRANSACTION

        if entry.client_id != transaction.client_id:
            logger.warning(
                f"{label} for tx {tx_id}: client mismatch "
                f"(expected {entry.client_id}, got {transaction.client_id})"
            )
            return None, SkipReason.CLIENT_MISMATCH

        return entry, None

    def _check_disputed(self, entry: LedgerEntry, label: str) -> Optional[SkipReason]:
        if entry.charged_back:
            logger.warning(f"{label} for tx {entry.transaction_id}: transaction already charged back")
            return SkipReason.CHARGED_BACK

        if not entry.disputed:
            logger.warning(f"{label} for tx {entry.transaction_id}: transaction is not disputed")
            return SkipReason.NOT_DISPUTED

        return None
