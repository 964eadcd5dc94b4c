"""
Errors raised by the ledger.

PaymentsError (base)
    DuplicateTransactionError  - a deposit or withdrawal reuses a tx id
    TransactionNotFoundError   - a state change names an unknown tx id
    InvariantViolationError    - a balance would go negative after preconditions passed (fatal)
"""


class PaymentsError(Exception):
    """Base exception for all ledger errors."""


class DuplicateTransactionError(PaymentsError):
    def __init__(self, transaction_id: int):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} already recorded")


class TransactionNotFoundError(PaymentsError):
    def __init__(self, transaction_id: int):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found in ledger")


class InvariantViolationError(PaymentsError):
    """
    Raised when an account balance would become negative even though every
    precondition of the transition held. This indicates a defect in the
    state machine rather than bad input, so the run must stop.
    """

    def __init__(self, client_id: int, detail: str):
        self.client_id = client_id
        self.detail = detail
        super().__init__(f"Invariant violated for client {client_id}: {detail}")
