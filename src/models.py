import threading
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal, Inexact, InvalidOperation, Rounded, localcontext
from enum import Enum
from typing import Dict, Iterator, Optional

from exceptions import InvariantViolationError

AMOUNT_PRECISION = Decimal("0.0001")
ZERO = Decimal("0")

# Largest single amount accepted. Keeps every balance well inside the 28 significant
# digits of the default decimal context.
MAX_AMOUNT = Decimal("1000000000000")


def parse_amount(text: str) -> Decimal:
    """
    Parse an amount with at most four decimal places.
    Raises ValueError for non-numeric, non-finite, over-precise or above-maximum values.
    """
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"not a decimal amount: {text!r}")

    if not amount.is_finite():
        raise ValueError(f"amount must be finite: {text!r}")

    if abs(amount) > MAX_AMOUNT:
        raise ValueError(f"amount exceeds maximum {MAX_AMOUNT}: {text!r}")

    try:
        quantized = amount.quantize(AMOUNT_PRECISION)
    except InvalidOperation:
        raise ValueError(f"amount out of range: {text!r}")

    if quantized != amount:
        raise ValueError(f"amount has more than 4 decimal places: {text!r}")

    return quantized


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"


class DisputeState(Enum):
    UNDISPUTED = "undisputed"
    DISPUTED = "disputed"
    CHARGED_BACK = "charged_back"


class ProcessingResult(Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"


class SkipReason(Enum):
    MISSING_AMOUNT = "missing_amount"
    INVALID_AMOUNT = "invalid_amount"
    ACCOUNT_LOCKED = "account_locked"
    DUPLICATE_TRANSACTION = "duplicate_transaction"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    UNKNOWN_TRANSACTION = "unknown_transaction"
    NOT_DISPUTABLE = "not_disputable"
    CLIENT_MISMATCH = "client_mismatch"
    ALREADY_DISPUTED = "already_disputed"
    NOT_DISPUTED = "not_disputed"
    CHARGED_BACK = "charged_back"


@dataclass(frozen=True)
class ProcessingOutcome:
    result: ProcessingResult
    reason: Optional[SkipReason] = None

    @classmethod
    def success(cls) -> "ProcessingOutcome":
        return cls(ProcessingResult.SUCCESS)

    @classmethod
    def skipped(cls, reason: SkipReason) -> "ProcessingOutcome":
        return cls(ProcessingResult.SKIPPED, reason)

    @property
    def applied(self) -> bool:
        return self.result == ProcessingResult.SUCCESS


@dataclass
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class LedgerEntry:
    """Retained record of an applied deposit, referenced by later disputes."""

    transaction_id: int
    client_id: int
    amount: Decimal
    state: DisputeState = DisputeState.UNDISPUTED

    @property
    def disputed(self) -> bool:
        return self.state == DisputeState.DISPUTED

    @property
    def charged_back(self) -> bool:
        return self.state == DisputeState.CHARGED_BACK


@dataclass(frozen=True)
class AccountSnapshot:
    client_id: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = ZERO
    held: Decimal = ZERO
    locked: bool = False

    @property
    def total(self) -> Decimal:
        with self._exact():
            return self.available + self.held

    def credit(self, amount: Decimal) -> None:
        with self._exact():
            self.available += amount

    def debit(self, amount: Decimal) -> None:
        self._check_covers("available", self.available, amount)
        with self._exact():
            self.available -= amount

    def hold(self, amount: Decimal) -> None:
        self._check_covers("available", self.available, amount)
        with self._exact():
            available = self.available - amount
            held = self.held + amount
        self.available, self.held = available, held

    def release_hold(self, amount: Decimal) -> None:
        self._check_covers("held", self.held, amount)
        with self._exact():
            held = self.held - amount
            available = self.available + amount
        self.available, self.held = available, held

    def remove_held(self, amount: Decimal) -> None:
        self._check_covers("held", self.held, amount)
        with self._exact():
            self.held -= amount

    def lock(self) -> None:
        self.locked = True

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(
            client_id=self.client_id,
            available=self.available,
            held=self.held,
            total=self.total,
            locked=self.locked,
        )

    def _check_covers(self, balance_name: str, balance: Decimal, amount: Decimal) -> None:
        # Callers check preconditions first; reaching this means the state machine is wrong.
        if balance < amount:
            raise InvariantViolationError(
                self.client_id,
                f"{balance_name} balance {balance} cannot cover {amount}",
            )

    @contextmanager
    def _exact(self) -> Iterator[None]:
        """Balance arithmetic must never round; a rounded result is an invariant violation."""
        with localcontext() as context:
            context.traps[Inexact] = True
            context.traps[Rounded] = True
            try:
                yield
            except (Inexact, Rounded):
                raise InvariantViolationError(
                    self.client_id,
                    "balance arithmetic exceeded decimal precision",
                )


class ProcessingStats:
    """Thread-safe counters for tracking processing statistics."""

    def __init__(self):
        self._lock = threading.Lock()
        self.processed = 0
        self.skipped = 0
        self.skip_reasons: Counter = Counter()

    def record(self, outcome: ProcessingOutcome) -> None:
        with self._lock:
            if outcome.applied:
                self.processed += 1
            else:
                self.skipped += 1
                self.skip_reasons[outcome.reason] += 1

    def as_dict(self) -> Dict[str, int]:
        with self._lock:
            summary = {"processed": self.processed, "skipped": self.skipped}
            for reason, count in self.skip_reasons.items():
                summary[reason.value] = count
            return summary
