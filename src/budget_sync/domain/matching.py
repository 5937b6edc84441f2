import datetime as dt
from dataclasses import dataclass
from typing import Protocol

from budget_sync.domain.dates import DateRange
from budget_sync.errors import InvalidArgumentError
from budget_sync.models import BankTransaction, LedgerTransaction, Money, ReconciliationStrategy

RANGE_TOLERANCE_DAYS = 3


class Reconcilable(Protocol):
    """The fields reconciliation compares on either side."""

    @property
    def id(self) -> str: ...

    @property
    def account_id(self) -> str: ...

    @property
    def date(self) -> dt.date: ...

    @property
    def amount(self) -> Money: ...


@dataclass(frozen=True)
class BankTransactionAdapter:
    transaction: BankTransaction

    @property
    def id(self) -> str:
        return self.transaction.id

    @property
    def account_id(self) -> str:
        return self.transaction.account_id

    @property
    def date(self) -> dt.date:
        return self.transaction.date

    @property
    def amount(self) -> Money:
        return self.transaction.amount


@dataclass(frozen=True)
class LedgerTransactionAdapter:
    transaction: LedgerTransaction

    @property
    def id(self) -> str:
        return self.transaction.id

    @property
    def account_id(self) -> str:
        return self.transaction.account_id

    @property
    def date(self) -> dt.date:
        return self.transaction.date

    @property
    def amount(self) -> Money:
        return self.transaction.amount


@dataclass(frozen=True)
class TransactionMatcher:
    """Decides whether a bank and a ledger transaction are the same movement.

    Amounts and accounts must be equal. STRICT requires the same calendar
    day; RANGE accepts dates up to ``tolerance_days`` apart.
    """

    strategy: ReconciliationStrategy
    tolerance_days: int = RANGE_TOLERANCE_DAYS

    def __post_init__(self) -> None:
        if self.tolerance_days < 0:
            raise InvalidArgumentError(f"Tolerance must be non-negative, got {self.tolerance_days}")

    def search_window(self, day: dt.date) -> DateRange:
        if self.strategy == ReconciliationStrategy.RANGE:
            return DateRange.days_around(day, self.tolerance_days, self.tolerance_days)
        return DateRange.single_day(day)

    def matches(self, bank: Reconcilable | None, ledger: Reconcilable | None) -> bool:
        if bank is None or ledger is None:
            return False
        if bank.amount != ledger.amount or bank.account_id != ledger.account_id:
            return False
        if self.strategy == ReconciliationStrategy.RANGE:
            return abs((bank.date - ledger.date).days) <= self.tolerance_days
        return bank.date == ledger.date


def create_matcher(
    strategy: ReconciliationStrategy | str,
    tolerance_days: int = RANGE_TOLERANCE_DAYS,
) -> TransactionMatcher:
    if strategy is None:
        raise InvalidArgumentError("Reconciliation strategy cannot be None")
    try:
        resolved = ReconciliationStrategy(strategy)
    except ValueError as exc:
        raise InvalidArgumentError(f"Unknown reconciliation strategy: {strategy!r}") from exc
    return TransactionMatcher(resolved, tolerance_days)
