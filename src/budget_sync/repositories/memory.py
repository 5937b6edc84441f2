import json
import os
import threading
from collections.abc import Iterable
from datetime import date

from pydantic import TypeAdapter, ValidationError

from budget_sync.core import settings
from budget_sync.domain.patterns import TransactionPattern
from budget_sync.errors import InvalidArgumentError, RepositoryError
from budget_sync.logger import get_logger
from budget_sync.models import BankTransaction, Category, CategoryMapping, LedgerCategory, LedgerTransaction
from budget_sync.repositories.base import (
    BankTransactionRepository,
    CategoryCatalogRepository,
    CategoryMappingRepository,
    LedgerTransactionRepository,
)

logger = get_logger(__name__)

_MAPPING_LIST = TypeAdapter(list[CategoryMapping])


def _ranked(mappings: Iterable[CategoryMapping]) -> list[CategoryMapping]:
    return sorted(mappings, key=lambda m: (-m.confidence, -m.occurrence_count))


class InMemoryCategoryMappingRepository(CategoryMappingRepository):
    """Pattern dictionary held in a dict keyed by mapping id.

    Query results are ordered by confidence, then occurrence count, both
    descending. Writes replace by id, so the last writer wins.
    """

    def __init__(self, mappings: Iterable[CategoryMapping] | None = None) -> None:
        self._lock = threading.RLock()
        self._mappings: dict[str, CategoryMapping] = {}
        for mapping in mappings or ():
            self._mappings[mapping.id] = mapping

    def find_mappings_overlapping_pattern(self, pattern: TransactionPattern) -> list[CategoryMapping]:
        if pattern is None:
            raise InvalidArgumentError("Pattern cannot be None")
        with self._lock:
            found = [m for m in self._mappings.values() if m.overlap_count(pattern.text_patterns) > 0]
        return _ranked(found)

    def find_mappings_for_category(self, category: Category) -> list[CategoryMapping]:
        if category is None:
            raise InvalidArgumentError("Category cannot be None")
        with self._lock:
            found = [m for m in self._mappings.values() if m.category == category]
        return _ranked(found)

    def find_all(self) -> list[CategoryMapping]:
        with self._lock:
            return _ranked(self._mappings.values())

    def save(self, mapping: CategoryMapping) -> CategoryMapping:
        if mapping is None:
            raise InvalidArgumentError("Mapping cannot be None")
        with self._lock:
            self._mappings[mapping.id] = mapping
        return mapping

    def clear(self) -> None:
        with self._lock:
            self._mappings.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._mappings)


class JsonCategoryMappingRepository(InMemoryCategoryMappingRepository):
    """The in-memory dictionary, written through to a JSON file on every save."""

    def __init__(self, data_path: str | None = None) -> None:
        super().__init__()
        self.data_path = data_path or settings.get_mappings_path()
        self.load()

    def load(self) -> None:
        if not os.path.exists(self.data_path):
            return
        try:
            with open(self.data_path, encoding="utf-8") as f:
                mappings = _MAPPING_LIST.validate_python(json.load(f))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.error("[REPO] Ignoring unreadable mappings file %s: %s", self.data_path, exc)
            mappings = []
        with self._lock:
            self._mappings = {m.id: m for m in mappings}
        logger.info("[REPO] Loaded %d category mappings from %s", len(self._mappings), self.data_path)

    def _write(self, mappings: dict[str, CategoryMapping]) -> None:
        payload = _MAPPING_LIST.dump_python(list(mappings.values()), mode="json")
        try:
            with open(self.data_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        except OSError as exc:
            raise RepositoryError(f"Could not write mappings to {self.data_path}: {exc}") from exc

    def save(self, mapping: CategoryMapping) -> CategoryMapping:
        if mapping is None:
            raise InvalidArgumentError("Mapping cannot be None")
        with self._lock:
            # Memory only changes once the file holds the new state
            self._write({**self._mappings, mapping.id: mapping})
            self._mappings[mapping.id] = mapping
        return mapping

    def clear(self) -> None:
        with self._lock:
            self._write({})
            self._mappings.clear()
        logger.info("[REPO] Cleared category mappings in %s", self.data_path)


class InMemoryLedgerTransactionRepository(LedgerTransactionRepository):
    def __init__(self, transactions: Iterable[LedgerTransaction] | None = None) -> None:
        self.transactions = list(transactions or ())

    def add(self, transaction: LedgerTransaction) -> None:
        self.transactions.append(transaction)

    def find_by_account_and_date_range(
        self, account_id: str, from_date: date, to_date: date
    ) -> list[LedgerTransaction]:
        return [
            t
            for t in self.transactions
            if t.account_id == account_id and from_date <= t.date <= to_date
        ]


class InMemoryBankTransactionRepository(BankTransactionRepository):
    def __init__(self, transactions: Iterable[BankTransaction] | None = None) -> None:
        self.transactions = list(transactions or ())

    def add(self, transaction: BankTransaction) -> None:
        self.transactions.append(transaction)

    def find_by_account_and_date_range(
        self, account_id: str, from_date: date, to_date: date
    ) -> list[BankTransaction]:
        return [
            t
            for t in self.transactions
            if t.account_id == account_id and from_date <= t.date <= to_date
        ]

    def find_by_ids(self, transaction_ids: Iterable[str]) -> list[BankTransaction]:
        by_id = {t.id: t for t in self.transactions}
        return [by_id[tx_id] for tx_id in transaction_ids if tx_id in by_id]


class InMemoryCategoryCatalogRepository(CategoryCatalogRepository):
    def __init__(self, categories: Iterable[LedgerCategory] | None = None) -> None:
        self.categories = list(categories or ())

    def find_all_available_categories(self) -> list[LedgerCategory]:
        return [c for c in self.categories if c.is_available_for_inference]
