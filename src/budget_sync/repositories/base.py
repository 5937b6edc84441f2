from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import date

from budget_sync.domain.patterns import TransactionPattern
from budget_sync.models import BankTransaction, Category, CategoryMapping, LedgerCategory, LedgerTransaction


class LedgerTransactionRepository(ABC):
    @abstractmethod
    def find_by_account_and_date_range(
        self, account_id: str, from_date: date, to_date: date
    ) -> list[LedgerTransaction]:
        """Ledger transactions of an account dated within [from_date, to_date]."""
        pass


class BankTransactionRepository(ABC):
    @abstractmethod
    def find_by_account_and_date_range(
        self, account_id: str, from_date: date, to_date: date
    ) -> list[BankTransaction]:
        """Bank transactions of an account dated within [from_date, to_date]."""
        pass

    @abstractmethod
    def find_by_ids(self, transaction_ids: Iterable[str]) -> list[BankTransaction]:
        pass


class CategoryCatalogRepository(ABC):
    @abstractmethod
    def find_all_available_categories(self) -> list[LedgerCategory]:
        """Catalog entries that are neither hidden nor deleted."""
        pass


class CategoryMappingRepository(ABC):
    @abstractmethod
    def find_mappings_overlapping_pattern(self, pattern: TransactionPattern) -> list[CategoryMapping]:
        """Stored mappings sharing at least one token with the pattern."""
        pass

    @abstractmethod
    def save(self, mapping: CategoryMapping) -> CategoryMapping:
        """Insert or replace a mapping by id."""
        pass

    @abstractmethod
    def find_mappings_for_category(self, category: Category) -> list[CategoryMapping]:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    def find_best_mapping_for_pattern(self, pattern: TransactionPattern) -> CategoryMapping | None:
        candidates = self.find_mappings_overlapping_pattern(pattern)
        if not candidates:
            return None
        return max(candidates, key=lambda m: (m.confidence, m.occurrence_count))

    def save_all(self, mappings: Iterable[CategoryMapping]) -> list[CategoryMapping]:
        return [self.save(mapping) for mapping in mappings]
