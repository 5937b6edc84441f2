from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt

from budget_sync.domain.patterns import TransactionPattern
from budget_sync.errors import require
from budget_sync.logger import get_logger
from budget_sync.models import BankTransaction, CategoryInferenceResult
from budget_sync.repositories.base import (
    BankTransactionRepository,
    CategoryCatalogRepository,
    CategoryMappingRepository,
)
from budget_sync.services.inference import CategoryInferenceService

logger = get_logger(__name__)


class TransactionCategoryResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction_id: str
    successful: bool
    result: CategoryInferenceResult | None = None

    @classmethod
    def success(cls, transaction_id: str, result: CategoryInferenceResult) -> "TransactionCategoryResult":
        return cls(transaction_id=transaction_id, successful=True, result=result)

    @classmethod
    def failure(cls, transaction_id: str) -> "TransactionCategoryResult":
        return cls(transaction_id=transaction_id, successful=False)


class CategoryInferenceResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    results: list[TransactionCategoryResult] = Field(default_factory=list)
    processed_count: NonNegativeInt = 0
    successful: NonNegativeInt = 0
    failed: NonNegativeInt = 0

    @property
    def success_rate(self) -> float:
        if self.processed_count == 0:
            return 0.0
        return self.successful / self.processed_count

    @property
    def all_successful(self) -> bool:
        return self.failed == 0


class InferTransactionCategoriesUseCase:
    """Read-only batch inference for stored bank transactions."""

    def __init__(
        self,
        bank_transactions: BankTransactionRepository,
        catalog: CategoryCatalogRepository,
        mappings: CategoryMappingRepository,
        inference: CategoryInferenceService | None = None,
    ) -> None:
        self.bank_transactions = bank_transactions
        self.catalog = catalog
        self.mappings = mappings
        self.inference = inference or CategoryInferenceService()

    def infer_categories(self, transaction_ids: Iterable[str]) -> CategoryInferenceResponse:
        require(transaction_ids, "transaction_ids")
        transactions = self.bank_transactions.find_by_ids(list(transaction_ids))
        categories = self.catalog.find_all_available_categories()

        results = [self._infer_one(transaction, categories) for transaction in transactions]
        successful = sum(1 for r in results if r.successful)

        logger.info(
            "[INFER] Processed %d transactions. Successful: %d, Failed: %d",
            len(results),
            successful,
            len(results) - successful,
        )
        return CategoryInferenceResponse(
            results=results,
            processed_count=len(results),
            successful=successful,
            failed=len(results) - successful,
        )

    def _infer_one(self, transaction: BankTransaction, categories) -> TransactionCategoryResult:
        if transaction.has_category_inferred:
            return TransactionCategoryResult.success(
                transaction.id,
                CategoryInferenceResult.match(transaction.inferred_category, 1.0, "Previously inferred"),
            )

        pattern = TransactionPattern.try_from_bank_transaction(transaction)
        learned = self.mappings.find_mappings_overlapping_pattern(pattern) if pattern is not None else []
        result = self.inference.analyze_transaction(transaction, categories, learned)
        if result is not None and result.has_match:
            return TransactionCategoryResult.success(transaction.id, result)
        return TransactionCategoryResult.failure(transaction.id)
