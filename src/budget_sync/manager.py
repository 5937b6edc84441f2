import datetime as dt
import os
from collections.abc import Sequence

from budget_sync.core import settings
from budget_sync.core.configuration import Thresholds
from budget_sync.domain.matching import create_matcher
from budget_sync.domain.patterns import TransactionPattern
from budget_sync.errors import require
from budget_sync.logger import get_logger
from budget_sync.models import (
    BankTransaction,
    Category,
    CategoryInferenceResult,
    CategoryMapping,
    LedgerCategory,
    LedgerTransaction,
    ReconciliationRequest,
    ReconciliationResult,
    ReconciliationStrategy,
    ReconciliationSummary,
    TransactionMatchResult,
)
from budget_sync.repositories.base import (
    BankTransactionRepository,
    CategoryCatalogRepository,
    CategoryMappingRepository,
    LedgerTransactionRepository,
)
from budget_sync.repositories.memory import (
    InMemoryBankTransactionRepository,
    InMemoryCategoryCatalogRepository,
    InMemoryLedgerTransactionRepository,
    JsonCategoryMappingRepository,
)
from budget_sync.services.inference import CategoryInferenceService
from budget_sync.services.learning import (
    SaveCategoryMappingsRequest,
    SaveCategoryMappingsResponse,
    SaveCategoryMappingsUseCase,
)
from budget_sync.services.reconciliation import TransactionReconciliationService

logger = get_logger(__name__)


class SyncService:
    def __init__(
        self,
        thresholds: Thresholds | None = None,
        data_dir: str | None = None,
        mappings: CategoryMappingRepository | None = None,
        ledger: LedgerTransactionRepository | None = None,
        bank: BankTransactionRepository | None = None,
        catalog: CategoryCatalogRepository | None = None,
    ) -> None:
        if thresholds is None:
            settings.log_environment()
            thresholds = Thresholds.from_env()
        self.thresholds = thresholds

        # Pattern dictionary, persisted under the data directory unless injected
        if mappings is None:
            data_dir = data_dir or settings.get_data_dir()
            mappings = JsonCategoryMappingRepository(os.path.join(data_dir, settings.MAPPINGS_FILENAME))
        self.mappings = mappings

        self.ledger = ledger or InMemoryLedgerTransactionRepository()
        self.bank = bank or InMemoryBankTransactionRepository()
        self.catalog = catalog or InMemoryCategoryCatalogRepository()

        self.reconciliation = TransactionReconciliationService()
        self.inference = CategoryInferenceService(self.thresholds)
        self.learning = SaveCategoryMappingsUseCase(self.mappings, self.thresholds)

    def reconcile(
        self,
        bank_transactions: Sequence[BankTransaction],
        ledger_transactions: Sequence[LedgerTransaction],
        strategy: ReconciliationStrategy | str = ReconciliationStrategy.STRICT,
    ) -> TransactionMatchResult:
        matcher = create_matcher(strategy, self.thresholds.range_tolerance_days)
        return self.reconciliation.reconcile_transactions(bank_transactions, ledger_transactions, matcher)

    def infer_category(
        self,
        transaction: BankTransaction,
        categories: Sequence[LedgerCategory],
        learned_mappings: Sequence[CategoryMapping] | None = None,
    ) -> CategoryInferenceResult | None:
        """Suggest a category; learned mappings come from the dictionary when not given."""
        require(transaction, "transaction")
        if learned_mappings is None:
            pattern = TransactionPattern.try_from_bank_transaction(transaction)
            learned_mappings = self.mappings.find_mappings_overlapping_pattern(pattern) if pattern is not None else []

        result = self.inference.analyze_transaction(transaction, categories, learned_mappings)
        if result:
            logger.debug(
                "[INFER] '%s' -> '%s' (confidence: %.2f)",
                transaction.display_name[:50],
                result.category.name,
                result.confidence,
            )
        else:
            logger.debug("[INFER] No category for '%s'", transaction.display_name[:50])
        return result

    def save_learned_mappings(self, candidates: Sequence[CategoryMapping]) -> SaveCategoryMappingsResponse:
        request = SaveCategoryMappingsRequest(mappings=list(require(candidates, "candidates")))
        return self.learning.save_category_mappings(request)

    def learn(self, transaction: BankTransaction, category: Category) -> SaveCategoryMappingsResponse:
        """Record a confirmed categorization as a learned mapping."""
        pattern = TransactionPattern.from_bank_transaction(transaction)
        return self.save_learned_mappings([CategoryMapping.from_successful_match(pattern, category)])

    def clear_mappings(self) -> None:
        self.mappings.clear()
        logger.info("[LEARN] All learned mappings cleared.")

    def reconcile_account(self, request: ReconciliationRequest) -> ReconciliationResult:
        require(request, "request")
        matcher = create_matcher(request.strategy, self.thresholds.range_tolerance_days)

        ledger_transactions = self.ledger.find_by_account_and_date_range(
            request.account_id, request.from_date, request.to_date
        )
        bank_transactions = self.bank.find_by_account_and_date_range(
            request.account_id, request.from_date, request.to_date
        )
        logger.info(
            "[RECONCILE] Account %s, %s to %s (%s): %d bank, %d ledger transactions.",
            request.account_id,
            request.from_date,
            request.to_date,
            request.strategy.value,
            len(bank_transactions),
            len(ledger_transactions),
        )

        enriched = self._enrich_with_categories(bank_transactions)
        match_result = self.reconciliation.reconcile_transactions(enriched, ledger_transactions, matcher)

        summary = ReconciliationSummary(
            account_id=request.account_id,
            reconciliation_date=dt.date.today(),
            from_date=request.from_date,
            to_date=request.to_date,
            strategy=request.strategy,
            total_bank_transactions=len(enriched),
            total_ledger_transactions=len(ledger_transactions),
            matched_transactions=match_result.matched_count,
            missing_from_ledger=match_result.missing_count,
        )
        logger.info(
            "[RECONCILE] Matched %d of %d (%.1f%%).",
            summary.matched_transactions,
            summary.total_bank_transactions,
            summary.reconciliation_percentage,
        )
        return ReconciliationResult(
            missing_from_ledger=match_result.missing,
            matched=match_result.matched,
            summary=summary,
        )

    def _enrich_with_categories(self, transactions: list[BankTransaction]) -> list[BankTransaction]:
        pending = [t for t in transactions if not t.has_category_inferred]
        if not pending:
            return list(transactions)

        try:
            categories = self.catalog.find_all_available_categories()
        except Exception as exc:
            logger.error("[RECONCILE] Could not load category catalog: %s", exc)
            return list(transactions)

        enriched: list[BankTransaction] = []
        for transaction in transactions:
            enriched.append(self._infer_if_needed(transaction, categories))
        return enriched

    def _infer_if_needed(self, transaction: BankTransaction, categories: list[LedgerCategory]) -> BankTransaction:
        if transaction.has_category_inferred:
            return transaction
        try:
            result = self.inference.analyze_against_catalog(transaction, categories)
        except Exception as exc:
            logger.error("[RECONCILE] Failed to infer category for transaction %s: %s", transaction.id, exc)
            return transaction
        if result is not None and result.has_match:
            return transaction.with_inferred_category(result.category)
        return transaction
