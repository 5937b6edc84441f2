from collections.abc import Sequence

from budget_sync.core.configuration import DEFAULT_THRESHOLDS, Thresholds
from budget_sync.domain.patterns import MIN_TOKEN_LENGTH, TransactionPattern
from budget_sync.errors import require
from budget_sync.logger import get_logger
from budget_sync.models import BankTransaction, CategoryInferenceResult, CategoryMapping, LedgerCategory

logger = get_logger(__name__)

DESCRIPTION_WEIGHT = 0.9
EXPENSE_PATTERN_WEIGHT = 0.8


class CategoryInferenceService:
    """Suggests a category for a bank transaction.

    Learned mappings are tried first. When none shares a token with the
    transaction, every catalog category is scored by text similarity and
    the best score is returned at a discount.
    """

    def __init__(self, thresholds: Thresholds | None = None) -> None:
        self.thresholds = thresholds or DEFAULT_THRESHOLDS

    def analyze_transaction(
        self,
        transaction: BankTransaction,
        available_categories: Sequence[LedgerCategory],
        learned_mappings: Sequence[CategoryMapping],
    ) -> CategoryInferenceResult | None:
        require(transaction, "transaction")
        require(available_categories, "available_categories")
        if not available_categories:
            return None

        pattern = TransactionPattern.try_from_bank_transaction(transaction)
        if pattern is not None:
            exact = self._try_exact_match(pattern, learned_mappings or ())
            if exact is not None:
                logger.debug("[INFER] %s: %s", transaction.id, exact.reasoning)
                return exact

        best = self._best_similarity_match(transaction, available_categories)
        if best is None:
            logger.debug("[INFER] %s: no category above %.2f", transaction.id, self.thresholds.min_inference_confidence)
            return None

        return CategoryInferenceResult.match(
            best.category,
            best.confidence * self.thresholds.fallback_discount,
            "Fallback similarity match: " + best.reasoning,
        )

    def analyze_against_catalog(
        self,
        transaction: BankTransaction,
        available_categories: Sequence[LedgerCategory],
    ) -> CategoryInferenceResult | None:
        """Similarity-only analysis, without learned mappings or discount."""
        require(transaction, "transaction")
        require(available_categories, "available_categories")
        if not available_categories:
            return None
        return self._best_similarity_match(transaction, available_categories)

    def _try_exact_match(
        self,
        pattern: TransactionPattern,
        learned_mappings: Sequence[CategoryMapping],
    ) -> CategoryInferenceResult | None:
        if not pattern.has_content or not learned_mappings:
            return None

        best: CategoryMapping | None = None
        for mapping in learned_mappings:
            if not mapping.has_exact_match(pattern, self.thresholds.pattern_min_overlap):
                continue
            # Strict comparison keeps the earliest mapping on ties
            if best is None or (mapping.confidence, mapping.occurrence_count) > (
                best.confidence,
                best.occurrence_count,
            ):
                best = mapping

        if best is None:
            return None

        return CategoryInferenceResult.match(
            best.category,
            min(1.0, best.confidence + self.thresholds.learned_mapping_boost),
            "Exact pattern match (seen %d times, %d patterns, confidence: %.2f)"
            % (best.occurrence_count, best.pattern_count, best.confidence),
        )

    def _best_similarity_match(
        self,
        transaction: BankTransaction,
        categories: Sequence[LedgerCategory],
    ) -> CategoryInferenceResult | None:
        minimum = self.thresholds.min_inference_confidence
        best: CategoryInferenceResult | None = None
        for category in categories:
            for candidate in (
                self._merchant_name_match(transaction, category),
                self._description_match(transaction, category),
                self._expense_pattern_match(transaction, category),
            ):
                if candidate is None or candidate.confidence < minimum:
                    continue
                if best is None or candidate.confidence > best.confidence:
                    best = candidate
        return best

    def _merchant_name_match(
        self, transaction: BankTransaction, category: LedgerCategory
    ) -> CategoryInferenceResult | None:
        merchant = (transaction.merchant_name or "").lower().strip()
        if len(merchant) < MIN_TOKEN_LENGTH:
            return None
        similarity = category.similarity_score(merchant)
        if similarity < self.thresholds.min_inference_confidence:
            return None
        return CategoryInferenceResult.match(
            category.to_category(), similarity, "Merchant name match: " + transaction.merchant_name
        )

    def _description_match(
        self, transaction: BankTransaction, category: LedgerCategory
    ) -> CategoryInferenceResult | None:
        description = (transaction.description or "").lower().strip()
        if len(description) < MIN_TOKEN_LENGTH:
            return None
        similarity = category.similarity_score(description)
        if similarity < self.thresholds.min_inference_confidence:
            return None
        return CategoryInferenceResult.match(
            category.to_category(),
            similarity * DESCRIPTION_WEIGHT,
            "Description match: " + transaction.description,
        )

    def _expense_pattern_match(
        self, transaction: BankTransaction, category: LedgerCategory
    ) -> CategoryInferenceResult | None:
        search_text = _search_text(transaction)
        if len(search_text) < MIN_TOKEN_LENGTH:
            return None
        if not any(keyword.strip() and keyword in search_text for keyword in category.inference_keywords):
            return None
        return CategoryInferenceResult.match(
            category.to_category(),
            category.similarity_score(search_text) * EXPENSE_PATTERN_WEIGHT,
            "Expense pattern match",
        )


def _search_text(transaction: BankTransaction) -> str:
    parts = [
        text
        for text in (transaction.merchant_name, transaction.description)
        if text and text.strip()
    ]
    return " ".join(parts).lower().strip()
