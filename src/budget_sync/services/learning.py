from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, model_validator

from budget_sync.core.configuration import DEFAULT_THRESHOLDS, Thresholds
from budget_sync.domain.patterns import MIN_TOKEN_LENGTH, TransactionPattern
from budget_sync.errors import require
from budget_sync.logger import get_logger
from budget_sync.models import CategoryMapping
from budget_sync.repositories.base import CategoryMappingRepository

logger = get_logger(__name__)

MAX_MAPPINGS_PER_REQUEST = 500
GENERIC_PATTERNS = frozenset({"pos", "atm", "fee", "inc", "llc", "ltd"})


class SaveCategoryMappingsRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    mappings: list[CategoryMapping] = Field(min_length=1, max_length=MAX_MAPPINGS_PER_REQUEST)

    @property
    def mapping_count(self) -> int:
        return len(self.mappings)


class SaveCategoryMappingsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_requested: NonNegativeInt
    saved_new: NonNegativeInt
    updated_existing: NonNegativeInt
    skipped: NonNegativeInt
    saved_mappings: list[CategoryMapping] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_counts(self) -> "SaveCategoryMappingsResponse":
        processed = self.saved_new + self.updated_existing + self.skipped
        if self.total_requested != processed:
            raise ValueError(f"Inconsistent counts: requested {self.total_requested}, processed {processed}")
        return self

    @classmethod
    def success(
        cls,
        total_requested: int,
        saved_new: int,
        updated_existing: int,
        saved_mappings: list[CategoryMapping],
    ) -> "SaveCategoryMappingsResponse":
        return cls(
            total_requested=total_requested,
            saved_new=saved_new,
            updated_existing=updated_existing,
            skipped=0,
            saved_mappings=saved_mappings,
        )

    @classmethod
    def partial_success(
        cls,
        total_requested: int,
        saved_new: int,
        updated_existing: int,
        skipped: int,
        saved_mappings: list[CategoryMapping],
        warnings: list[str],
    ) -> "SaveCategoryMappingsResponse":
        return cls(
            total_requested=total_requested,
            saved_new=saved_new,
            updated_existing=updated_existing,
            skipped=skipped,
            saved_mappings=saved_mappings,
            warnings=warnings,
        )

    @classmethod
    def failure(cls, total_requested: int, errors: list[str]) -> "SaveCategoryMappingsResponse":
        return cls(
            total_requested=total_requested,
            saved_new=0,
            updated_existing=0,
            skipped=total_requested,
            errors=errors,
        )

    @property
    def is_complete_success(self) -> bool:
        return self.skipped == 0 and not self.warnings and not self.errors

    @property
    def has_successful_operations(self) -> bool:
        return self.saved_new > 0 or self.updated_existing > 0

    @property
    def total_processed(self) -> int:
        return self.saved_new + self.updated_existing + self.skipped

    @property
    def total_persisted(self) -> int:
        return self.saved_new + self.updated_existing

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def status(self) -> Literal["success", "partial_success", "failure"]:
        if self.errors:
            return "failure"
        if self.warnings or self.skipped:
            return "partial_success"
        return "success"


class _Action(str, Enum):
    SAVE_NEW = "save_new"
    UPDATE_EXISTING = "update_existing"
    SKIP = "skip"


class SaveCategoryMappingsUseCase:
    """Merges candidate mappings into the pattern dictionary.

    A candidate sharing tokens with an entry of the same category is folded
    into it. One that substantially overlaps an entry of another category is
    skipped for review. Anything else is stored as a new entry.
    """

    def __init__(self, repository: CategoryMappingRepository, thresholds: Thresholds | None = None) -> None:
        self.repository = require(repository, "repository")
        self.thresholds = thresholds or DEFAULT_THRESHOLDS

    def save_category_mappings(self, request: SaveCategoryMappingsRequest) -> SaveCategoryMappingsResponse:
        require(request, "request")
        total = request.mapping_count

        saved_mappings: list[CategoryMapping] = []
        warnings: list[str] = []
        saved_new = 0
        updated_existing = 0
        skipped = 0

        for mapping in request.mappings:
            try:
                action, resolved, reason = self._process_mapping(mapping)
                if action == _Action.SKIP:
                    skipped += 1
                    warnings.append(reason)
                    logger.warning("[LEARN] Skipped mapping %s: %s", mapping.id, reason)
                    continue
                saved_mappings.append(self.repository.save(resolved))
            except Exception as exc:
                # Earlier saves stay persisted; the batch is reported as failed.
                message = f"Failed to process mapping {mapping.id}: {exc}"
                logger.error("[LEARN] %s", message)
                return SaveCategoryMappingsResponse.failure(total, [message])

            if action == _Action.SAVE_NEW:
                saved_new += 1
            else:
                updated_existing += 1

        logger.info(
            "[LEARN] Processed %d mappings. New: %d, Updated: %d, Skipped: %d",
            total,
            saved_new,
            updated_existing,
            skipped,
        )

        if warnings or skipped:
            return SaveCategoryMappingsResponse.partial_success(
                total, saved_new, updated_existing, skipped, saved_mappings, warnings
            )
        return SaveCategoryMappingsResponse.success(total, saved_new, updated_existing, saved_mappings)

    def _process_mapping(self, mapping: CategoryMapping) -> tuple[_Action, CategoryMapping | None, str | None]:
        if not self._is_valid_mapping(mapping):
            return _Action.SKIP, None, f"Mapping quality too low: {mapping.confidence}"

        existing_mappings = self.repository.find_mappings_overlapping_pattern(
            TransactionPattern(mapping.text_patterns)
        )
        for existing in existing_mappings:
            if existing.category == mapping.category:
                consolidated = existing.with_additional_patterns(mapping.text_patterns).with_new_occurrence()
                return _Action.UPDATE_EXISTING, consolidated, None

            if self._has_significant_overlap(existing, mapping):
                if existing.confidence > mapping.confidence + self.thresholds.conflict_confidence_gap:
                    return (
                        _Action.SKIP,
                        None,
                        f"Conflicting categorization exists with higher confidence: {existing.category.name}",
                    )
                return _Action.SKIP, None, "Conflicting categorization detected - manual review needed"

        return _Action.SAVE_NEW, mapping, None

    def _has_significant_overlap(self, first: CategoryMapping, second: CategoryMapping) -> bool:
        overlap = first.overlap_count(second.text_patterns)
        smaller = min(first.pattern_count, second.pattern_count)
        return overlap > 0 and overlap / smaller >= self.thresholds.conflict_overlap_ratio

    def _is_valid_mapping(self, mapping: CategoryMapping) -> bool:
        if mapping.confidence < self.thresholds.min_mapping_confidence:
            return False
        return any(not _is_generic(token) for token in mapping.text_patterns)


def _is_generic(token: str) -> bool:
    normalized = token.lower().strip()
    return len(normalized) < MIN_TOKEN_LENGTH or normalized in GENERIC_PATTERNS
