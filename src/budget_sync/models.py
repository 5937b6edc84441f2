import datetime as dt
import math
import re
import uuid
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, ClassVar

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, NonNegativeInt, model_validator

from budget_sync.errors import InvalidArgumentError

MILLIUNITS_PER_UNIT = 1000
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_FROZEN = ConfigDict(frozen=True)


def _require_non_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("value cannot be blank")
    return value


NonBlankStr = Annotated[str, AfterValidator(_require_non_blank)]

# Identity values are plain non-blank strings.
AccountId = NonBlankStr
TransactionId = NonBlankStr
CategoryMappingId = NonBlankStr


def new_mapping_id() -> str:
    return str(uuid.uuid4())


def _to_date(value: Any) -> Any:
    # Time of day never takes part in matching
    if isinstance(value, dt.datetime):
        return value.date()
    return value


class Money(BaseModel):
    """Fixed-point amount in milliunits (1000 milliunits == 1.00)."""

    model_config = _FROZEN

    milliunits: int = Field(strict=True, ge=INT64_MIN, le=INT64_MAX)

    @classmethod
    def of(cls, amount: Decimal | int | float | str) -> "Money":
        """Build from a decimal amount, rounding half-up to whole milliunits."""
        if amount is None or isinstance(amount, bool):
            raise InvalidArgumentError(f"Amount must be numeric, got {amount!r}")
        if isinstance(amount, float):
            if not math.isfinite(amount):
                raise InvalidArgumentError(f"Amount must be finite, got {amount!r}")
            # str() keeps 0.1 as 0.1 instead of its binary expansion
            amount = str(amount)
        try:
            value = Decimal(amount)
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise InvalidArgumentError(f"Amount must be numeric, got {amount!r}") from exc
        if not value.is_finite():
            raise InvalidArgumentError(f"Amount must be finite, got {amount!r}")
        try:
            scaled = int((value * MILLIUNITS_PER_UNIT).quantize(Decimal(1), rounding=ROUND_HALF_UP))
        except InvalidOperation as exc:
            raise InvalidArgumentError(f"Amount out of range, got {amount!r}") from exc
        if not INT64_MIN <= scaled <= INT64_MAX:
            raise InvalidArgumentError(f"Amount out of range, got {amount!r}")
        return cls(milliunits=scaled)

    @classmethod
    def of_milliunits(cls, milliunits: int) -> "Money":
        return cls(milliunits=milliunits)

    @classmethod
    def zero(cls) -> "Money":
        return cls(milliunits=0)

    def to_decimal(self) -> Decimal:
        """Exact value in units, always three decimal places."""
        return Decimal(self.milliunits).scaleb(-3)

    @property
    def is_zero(self) -> bool:
        return self.milliunits == 0

    @property
    def is_positive(self) -> bool:
        return self.milliunits > 0

    @property
    def is_negative(self) -> bool:
        return self.milliunits < 0

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(milliunits=self.milliunits + other.milliunits)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(milliunits=self.milliunits - other.milliunits)

    def __neg__(self) -> "Money":
        return Money(milliunits=-self.milliunits)

    def __abs__(self) -> "Money":
        return Money(milliunits=abs(self.milliunits))

    def __lt__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.milliunits < other.milliunits

    def __le__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.milliunits <= other.milliunits

    def __gt__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.milliunits > other.milliunits

    def __ge__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.milliunits >= other.milliunits

    def __str__(self) -> str:
        return str(self.to_decimal())


def _coerce_money(value: Any) -> Any:
    if isinstance(value, (Money, dict)):
        return value
    return Money.of(value)


CalendarDate = Annotated[dt.date, BeforeValidator(_to_date)]
Amount = Annotated[Money, BeforeValidator(_coerce_money)]


class CategoryType(str, Enum):
    LEDGER_ASSIGNED = "ledger_assigned"
    BANK_INFERRED = "bank_inferred"
    UNKNOWN = "unknown"


class Category(BaseModel):
    model_config = _FROZEN

    id: NonBlankStr
    name: NonBlankStr
    type: CategoryType

    @classmethod
    def ledger_category(cls, id: str, name: str) -> "Category":
        return cls(id=id, name=name, type=CategoryType.LEDGER_ASSIGNED)

    @classmethod
    def inferred_category(cls, name: str) -> "Category":
        category_id = "inferred_" + re.sub(r"\s+", "_", name.lower())
        return cls(id=category_id, name=name, type=CategoryType.BANK_INFERRED)

    @classmethod
    def unknown(cls) -> "Category":
        return cls(id="unknown", name="Uncategorized", type=CategoryType.UNKNOWN)

    @property
    def is_explicitly_assigned(self) -> bool:
        return self.type == CategoryType.LEDGER_ASSIGNED

    @property
    def is_inferred(self) -> bool:
        return self.type == CategoryType.BANK_INFERRED

    @property
    def is_unknown(self) -> bool:
        return self == Category.unknown()

    def is_similar_to(self, other: "Category") -> bool:
        return self == other or self.name.lower() == other.name.lower()


class LedgerCategory(BaseModel):
    """A category from the ledger's catalog, with its group."""

    model_config = _FROZEN

    id: NonBlankStr
    name: NonBlankStr
    group_id: str = ""
    group_name: str = ""
    hidden: bool = False
    deleted: bool = False

    @property
    def is_available_for_inference(self) -> bool:
        return not self.hidden and not self.deleted

    @property
    def full_name(self) -> str:
        return f"{self.group_name}: {self.name}"

    @property
    def inference_keywords(self) -> tuple[str, ...]:
        return (self.name.lower(), self.group_name.lower(), self.full_name.lower())

    def similarity_score(self, text: str | None) -> float:
        """Score how well free text points at this category, in [0, 1].

        1.0 when the text contains the category name, 0.7 for the group
        name, 0.5 for any word of three or more letters from the name.
        """
        if not text or not text.strip():
            return 0.0

        lower_text = text.lower()
        score = 0.0
        if self.name.lower() in lower_text:
            score = 1.0
        if score < 0.7 and self.group_name.strip() and self.group_name.lower() in lower_text:
            score = 0.7
        if score < 0.5 and any(
            len(word) >= 3 and word in lower_text for word in self.name.lower().split()
        ):
            score = 0.5
        return score

    def to_category(self) -> Category:
        return Category.ledger_category(self.id, self.name)


class BankTransaction(BaseModel):
    model_config = _FROZEN

    id: TransactionId
    account_id: AccountId
    date: CalendarDate
    amount: Amount
    description: str
    merchant_name: str | None = None
    memo: str | None = None
    transaction_type: str | None = None
    reference: str | None = None
    inferred_category: Category = Field(default_factory=Category.unknown)

    def with_inferred_category(self, category: Category) -> "BankTransaction":
        if category is None:
            raise InvalidArgumentError("Inferred category cannot be None")
        return self.model_copy(update={"inferred_category": category})

    @property
    def display_name(self) -> str:
        if self.merchant_name and self.merchant_name.strip():
            return self.merchant_name
        return self.description

    @property
    def is_debit(self) -> bool:
        return self.amount.is_negative or (self.transaction_type or "").upper() == "DEBIT"

    @property
    def has_category_inferred(self) -> bool:
        return not self.inferred_category.is_unknown


class ClearedStatus(str, Enum):
    CLEARED = "cleared"
    UNCLEARED = "uncleared"
    RECONCILED = "reconciled"


class LedgerTransaction(BaseModel):
    model_config = _FROZEN

    id: TransactionId
    account_id: AccountId
    date: CalendarDate
    amount: Amount
    payee_name: str | None = None
    memo: str | None = None
    category: Category = Field(default_factory=Category.unknown)
    cleared_status: ClearedStatus = ClearedStatus.UNCLEARED
    approved: bool = False
    flag_color: str | None = None

    @property
    def is_reconciled(self) -> bool:
        return self.cleared_status == ClearedStatus.RECONCILED

    @property
    def display_name(self) -> str:
        if self.payee_name and self.payee_name.strip():
            return self.payee_name
        return "Unknown Payee"


def _validate_tokens(value: frozenset[str]) -> frozenset[str]:
    if not value:
        raise ValueError("at least one text pattern is required")
    if any(not token.strip() for token in value):
        raise ValueError("text patterns cannot contain blank values")
    return value


PatternTokens = Annotated[frozenset[str], AfterValidator(_validate_tokens)]


class CategoryMapping(BaseModel):
    """A learned association between text patterns and a category."""

    model_config = _FROZEN

    id: CategoryMappingId = Field(default_factory=new_mapping_id)
    category: Category
    text_patterns: PatternTokens
    confidence: float = Field(ge=0.0, le=1.0)
    occurrence_count: int = Field(default=1, ge=1)

    @classmethod
    def from_successful_match(cls, pattern: Any, category: Category) -> "CategoryMapping":
        return cls(
            category=category,
            text_patterns=frozenset(pattern.text_patterns),
            confidence=1.0,
            occurrence_count=1,
        )

    def overlap_count(self, tokens: frozenset[str] | set[str]) -> int:
        return len(self.text_patterns & tokens)

    def has_exact_match(self, pattern: Any, min_overlap: int = 1) -> bool:
        """True when the pattern shares at least ``min_overlap`` tokens."""
        return self.overlap_count(frozenset(pattern.text_patterns)) >= min_overlap

    def with_new_occurrence(self) -> "CategoryMapping":
        boost = min(0.1, 0.1 / math.sqrt(self.occurrence_count))
        return self.model_copy(
            update={
                "confidence": min(1.0, self.confidence + boost),
                "occurrence_count": self.occurrence_count + 1,
            }
        )

    def with_additional_patterns(self, tokens: frozenset[str] | set[str]) -> "CategoryMapping":
        return self.model_copy(update={"text_patterns": self.text_patterns | frozenset(tokens)})

    @property
    def is_high_confidence(self) -> bool:
        return self.confidence >= 0.8 and self.occurrence_count >= 2

    @property
    def pattern_count(self) -> int:
        return len(self.text_patterns)


class CategoryInferenceResult(BaseModel):
    model_config = _FROZEN

    HIGH_CONFIDENCE_THRESHOLD: ClassVar[float] = 0.8

    category: Category
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str

    @classmethod
    def no_match(cls) -> "CategoryInferenceResult":
        return cls(category=Category.unknown(), confidence=0.0, reasoning="No suitable match found")

    @classmethod
    def match(cls, category: Category, confidence: float, reasoning: str) -> "CategoryInferenceResult":
        return cls(category=category, confidence=confidence, reasoning=reasoning)

    @property
    def has_match(self) -> bool:
        return not self.category.is_unknown

    @property
    def is_high_confidence(self) -> bool:
        return self.confidence >= self.HIGH_CONFIDENCE_THRESHOLD


class ReconciliationStrategy(str, Enum):
    STRICT = "strict"
    RANGE = "range"


class TransactionMatchResult(BaseModel):
    """Bank transactions split into those found in the ledger and those missing."""

    model_config = _FROZEN

    matched: list[BankTransaction] = Field(default_factory=list)
    missing: list[BankTransaction] = Field(default_factory=list)
    # (bank transaction id, ledger transaction id) per match
    matched_pairs: list[tuple[str, str]] = Field(default_factory=list)

    @property
    def matched_count(self) -> int:
        return len(self.matched)

    @property
    def missing_count(self) -> int:
        return len(self.missing)

    @property
    def total_bank_transactions(self) -> int:
        return len(self.matched) + len(self.missing)


class ReconciliationSummary(BaseModel):
    model_config = _FROZEN

    account_id: AccountId
    reconciliation_date: dt.date
    from_date: dt.date
    to_date: dt.date
    strategy: ReconciliationStrategy
    total_bank_transactions: NonNegativeInt
    total_ledger_transactions: NonNegativeInt
    matched_transactions: NonNegativeInt
    missing_from_ledger: NonNegativeInt

    @property
    def reconciliation_percentage(self) -> float:
        if self.total_bank_transactions == 0:
            return 100.0
        return self.matched_transactions / self.total_bank_transactions * 100.0

    @property
    def is_complete(self) -> bool:
        return self.missing_from_ledger == 0


class ReconciliationRequest(BaseModel):
    model_config = _FROZEN

    account_id: AccountId
    from_date: CalendarDate
    to_date: CalendarDate
    strategy: ReconciliationStrategy = ReconciliationStrategy.STRICT

    @model_validator(mode="after")
    def _check_order(self) -> "ReconciliationRequest":
        if self.from_date > self.to_date:
            raise ValueError("from_date cannot be after to_date")
        return self

    @classmethod
    def last_30_days(
        cls,
        account_id: str,
        strategy: ReconciliationStrategy = ReconciliationStrategy.STRICT,
        today: dt.date | None = None,
    ) -> "ReconciliationRequest":
        to_date = today or dt.date.today()
        return cls(
            account_id=account_id,
            from_date=to_date - dt.timedelta(days=30),
            to_date=to_date,
            strategy=strategy,
        )

    @classmethod
    def current_month(
        cls,
        account_id: str,
        strategy: ReconciliationStrategy = ReconciliationStrategy.STRICT,
        today: dt.date | None = None,
    ) -> "ReconciliationRequest":
        to_date = today or dt.date.today()
        return cls(account_id=account_id, from_date=to_date.replace(day=1), to_date=to_date, strategy=strategy)

    @property
    def day_count(self) -> int:
        return (self.to_date - self.from_date).days + 1


class ReconciliationResult(BaseModel):
    model_config = _FROZEN

    missing_from_ledger: list[BankTransaction]
    matched: list[BankTransaction]
    summary: ReconciliationSummary

    @property
    def is_fully_reconciled(self) -> bool:
        return not self.missing_from_ledger

    @property
    def missing_count(self) -> int:
        return len(self.missing_from_ledger)

    @property
    def matched_count(self) -> int:
        return len(self.matched)
