from datetime import date, datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from budget_sync.errors import InvalidArgumentError, require
from budget_sync.models import (
    BankTransaction,
    Category,
    CategoryInferenceResult,
    CategoryMapping,
    CategoryType,
    LedgerCategory,
    Money,
    ReconciliationRequest,
    ReconciliationStrategy,
    ReconciliationSummary,
)


def test_money_of_rounds_half_up_to_milliunits():
    assert Money.of("12.3456").milliunits == 12346
    assert Money.of("-0.0005").milliunits == -1
    assert Money.of(0.1).milliunits == 100
    assert Money.of(Decimal("25")).milliunits == 25000


def test_money_rejects_non_numeric_and_non_finite():
    with pytest.raises(ValueError):
        Money.of("abc")
    with pytest.raises(ValueError):
        Money.of(float("nan"))
    with pytest.raises(ValueError):
        Money.of(None)
    with pytest.raises(InvalidArgumentError):
        Money.of("1e30")
    with pytest.raises(InvalidArgumentError):
        Money.of(Decimal(2**63))


def test_money_arithmetic_and_display():
    a = Money.of("10.50")
    b = Money.of("0.25")
    assert (a + b).milliunits == 10750
    assert (a - b).milliunits == 10250
    assert (-a).is_negative
    assert abs(-a) == a
    assert str(Money.of_milliunits(-12345)) == "-12.345"
    assert str(Money.of("0.005")) == "0.005"
    assert Money.of("1.5").to_decimal() == Decimal("1.5")
    assert Money.zero().is_zero
    assert b < a


def test_money_equality_is_by_value():
    assert Money.of("1.00") == Money.of_milliunits(1000)
    assert Money.of("1.00") != Money.of("1.001")


def test_category_factories():
    inferred = Category.inferred_category("Dining Out")
    assert inferred.id == "inferred_dining_out"
    assert inferred.type == CategoryType.BANK_INFERRED
    assert inferred.is_inferred

    assigned = Category.ledger_category("cat-1", "Rent")
    assert assigned.is_explicitly_assigned
    assert Category.unknown().is_unknown
    assert not assigned.is_unknown
    assert assigned.is_similar_to(Category.ledger_category("cat-2", "rent"))


def test_category_rejects_blank_name():
    with pytest.raises(ValidationError):
        Category(id="x", name="   ", type=CategoryType.UNKNOWN)


def test_ledger_category_similarity_score():
    category = LedgerCategory(id="c", name="Dining Out", group_name="Food & Dining")
    assert category.similarity_score("lunch at dining out place") == 1.0
    assert category.similarity_score("food & dining weekly") == 0.7
    assert category.similarity_score("dining hall") == 0.5
    assert category.similarity_score("hardware store") == 0.0
    assert category.similarity_score("") == 0.0
    assert category.similarity_score(None) == 0.0


def test_ledger_category_blank_group_never_scores():
    category = LedgerCategory(id="c", name="Fuel", group_name="")
    assert category.similarity_score("anything at all") == 0.0


def test_ledger_category_availability():
    assert LedgerCategory(id="c", name="Fuel").is_available_for_inference
    assert not LedgerCategory(id="c", name="Fuel", hidden=True).is_available_for_inference
    assert not LedgerCategory(id="c", name="Fuel", deleted=True).is_available_for_inference


def test_bank_transaction_truncates_datetime_and_coerces_amount():
    tx = BankTransaction(
        id="b1",
        account_id="acc",
        date=datetime(2024, 1, 15, 23, 59),
        amount="-12.50",
        description="Coffee",
    )
    assert tx.date == date(2024, 1, 15)
    assert tx.amount == Money.of("-12.50")
    assert tx.is_debit
    assert not tx.has_category_inferred
    assert tx.display_name == "Coffee"


def test_bank_transaction_with_inferred_category_is_a_copy():
    tx = BankTransaction(id="b1", account_id="acc", date=date(2024, 1, 1), amount="1", description="x")
    updated = tx.with_inferred_category(Category.inferred_category("Fuel"))
    assert updated.has_category_inferred
    assert not tx.has_category_inferred
    assert updated.id == tx.id


def test_bank_transaction_requires_identity():
    with pytest.raises(ValidationError):
        BankTransaction(id="", account_id="acc", date=date(2024, 1, 1), amount="1", description="x")


def test_category_mapping_occurrence_boost():
    mapping = CategoryMapping(
        category=Category.inferred_category("Fuel"),
        text_patterns=frozenset({"shell"}),
        confidence=0.5,
    )
    once = mapping.with_new_occurrence()
    assert once.occurrence_count == 2
    assert once.confidence == pytest.approx(0.6)

    twice = once.with_new_occurrence()
    assert twice.occurrence_count == 3
    assert twice.confidence == pytest.approx(0.6 + 0.1 / 2**0.5)
    assert twice.id == mapping.id


def test_category_mapping_confidence_is_clamped():
    mapping = CategoryMapping(
        category=Category.inferred_category("Fuel"),
        text_patterns=frozenset({"shell"}),
        confidence=0.99,
        occurrence_count=4,
    )
    assert mapping.with_new_occurrence().confidence == 1.0


def test_category_mapping_validation():
    category = Category.inferred_category("Fuel")
    with pytest.raises(ValidationError):
        CategoryMapping(category=category, text_patterns=frozenset(), confidence=0.5)
    with pytest.raises(ValidationError):
        CategoryMapping(category=category, text_patterns=frozenset({"shell"}), confidence=1.5)
    with pytest.raises(ValidationError):
        CategoryMapping(category=category, text_patterns=frozenset({"shell"}), confidence=0.5, occurrence_count=0)


def test_category_mapping_additional_patterns_and_high_confidence():
    mapping = CategoryMapping(
        category=Category.inferred_category("Fuel"),
        text_patterns=frozenset({"shell"}),
        confidence=0.9,
        occurrence_count=2,
    )
    merged = mapping.with_additional_patterns({"shell station"})
    assert merged.text_patterns == frozenset({"shell", "shell station"})
    assert merged.pattern_count == 2
    assert merged.is_high_confidence


def test_inference_result_bounds_and_flags():
    result = CategoryInferenceResult.match(Category.inferred_category("Fuel"), 0.85, "Merchant name match: Shell")
    assert result.has_match
    assert result.is_high_confidence
    assert not CategoryInferenceResult.no_match().has_match
    with pytest.raises(ValidationError):
        CategoryInferenceResult.match(Category.inferred_category("Fuel"), 1.2, "too high")


def test_reconciliation_summary_percentage():
    summary = ReconciliationSummary(
        account_id="acc",
        reconciliation_date=date(2024, 2, 1),
        from_date=date(2024, 1, 1),
        to_date=date(2024, 1, 31),
        strategy=ReconciliationStrategy.STRICT,
        total_bank_transactions=4,
        total_ledger_transactions=3,
        matched_transactions=3,
        missing_from_ledger=1,
    )
    assert summary.reconciliation_percentage == 75.0
    assert not summary.is_complete

    empty = summary.model_copy(
        update={"total_bank_transactions": 0, "matched_transactions": 0, "missing_from_ledger": 0}
    )
    assert empty.reconciliation_percentage == 100.0
    assert empty.is_complete


def test_reconciliation_summary_rejects_negative_counts():
    with pytest.raises(ValidationError):
        ReconciliationSummary(
            account_id="acc",
            reconciliation_date=date(2024, 2, 1),
            from_date=date(2024, 1, 1),
            to_date=date(2024, 1, 31),
            strategy=ReconciliationStrategy.RANGE,
            total_bank_transactions=-1,
            total_ledger_transactions=0,
            matched_transactions=0,
            missing_from_ledger=0,
        )


def test_reconciliation_request_constructors():
    today = date(2024, 3, 15)
    last_30 = ReconciliationRequest.last_30_days("acc", today=today)
    assert last_30.from_date == date(2024, 2, 14)
    assert last_30.to_date == today
    assert last_30.strategy == ReconciliationStrategy.STRICT

    month = ReconciliationRequest.current_month("acc", ReconciliationStrategy.RANGE, today=today)
    assert month.from_date == date(2024, 3, 1)
    assert month.day_count == 15


def test_reconciliation_request_rejects_inverted_range():
    with pytest.raises(ValidationError):
        ReconciliationRequest(account_id="acc", from_date=date(2024, 2, 1), to_date=date(2024, 1, 1))


def test_require_returns_value_or_raises():
    assert require(0, "count") == 0
    with pytest.raises(InvalidArgumentError, match="count cannot be None"):
        require(None, "count")
