from datetime import date

import pytest

from budget_sync.core.configuration import Thresholds
from budget_sync.errors import InvalidArgumentError
from budget_sync.models import Category, CategoryMapping
from budget_sync.services.inference import CategoryInferenceService


@pytest.fixture
def service():
    return CategoryInferenceService()


def _mapping(name: str, tokens: set[str], confidence: float, occurrences: int = 1) -> CategoryMapping:
    return CategoryMapping(
        category=Category.inferred_category(name),
        text_patterns=frozenset(tokens),
        confidence=confidence,
        occurrence_count=occurrences,
    )


def test_no_match_for_unrelated_merchant(service, catalog, make_bank_tx):
    tx = make_bank_tx(date(2024, 1, 1), merchant_name="STARBUCKS COFFEE", description="Card payment")
    assert service.analyze_transaction(tx, catalog, []) is None


def test_merchant_name_fallback_is_discounted(service, catalog, make_bank_tx):
    tx = make_bank_tx(date(2024, 1, 1), merchant_name="Dining Out Downtown", description="Card payment")

    result = service.analyze_transaction(tx, catalog, [])

    assert result is not None
    assert result.category.id == "cat-dining"
    assert result.confidence == pytest.approx(0.8)
    assert result.reasoning == "Fallback similarity match: Merchant name match: Dining Out Downtown"


def test_description_fallback(service, catalog, make_bank_tx):
    tx = make_bank_tx(date(2024, 1, 1), description="Weekly Groceries Run")

    result = service.analyze_transaction(tx, catalog, [])

    assert result.category.name == "Groceries"
    assert result.confidence == pytest.approx(0.9 * 0.8)
    assert result.reasoning.startswith("Fallback similarity match: Description match")


def test_learned_mapping_wins_with_boost(service, catalog, make_bank_tx):
    tx = make_bank_tx(date(2024, 1, 1), merchant_name="Starbucks Coffee", description="Card payment")
    mapping = _mapping("Coffee Shops", {"starbucks coffee"}, 0.7)

    result = service.analyze_transaction(tx, catalog, [mapping])

    assert result.category.name == "Coffee Shops"
    assert result.confidence == pytest.approx(0.9)
    assert result.reasoning == "Exact pattern match (seen 1 times, 1 patterns, confidence: 0.70)"


def test_boost_is_capped(service, catalog, make_bank_tx):
    tx = make_bank_tx(date(2024, 1, 1), merchant_name="Starbucks Coffee")
    result = service.analyze_transaction(tx, catalog, [_mapping("Coffee", {"starbucks coffee"}, 0.95)])
    assert result.confidence == 1.0


def test_best_learned_mapping_by_confidence_then_occurrences(service, catalog, make_bank_tx):
    tx = make_bank_tx(date(2024, 1, 1), merchant_name="Shell", description="Fuel station 42")
    mappings = [
        _mapping("First", {"shell"}, 0.6, occurrences=5),
        _mapping("Second", {"shell"}, 0.6, occurrences=9),
        _mapping("Third", {"fuel station 42"}, 0.6, occurrences=9),
        _mapping("Weak", {"shell"}, 0.4, occurrences=50),
    ]

    result = service.analyze_transaction(tx, catalog, mappings)

    # Second and Third tie; the earlier one wins
    assert result.category.name == "Second"


def test_unrelated_mappings_fall_through(service, catalog, make_bank_tx):
    tx = make_bank_tx(date(2024, 1, 1), merchant_name="Fuel Depot")
    result = service.analyze_transaction(tx, catalog, [_mapping("Rent", {"landlord"}, 1.0)])
    assert result.category.id == "cat-fuel"
    assert result.reasoning.startswith("Fallback similarity match:")


def test_empty_catalog_returns_none(service, make_bank_tx):
    tx = make_bank_tx(date(2024, 1, 1), merchant_name="Starbucks Coffee")
    assert service.analyze_transaction(tx, [], [_mapping("Coffee", {"starbucks coffee"}, 0.9)]) is None


def test_short_text_never_raises(service, catalog, make_bank_tx):
    tx = make_bank_tx(date(2024, 1, 1), merchant_name="ab", description="x")
    assert service.analyze_transaction(tx, catalog, [_mapping("Coffee", {"starbucks coffee"}, 0.9)]) is None


def test_none_arguments_rejected(service, catalog, make_bank_tx):
    with pytest.raises(InvalidArgumentError):
        service.analyze_transaction(None, catalog, [])
    with pytest.raises(InvalidArgumentError):
        service.analyze_transaction(make_bank_tx(date(2024, 1, 1)), None, [])


def test_fallback_confidence_never_exceeds_discount(service, catalog, make_bank_tx):
    descriptions = ["Groceries", "Food & Dining", "Fuel", "Dining Out", "Transportation fuel", "Out and about"]
    for description in descriptions:
        tx = make_bank_tx(date(2024, 1, 1), merchant_name=description, description=description)
        result = service.analyze_transaction(tx, catalog, [])
        if result is not None:
            assert 0.0 <= result.confidence <= 0.8


def test_thresholds_are_injected(catalog, make_bank_tx):
    service = CategoryInferenceService(Thresholds(fallback_discount=0.5, pattern_min_overlap=2))
    tx = make_bank_tx(date(2024, 1, 1), merchant_name="Fuel Depot", description="Card payment")

    # A single shared token is no longer enough for the learned mapping
    result = service.analyze_transaction(tx, catalog, [_mapping("Petrol", {"fuel depot"}, 1.0)])

    assert result.category.id == "cat-fuel"
    assert result.confidence == pytest.approx(0.5)


def test_catalog_only_analysis_is_undiscounted(service, catalog, make_bank_tx):
    tx = make_bank_tx(date(2024, 1, 1), merchant_name="Dining Out Downtown")
    result = service.analyze_against_catalog(tx, catalog)
    assert result.confidence == 1.0
    assert result.reasoning == "Merchant name match: Dining Out Downtown"


def test_very_long_text_is_handled(service, catalog, make_bank_tx):
    description = "b" * 1_000_000
    tx = make_bank_tx(date(2024, 1, 1), merchant_name="x" * 1_000_000 + " Dining Out", description=description)
    unrelated = _mapping("Coffee", {"blue bottle"}, 0.9)

    fallback = service.analyze_transaction(tx, catalog, [unrelated])

    assert fallback.category.id == "cat-dining"
    assert fallback.confidence == pytest.approx(0.8)

    learned = _mapping("Bulk", {description}, 0.7)
    exact = service.analyze_transaction(tx, catalog, [unrelated, learned])

    assert exact.category == learned.category
    assert exact.confidence == pytest.approx(0.9)

    plain = make_bank_tx(date(2024, 1, 1), merchant_name="q" * 1_000_000, description=description)
    assert service.analyze_transaction(plain, catalog, [unrelated]) is None
