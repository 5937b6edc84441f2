from datetime import date

import pytest

from budget_sync.domain.dates import DateRange
from budget_sync.domain.patterns import TransactionPattern, extract_tokens, normalize_text
from budget_sync.errors import InvalidArgumentError
from budget_sync.models import BankTransaction, Money


def _tx(description: str, merchant_name: str | None = None) -> BankTransaction:
    return BankTransaction(
        id="b1",
        account_id="acc",
        date=date(2024, 1, 1),
        amount=Money.of("-1"),
        description=description,
        merchant_name=merchant_name,
    )


def test_normalize_text():
    assert normalize_text("  STARBUCKS   Coffee #123 ") == "starbucks coffee 123"
    assert normalize_text("Café-Bar!") == "cafbar"
    assert normalize_text("   ") is None
    assert normalize_text(None) is None
    assert normalize_text("!!!") is None


def test_extract_tokens_drops_short_fields():
    assert extract_tokens("Shell", "ab", None, "  ") == frozenset({"shell"})


def test_pattern_from_bank_transaction_uses_whole_fields():
    pattern = TransactionPattern.from_bank_transaction(_tx("POS Purchase 1234", merchant_name="Amazon.com"))
    assert pattern.text_patterns == frozenset({"amazoncom", "pos purchase 1234"})
    assert len(pattern) == 2
    assert pattern.contains("amazoncom")
    assert pattern.has_content


def test_pattern_without_usable_text():
    tx = _tx("ab", merchant_name="x")
    assert TransactionPattern.try_from_bank_transaction(tx) is None
    with pytest.raises(InvalidArgumentError):
        TransactionPattern.from_bank_transaction(tx)


def test_pattern_rejects_empty_or_blank_tokens():
    with pytest.raises(InvalidArgumentError):
        TransactionPattern(frozenset())
    with pytest.raises(InvalidArgumentError):
        TransactionPattern.of("shell", "  ")


def test_exact_match_is_any_overlap():
    stored = TransactionPattern.of("coffee", "shop")
    incoming = TransactionPattern.of("coffee", "unrelated", "other")
    assert stored.has_exact_match(incoming)
    assert stored.overlap_count(incoming) == 1
    assert not stored.has_exact_match(incoming, min_overlap=2)
    assert not stored.has_exact_match(TransactionPattern.of("tea"))


def test_pattern_iterates_sorted():
    assert list(TransactionPattern.of("zeta", "alpha")) == ["alpha", "zeta"]


def test_date_range():
    window = DateRange.days_around(date(2024, 1, 10), 3, 3)
    assert window.start == date(2024, 1, 7)
    assert window.end == date(2024, 1, 13)
    assert window.day_count == 7
    assert window.contains(date(2024, 1, 13))
    assert not window.contains(date(2024, 1, 14))
    assert DateRange.single_day(date(2024, 1, 1)).day_count == 1
    with pytest.raises(InvalidArgumentError):
        DateRange(date(2024, 1, 2), date(2024, 1, 1))
