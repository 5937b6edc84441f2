import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from budget_sync.errors import InvalidArgumentError
from budget_sync.models import BankTransaction

MIN_TOKEN_LENGTH = 3

_WHITESPACE_RE = re.compile(r"\s+")
_DISALLOWED_RE = re.compile(r"[^a-z0-9\s]")


def normalize_text(text: str | None) -> str | None:
    """Lowercase, collapse whitespace and strip everything but [a-z0-9 ]."""
    if text is None or not text.strip():
        return None
    normalized = _WHITESPACE_RE.sub(" ", text.lower().strip())
    normalized = _DISALLOWED_RE.sub("", normalized).strip()
    return normalized or None


def extract_tokens(*fields: str | None) -> frozenset[str]:
    tokens: set[str] = set()
    for field in fields:
        normalized = normalize_text(field)
        if normalized is not None and len(normalized) >= MIN_TOKEN_LENGTH:
            tokens.add(normalized)
    return frozenset(tokens)


@dataclass(frozen=True)
class TransactionPattern:
    """Normalized text tokens taken from a transaction's merchant and description."""

    text_patterns: frozenset[str]

    def __post_init__(self) -> None:
        if self.text_patterns is None:
            raise InvalidArgumentError("Text patterns cannot be None")
        tokens = frozenset(self.text_patterns)
        if not tokens:
            raise InvalidArgumentError("Transaction pattern must have at least one text pattern")
        if any(token is None or not token.strip() for token in tokens):
            raise InvalidArgumentError("Text patterns cannot contain blank values")
        object.__setattr__(self, "text_patterns", tokens)

    @classmethod
    def of(cls, *tokens: str) -> "TransactionPattern":
        return cls(frozenset(tokens))

    @classmethod
    def from_bank_transaction(cls, transaction: BankTransaction) -> "TransactionPattern":
        tokens = extract_tokens(transaction.merchant_name, transaction.description)
        if not tokens:
            raise InvalidArgumentError(
                f"Transaction {transaction.id} has no merchant name or description usable as a pattern"
            )
        return cls(tokens)

    @classmethod
    def try_from_bank_transaction(cls, transaction: BankTransaction) -> "TransactionPattern | None":
        tokens = extract_tokens(transaction.merchant_name, transaction.description)
        return cls(tokens) if tokens else None

    def overlap_count(self, other: "TransactionPattern | Iterable[str]") -> int:
        other_tokens = other.text_patterns if isinstance(other, TransactionPattern) else frozenset(other)
        return len(self.text_patterns & other_tokens)

    def has_exact_match(self, other: "TransactionPattern | Iterable[str]", min_overlap: int = 1) -> bool:
        """Any shared token counts as a match by default, not set equality."""
        return self.overlap_count(other) >= min_overlap

    def contains(self, normalized_text: str) -> bool:
        return normalized_text in self.text_patterns

    @property
    def has_content(self) -> bool:
        return any(len(token) >= MIN_TOKEN_LENGTH for token in self.text_patterns)

    def __len__(self) -> int:
        return len(self.text_patterns)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.text_patterns))
