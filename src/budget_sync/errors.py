"""Error types shared by the reconciliation, inference and learning code."""

from typing import TypeVar

T = TypeVar("T")


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses ValueError so pydantic validation failures and domain
    failures can be handled the same way by callers.
    """


class InvalidArgumentError(DomainError):
    """A required input was missing, empty or out of range."""


class RepositoryError(DomainError):
    """A storage collaborator failed while reading or writing."""


def require(value: T | None, name: str) -> T:
    if value is None:
        raise InvalidArgumentError(f"{name} cannot be None")
    return value
