from dataclasses import dataclass
from datetime import date, timedelta

from budget_sync.errors import InvalidArgumentError


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start is None or self.end is None:
            raise InvalidArgumentError("Date range bounds cannot be None")
        if self.start > self.end:
            raise InvalidArgumentError(f"Start date {self.start} is after end date {self.end}")

    @classmethod
    def single_day(cls, day: date) -> "DateRange":
        return cls(day, day)

    @classmethod
    def days_around(cls, center: date, days_before: int, days_after: int) -> "DateRange":
        return cls(center - timedelta(days=days_before), center + timedelta(days=days_after))

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def day_count(self) -> int:
        return (self.end - self.start).days + 1
