"""
Billing period parsing and date arithmetic.

Invoices store their periods as short strings:

    "30d"        30 days
    "1m"         1 month (calendar month, clamped to month end)
    "1y"         1 year
    "lifetime"   fixed, never-expiring access
    "2030-12-31" fixed end date

Usage:
    from ledger.periods import Period

    period = Period.parse("1m")
    period.add_to(date(2024, 1, 31))  # date(2024, 2, 29)
    period.text                        # "1 Month"
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta

# Upper bound used for lifetime access
LIFETIME_DATE = date(2037, 12, 31)

DAY = "d"
MONTH = "m"
YEAR = "y"
FIXED = "fixed"

_PERIOD_RE = re.compile(r"^(\d+)\s*([dmy])$")

_UNIT_NAMES = {
    DAY: ("Day", "Days"),
    MONTH: ("Month", "Months"),
    YEAR: ("Year", "Years"),
}


def add_months(value: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


@dataclass(frozen=True)
class Period:
    """A parsed billing period."""

    count: int
    unit: str
    fixed_date: date | None = None

    @classmethod
    def parse(cls, value: str) -> Period:
        """
        Parse a period string.

        Raises:
            ValueError: If the string is not a recognised period
        """
        raw = (value or "").strip().lower()
        if raw == "lifetime":
            return cls(count=1, unit=FIXED, fixed_date=LIFETIME_DATE)

        match = _PERIOD_RE.match(raw)
        if match:
            count = int(match.group(1))
            if count <= 0:
                raise ValueError(f"Period must be positive: {value!r}")
            return cls(count=count, unit=match.group(2))

        try:
            return cls(count=1, unit=FIXED, fixed_date=date.fromisoformat(raw))
        except ValueError:
            raise ValueError(f"Unrecognised billing period: {value!r}") from None

    @property
    def is_fixed(self) -> bool:
        return self.unit == FIXED

    def add_to(self, start: date) -> date:
        """Return the date this period ends when it starts on ``start``."""
        if self.unit == DAY:
            return start + timedelta(days=self.count)
        if self.unit == MONTH:
            return add_months(start, self.count)
        if self.unit == YEAR:
            return add_months(start, self.count * 12)
        return self.fixed_date

    @property
    def text(self) -> str:
        """Human-readable form, e.g. "1 Month", "30 Days", "Lifetime"."""
        if self.is_fixed:
            if self.fixed_date == LIFETIME_DATE:
                return "Lifetime"
            return f"Until {self.fixed_date.isoformat()}"
        singular, plural = _UNIT_NAMES[self.unit]
        return f"{self.count} {singular if self.count == 1 else plural}"

    @property
    def paddle_interval(self) -> str:
        """Billing cycle interval understood by Paddle. Fixed periods bill yearly."""
        return {DAY: "day", MONTH: "month", YEAR: "year"}.get(self.unit, "year")

    @property
    def paddle_frequency(self) -> int:
        return 1 if self.is_fixed else self.count
