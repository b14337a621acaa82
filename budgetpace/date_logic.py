"""
BudgetPace - Date Logic Module.

This module provides the calendar arithmetic behind budget allocation:
inclusive overlap and span counts between date ranges, month boundaries
for recurring budgets, and days-left counts for pacing.

Every input is normalised to a plain calendar date before subtracting,
so time-of-day components, time zones and daylight-saving shifts never
change a day count.

Classes:
    DateManager: Manages all date-related calculations for budget pacing.
"""

import calendar
import re
from datetime import date, datetime, timezone
from typing import Iterator, Optional, Tuple, Union

from budgetpace.errors import ValidationError

DateLike = Union[date, datetime, str]

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


class DateManager:
    """
    Manages date calculations for budget allocation and pacing.

    All day counts are inclusive of both endpoints: a range from a day
    to the same day spans 1 day.

    Example:
        >>> dm = DateManager()
        >>> dm.overlap_days("2025-12-01", "2025-12-31", "2025-12-01", "2026-01-31")
        31
        >>> dm.total_days(date(2024, 2, 1), date(2024, 2, 29))
        29
    """

    def normalise(self, value: DateLike) -> date:
        """
        Strips any sub-day component from a date-like value.

        Aware datetimes are converted to UTC first; naive datetimes are
        taken at face value. Strings must be ISO formatted
        ("YYYY-MM-DD", optionally followed by a time).

        Args:
            value: date, datetime or ISO string.

        Returns:
            The calendar date.

        Raises:
            ValidationError: If the value cannot be read as a date.
        """
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(timezone.utc)
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            text = value.strip()
            try:
                if len(text) == 10:
                    return date.fromisoformat(text)
                return self.normalise(datetime.fromisoformat(text.replace("Z", "+00:00")))
            except ValueError:
                pass
        raise ValidationError.for_field(
            "date", value, f"'{value}' is not a valid date (expected YYYY-MM-DD)"
        )

    def overlap_days(
        self,
        a_start: DateLike,
        a_end: DateLike,
        b_start: DateLike,
        b_end: DateLike
    ) -> int:
        """
        Counts the days two ranges have in common.

        Args:
            a_start: First range start.
            a_end: First range end.
            b_start: Second range start.
            b_end: Second range end.

        Returns:
            Number of shared days including both endpoints, 0 if the
            ranges do not overlap.
        """
        start = max(self.normalise(a_start), self.normalise(b_start))
        end = min(self.normalise(a_end), self.normalise(b_end))

        if start > end:
            return 0

        return (end - start).days + 1

    def total_days(self, start: DateLike, end: DateLike) -> int:
        """
        Counts the days in a range, inclusive of both endpoints.

        Args:
            start: Range start.
            end: Range end.

        Returns:
            Number of days, minimum 1.

        Raises:
            ValidationError: If end precedes start.
        """
        start_date = self.normalise(start)
        end_date = self.normalise(end)

        if end_date < start_date:
            raise ValidationError.for_field(
                "end",
                end_date.isoformat(),
                f"End date {end_date} is before start date {start_date}"
            )

        return (end_date - start_date).days + 1

    def days_left(self, today: DateLike, end: Optional[DateLike]) -> int:
        """
        Counts the days from today through the end date, inclusive.

        Today counts as a spending day, so the last day returns 1.

        Args:
            today: Reference date.
            end: Window end date. None means an open window.

        Returns:
            Days remaining, 0 if the end date has passed or is None.
        """
        if end is None:
            return 0
        today_date = self.normalise(today)
        end_date = self.normalise(end)
        if end_date < today_date:
            return 0
        return self.overlap_days(today_date, end_date, today_date, end_date)

    def days_elapsed(self, start: DateLike, today: DateLike, end: DateLike) -> int:
        """
        Counts the days of a range that have started by today, inclusive.

        Returns 0 before the range starts and the full span after it ends.
        """
        start_date = self.normalise(start)
        today_date = self.normalise(today)
        if today_date < start_date:
            return 0
        return self.overlap_days(start_date, today_date, start_date, end)

    def is_leap_year(self, year: int) -> bool:
        """
        Determines if the specified year is a leap year.

        Args:
            year: Four-digit year to check.

        Returns:
            True if the year is a leap year, False otherwise.
        """
        return calendar.isleap(year)

    def get_days_in_month(self, year: int, month: int) -> int:
        """
        Returns the total number of days in the specified month.

        Args:
            year: Four-digit year.
            month: Month number (1-12).

        Returns:
            Number of days in the specified month (28-31).

        Raises:
            ValueError: If month is not in range 1-12.
        """
        if not 1 <= month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {month}")
        return calendar.monthrange(year, month)[1]

    def first_day_of_month(self, year: int, month: int) -> date:
        return date(year, month, 1)

    def last_day_of_month(self, year: int, month: int) -> date:
        return date(year, month, self.get_days_in_month(year, month))

    def parse_month(self, value: str) -> Tuple[int, int]:
        """
        Parses a "YYYY-MM" month string.

        Args:
            value: Month string.

        Returns:
            Tuple of (year, month).

        Raises:
            ValidationError: If the string is not a valid month.
        """
        match = MONTH_PATTERN.match((value or "").strip())
        if not match or not 1 <= int(match.group(2)) <= 12:
            raise ValidationError.for_field(
                "month", value, f"'{value}' is not a valid month (expected YYYY-MM)"
            )
        return int(match.group(1)), int(match.group(2))

    def iter_months(self, start_month: str, end_month: str) -> Iterator[Tuple[int, int]]:
        """
        Yields (year, month) for every calendar month from start to end.

        Raises:
            ValidationError: If end_month precedes start_month.
        """
        year, month = self.parse_month(start_month)
        end_year, end_month_number = self.parse_month(end_month)

        if (end_year, end_month_number) < (year, month):
            raise ValidationError.for_field(
                "endMonth",
                end_month,
                f"End month {end_month} is before start month {start_month}"
            )

        while (year, month) <= (end_year, end_month_number):
            yield year, month
            month += 1
            if month > 12:
                month = 1
                year += 1

    def month_window(self, reference_date: Optional[DateLike] = None) -> Tuple[date, date]:
        """
        Returns the first and last day of the month containing a date.

        Args:
            reference_date: Date inside the month. Defaults to today.
        """
        if reference_date is None:
            reference_date = date.today()
        day = self.normalise(reference_date)
        return (
            self.first_day_of_month(day.year, day.month),
            self.last_day_of_month(day.year, day.month),
        )

