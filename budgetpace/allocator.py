"""
BudgetPace - Budget Allocator Module.

Resolves a campaign's configured budget periods into the budget that
applies to a requested reporting window.

Allocation Rules:
    - Fixed: each period's amount is spread evenly over its days and the
      window receives the share of the days it covers
    - Recurring: a window that touches a monthly period at all receives
      that month's full amount (no pro-rating)

Classes:
    BudgetAllocator: Window allocation, recurring expansion and extensions.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from budgetpace.date_logic import DateLike, DateManager
from budgetpace.errors import ValidationError
from budgetpace.schema import (
    AllocationResult,
    BudgetPeriod,
    BudgetType,
    CampaignBudgetConfig,
    ExtensionQuote,
)


class BudgetAllocator:
    """
    Computes allocated budgets from campaign budget configurations.

    Allocation amounts are returned unrounded so that sub-windows of a
    fixed period always sum back to the period amount.

    Attributes:
        date_manager: DateManager instance for day arithmetic.

    Example:
        >>> allocator = BudgetAllocator(DateManager())
        >>> result = allocator.allocate(config, "2025-12-01", "2025-12-31")
        >>> result.amount
        Decimal('310000')
    """

    def __init__(self, date_manager: DateManager):
        """
        Initialises the BudgetAllocator with a DateManager.

        Args:
            date_manager: DateManager instance for date calculations.
        """
        self._date_manager = date_manager

    def allocate(
        self,
        config: Optional[CampaignBudgetConfig],
        query_start: DateLike,
        query_end: DateLike
    ) -> AllocationResult:
        """
        Computes the budget allocated to a reporting window.

        Every overlapping period contributes; overlapping periods are
        summed as they are, without de-duplication.

        Args:
            config: Campaign budget configuration, or None.
            query_start: Window start.
            query_end: Window end.

        Returns:
            AllocationResult with the amount and contributing periods.
            An absent or empty configuration allocates 0.

        Raises:
            ValidationError: If the window ends before it starts.
        """
        self._date_manager.total_days(query_start, query_end)

        if config is None or not config.periods:
            return AllocationResult(amount=Decimal("0"))

        total = Decimal("0")
        contributing: List[BudgetPeriod] = []

        for period in config.periods:
            overlap = self._date_manager.overlap_days(
                query_start, query_end, period.start_date, period.end_date
            )
            if overlap == 0:
                continue

            total += self.period_contribution(config.type, period, overlap)
            contributing.append(period)

        return AllocationResult(amount=total, contributing_periods=contributing)

    def period_contribution(
        self,
        budget_type: BudgetType,
        period: BudgetPeriod,
        overlap: int
    ) -> Decimal:
        """
        Returns what one period contributes for a given overlap.

        Args:
            budget_type: Allocation rule of the configuration.
            period: Budget period.
            overlap: Days the window shares with the period (> 0).

        Returns:
            Contribution of the period to the window.
        """
        if budget_type == BudgetType.RECURRING:
            return period.amount

        period_days = self._date_manager.total_days(period.start_date, period.end_date)
        # amount * overlap / days equals amount / days * overlap, without
        # the intermediate daily figure losing digits
        return period.amount * Decimal(overlap) / Decimal(period_days)

    def generate_recurring_periods(
        self,
        start_month: str,
        end_month: str,
        amount: Decimal
    ) -> List[BudgetPeriod]:
        """
        Expands a monthly budget into one period per calendar month.

        Args:
            start_month: First month, "YYYY-MM".
            end_month: Last month, "YYYY-MM" (inclusive).
            amount: Monthly amount.

        Returns:
            Non-overlapping periods from the first to the last day of
            each month.

        Raises:
            ValidationError: If a month is malformed or end precedes start.
        """
        return [
            BudgetPeriod(
                start_date=self._date_manager.first_day_of_month(year, month),
                end_date=self._date_manager.last_day_of_month(year, month),
                amount=amount,
            )
            for year, month in self._date_manager.iter_months(start_month, end_month)
        ]

    def build_fixed_period(
        self,
        start: DateLike,
        end: DateLike,
        amount: Decimal
    ) -> BudgetPeriod:
        """Builds the single period of a fixed budget."""
        return BudgetPeriod(
            start_date=self._date_manager.normalise(start),
            end_date=self._date_manager.normalise(end),
            amount=amount,
        )

    def find_active_period(
        self,
        config: Optional[CampaignBudgetConfig],
        today: DateLike
    ) -> Optional[BudgetPeriod]:
        """
        Returns the first configured period containing today, if any.
        """
        if config is None:
            return None
        day = self._date_manager.normalise(today)
        for period in config.periods:
            if period.contains(day):
                return period
        return None

    def quote_extension(self, period: BudgetPeriod, new_end: DateLike) -> ExtensionQuote:
        """
        Suggests the top-up for extending a fixed period to a new end date.

        The added days exclude the current end date, which the period
        already covers. The suggestion keeps the current daily budget and
        is rounded to a whole currency unit (half up).

        Args:
            period: Current fixed period.
            new_end: Requested new end date.

        Returns:
            ExtensionQuote with the suggested amount.

        Raises:
            ValidationError: If new_end is not after the current end date.
        """
        new_end_date = self._date_manager.normalise(new_end)
        if new_end_date <= period.end_date:
            raise ValidationError.for_field(
                "newEnd",
                new_end_date.isoformat(),
                f"New end date must be after the current end date {period.end_date}"
            )

        added_days = self._date_manager.total_days(period.end_date, new_end_date) - 1
        current_days = self._date_manager.total_days(period.start_date, period.end_date)
        current_daily = period.amount / Decimal(current_days)
        suggested = (period.amount * Decimal(added_days) / Decimal(current_days)).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )

        return ExtensionQuote(
            period=period,
            new_end=new_end_date,
            added_days=added_days,
            current_daily=current_daily,
            suggested_amount=suggested,
        )

    def apply_extension(
        self,
        period: BudgetPeriod,
        new_end: date,
        add_amount: Decimal
    ) -> BudgetPeriod:
        """
        Builds the period that supersedes an extended one.

        Raises:
            ValidationError: If add_amount is negative or new_end is not
                after the current end date.
        """
        if add_amount < Decimal("0"):
            raise ValidationError.for_field(
                "addAmount", str(add_amount), "Top-up amount must be a non-negative number"
            )
        if new_end <= period.end_date:
            raise ValidationError.for_field(
                "newEnd",
                new_end.isoformat(),
                f"New end date must be after the current end date {period.end_date}"
            )
        return BudgetPeriod(
            start_date=period.start_date,
            end_date=new_end,
            amount=period.amount + add_amount,
        )
