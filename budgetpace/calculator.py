"""
BudgetPace - Pacing Engine Module.

This module provides the pacing calculations that drive the dashboard
status dot and the alert rules: gross spend, Recommended Daily Spend,
projected end-of-window spend and the deviation-based status tier.

All calculations use Decimal arithmetic. Results are left unrounded;
presentation layers round for display.

Classes:
    PacingEngine: Core calculation engine for pacing and status.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from budgetpace.commission import CommissionConverter
from budgetpace.date_logic import DateLike, DateManager
from budgetpace.schema import Campaign, Commission, PacingResult, PacingStatus


class PacingEngine:
    """
    Core calculation engine for budget pacing.

    Deviation compares the live platform daily budget with the
    recommended daily spend: deviation = |1 - live / recommended|.

    Status Bands (lower band inclusive):
        - ON_TRACK: deviation <= 0.05
        - ATTENTION: 0.05 < deviation <= 0.15
        - CRITICAL: deviation > 0.15

    Attributes:
        date_manager: DateManager instance for time calculations.
        converter: CommissionConverter for gross/net conversion.

    Example:
        >>> engine = PacingEngine(DateManager())
        >>> result = engine.analyse_campaign(
        ...     campaign, Decimal("310000"), None, date(2025, 12, 10),
        ...     date(2025, 12, 1), date(2025, 12, 31))
        >>> result.status
        <PacingStatus.ON_TRACK: 'ON_TRACK'>
    """

    # Deviation band limits (fractions of the recommended daily spend)
    ON_TRACK_THRESHOLD = Decimal("0.05")
    ATTENTION_THRESHOLD = Decimal("0.15")

    def __init__(
        self,
        date_manager: DateManager,
        converter: Optional[CommissionConverter] = None
    ):
        """
        Initialises the PacingEngine.

        Args:
            date_manager: DateManager instance for date calculations.
            converter: CommissionConverter. Defaults to a new instance.
        """
        self._date_manager = date_manager
        self._converter = converter or CommissionConverter()

    def calculate_gross_spend(
        self,
        campaign: Campaign,
        allocated_budget: Decimal,
        commission: Optional[Commission]
    ) -> Decimal:
        """
        Converts the campaign's platform spend to gross spend.

        For fixed commissions the fee is pro-rated against the net ad
        budget of the window, i.e. the allocated gross budget minus the fee.

        Args:
            campaign: Campaign with net spend.
            allocated_budget: Gross budget of the window.
            commission: Client commission, or None.

        Returns:
            Gross spend.
        """
        ad_budget = self._converter.to_net(allocated_budget, commission)
        return self._converter.gross_spend(campaign.spend_to_date, commission, ad_budget)

    def calculate_recommended_daily(
        self,
        allocated_budget: Decimal,
        gross_spend: Decimal,
        days_left: int
    ) -> Decimal:
        """
        Calculates the Recommended Daily Spend (gross).

        Formula: max(0, Allocated - Gross_Spend) / Days_Left

        Args:
            allocated_budget: Gross budget of the window.
            gross_spend: Gross spend to date.
            days_left: Days remaining in the window, inclusive of today.

        Returns:
            Recommended daily gross spend, 0 when no days are left.
        """
        if days_left <= 0:
            return Decimal("0")
        remaining = max(Decimal("0"), allocated_budget - gross_spend)
        return remaining / Decimal(days_left)

    def calculate_projected_spend(
        self,
        campaign: Campaign,
        gross_spend: Decimal,
        days_left: int,
        commission: Optional[Commission]
    ) -> Decimal:
        """
        Projects gross spend at the end of the window.

        Active campaigns keep spending their live daily budget (scaled to
        gross) for every day left; paused and ended campaigns accrue
        nothing further.
        """
        if not campaign.is_active or days_left <= 0:
            return gross_spend
        daily_gross = self._converter.daily_gross(campaign.live_daily_budget, commission)
        return gross_spend + daily_gross * Decimal(days_left)

    def calculate_deviation(
        self,
        live_daily_budget: Decimal,
        recommended_daily: Decimal
    ) -> Optional[Decimal]:
        """
        Returns |1 - live / recommended|, or None if recommended is 0.
        """
        if recommended_daily == Decimal("0"):
            return None
        ratio = live_daily_budget / recommended_daily
        return abs(Decimal("1") - ratio)

    def classify_deviation(self, deviation: Decimal) -> PacingStatus:
        """
        Maps a deviation to its status band.

        Ties belong to the lower band: exactly 0.05 is ON_TRACK and
        exactly 0.15 is ATTENTION.

        Args:
            deviation: Non-negative deviation.

        Returns:
            ON_TRACK, ATTENTION or CRITICAL.
        """
        if deviation <= self.ON_TRACK_THRESHOLD:
            return PacingStatus.ON_TRACK
        elif deviation <= self.ATTENTION_THRESHOLD:
            return PacingStatus.ATTENTION
        else:
            return PacingStatus.CRITICAL

    def determine_status(
        self,
        campaign: Campaign,
        allocated_budget: Decimal,
        gross_spend: Decimal,
        days_left: int,
        recommended_daily: Decimal,
        window_end: Optional[date]
    ) -> PacingStatus:
        """
        Determines the pacing status of a campaign.

        Decision Order:
        - DISABLED: campaign not active, open window, or nothing allocated
        - CRITICAL: gross spend already exceeds the allocated budget
        - DISABLED: no days left in the window
        - CRITICAL: live daily budget is 0 while active
        - CRITICAL: live budget set but nothing remains to spend
        - Otherwise the deviation band

        Returns:
            PacingStatus for the campaign.
        """
        if not campaign.is_active or window_end is None:
            return PacingStatus.DISABLED
        if allocated_budget <= Decimal("0"):
            return PacingStatus.DISABLED

        if allocated_budget - gross_spend < Decimal("0"):
            return PacingStatus.CRITICAL

        if days_left <= 0:
            return PacingStatus.DISABLED

        if campaign.live_daily_budget == Decimal("0"):
            return PacingStatus.CRITICAL

        deviation = self.calculate_deviation(campaign.live_daily_budget, recommended_daily)
        if deviation is None:
            return PacingStatus.CRITICAL

        return self.classify_deviation(deviation)

    def analyse_campaign(
        self,
        campaign: Campaign,
        allocated_budget: Decimal,
        commission: Optional[Commission],
        today: DateLike,
        window_start: Optional[DateLike],
        window_end: Optional[DateLike]
    ) -> PacingResult:
        """
        Performs complete pacing analysis on a single campaign.

        Args:
            campaign: Campaign to analyse (net figures).
            allocated_budget: Gross budget allocated to the window.
            commission: Client commission, or None.
            today: Reference date.
            window_start: Reporting window start.
            window_end: Reporting window end, None for an open window.

        Returns:
            PacingResult with all calculated metrics.
        """
        today_date = self._date_manager.normalise(today)
        start_date = self._date_manager.normalise(window_start) if window_start else None
        end_date = self._date_manager.normalise(window_end) if window_end else None

        gross_spend = self.calculate_gross_spend(campaign, allocated_budget, commission)
        days_left = self._date_manager.days_left(today_date, end_date)
        recommended = self.calculate_recommended_daily(allocated_budget, gross_spend, days_left)
        projected = self.calculate_projected_spend(campaign, gross_spend, days_left, commission)
        status = self.determine_status(
            campaign, allocated_budget, gross_spend, days_left, recommended, end_date
        )

        deviation = None
        if campaign.is_active and days_left > 0:
            deviation = self.calculate_deviation(campaign.live_daily_budget, recommended)

        return PacingResult(
            campaign=campaign,
            allocated_budget=allocated_budget,
            gross_spend=gross_spend,
            days_left=days_left,
            recommended_daily=recommended,
            projected_spend=projected,
            deviation=deviation,
            status=status,
            window_start=start_date,
            window_end=end_date,
        )
