"""
BudgetPace - Alert Rule Engine Module.

Evaluates a campaign's pacing figures against per-agency thresholds and
emits typed alerts. Evaluation is stateless; de-duplication by
(campaign, type) happens when alerts are upserted into the alert store.

Rules:
    - budget_not_set: active campaign without a budget configuration
    - daily_budget_over / daily_budget_under: live daily budget deviates
      from the recommended daily spend by more than the threshold
    - progress_mismatch_over / progress_mismatch_under: budget progress
      deviates from time progress by more than the threshold
    - campaign_ending: few days left but spend rate still low
    - budget_almost_exhausted: spend rate at or above the threshold

Classes:
    AlertRuleEngine: Stateless rule evaluation.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_EVEN
from typing import List, Optional

from budgetpace.allocator import BudgetAllocator
from budgetpace.date_logic import DateManager
from budgetpace.schema import (
    Alert,
    AlertSettings,
    AlertSeverity,
    AlertType,
    Campaign,
    CampaignBudgetConfig,
    PacingResult,
)

HUNDRED = Decimal("100")


def _rounded(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_EVEN)


class AlertRuleEngine:
    """
    Evaluates alert rules for one campaign at a time.

    Only active campaigns are evaluated. Disabled alert kinds are never
    emitted.

    Example:
        >>> engine = AlertRuleEngine(DateManager())
        >>> alerts = engine.evaluate("agency_1", campaign, config, pacing,
        ...                          AlertSettings(), date(2025, 12, 20))
    """

    def __init__(
        self,
        date_manager: DateManager,
        allocator: Optional[BudgetAllocator] = None
    ):
        self._date_manager = date_manager
        self._allocator = allocator or BudgetAllocator(date_manager)

    def evaluate(
        self,
        account_id: str,
        campaign: Campaign,
        config: Optional[CampaignBudgetConfig],
        pacing: Optional[PacingResult],
        settings: AlertSettings,
        today: date
    ) -> List[Alert]:
        """
        Runs every enabled rule for a campaign.

        Args:
            account_id: Agency account that owns the alerts.
            campaign: Campaign under evaluation.
            config: Campaign budget configuration, or None.
            pacing: Pacing analysis for the current window, or None when
                no budget is configured.
            settings: Agency alert settings.
            today: Reference date.

        Returns:
            Alerts raised for the campaign (possibly empty).
        """
        if not campaign.is_active:
            return []

        if config is None or not config.has_periods:
            alert = self.check_budget_not_set(account_id, campaign, settings)
            return [alert] if alert else []

        if pacing is None:
            return []

        candidates = [
            self.check_daily_budget(account_id, campaign, pacing, settings),
            self.check_progress_mismatch(account_id, campaign, pacing, settings, today),
            self.check_campaign_ending(account_id, campaign, config, pacing, settings, today),
            self.check_budget_exhausted(account_id, campaign, pacing, settings),
        ]
        return [alert for alert in candidates if alert is not None]

    def check_budget_not_set(
        self,
        account_id: str,
        campaign: Campaign,
        settings: AlertSettings
    ) -> Optional[Alert]:
        """Raises budget_not_set for an active campaign without a budget."""
        if not settings.is_enabled(AlertType.BUDGET_NOT_SET):
            return None
        return self._build(
            account_id,
            campaign,
            AlertType.BUDGET_NOT_SET,
            AlertSeverity.LOW,
            "Budget not set: campaign is active but has no custom budget configured.",
            {},
        )

    def check_daily_budget(
        self,
        account_id: str,
        campaign: Campaign,
        pacing: PacingResult,
        settings: AlertSettings
    ) -> Optional[Alert]:
        """
        Compares the live daily budget with the recommended daily spend.

        Metric: |live - recommended| / recommended * 100. Skipped when
        either figure is 0.
        """
        recommended = pacing.recommended_daily
        live = campaign.live_daily_budget
        if recommended <= Decimal("0") or live <= Decimal("0"):
            return None

        diff_percent = abs(live - recommended) / recommended * HUNDRED
        if diff_percent <= settings.daily_budget_threshold:
            return None

        if live > recommended:
            alert_type = AlertType.DAILY_BUDGET_OVER
            message = (
                f"Daily budget over: live daily budget is {diff_percent:.1f}% "
                f"above the recommended daily spend."
            )
        else:
            alert_type = AlertType.DAILY_BUDGET_UNDER
            message = (
                f"Daily budget under: live daily budget is {diff_percent:.1f}% "
                f"below the recommended daily spend."
            )

        if not settings.is_enabled(alert_type):
            return None

        return self._build(
            account_id,
            campaign,
            alert_type,
            AlertSeverity.HIGH,
            message,
            {
                "dailyBudget": live,
                "recommendedDaily": _rounded(recommended),
                "diffPercent": _rounded(diff_percent),
            },
        )

    def check_progress_mismatch(
        self,
        account_id: str,
        campaign: Campaign,
        pacing: PacingResult,
        settings: AlertSettings,
        today: date
    ) -> Optional[Alert]:
        """
        Compares budget progress with time progress over the window.

        Budget progress is gross spend over allocated budget; time
        progress is elapsed window days over window days.
        """
        if pacing.allocated_budget <= Decimal("0"):
            return None
        if pacing.window_start is None or pacing.window_end is None:
            return None

        total = self._date_manager.total_days(pacing.window_start, pacing.window_end)
        elapsed = self._date_manager.days_elapsed(pacing.window_start, today, pacing.window_end)
        period_progress = Decimal(elapsed) / Decimal(total) * HUNDRED
        budget_progress = pacing.spend_percentage

        progress_diff = abs(budget_progress - period_progress)
        if progress_diff <= settings.progress_mismatch_threshold:
            return None

        if budget_progress > period_progress:
            alert_type = AlertType.PROGRESS_MISMATCH_OVER
            message = (
                f"Overspending: budget progress ({budget_progress:.1f}%) is "
                f"{progress_diff:.1f}% ahead of time progress ({period_progress:.1f}%)."
            )
        else:
            alert_type = AlertType.PROGRESS_MISMATCH_UNDER
            message = (
                f"Underspending: budget progress ({budget_progress:.1f}%) is "
                f"{progress_diff:.1f}% behind time progress ({period_progress:.1f}%)."
            )

        if not settings.is_enabled(alert_type):
            return None

        return self._build(
            account_id,
            campaign,
            alert_type,
            AlertSeverity.HIGH,
            message,
            {
                "periodProgress": _rounded(period_progress),
                "budgetProgress": _rounded(budget_progress),
            },
        )

    def check_campaign_ending(
        self,
        account_id: str,
        campaign: Campaign,
        config: CampaignBudgetConfig,
        pacing: PacingResult,
        settings: AlertSettings,
        today: date
    ) -> Optional[Alert]:
        """
        Warns when the budget period ends soon with a low spend rate.

        Days left are counted to the end of the period active today, or
        to the window end when no period contains today.
        """
        if not settings.is_enabled(AlertType.CAMPAIGN_ENDING):
            return None
        if pacing.allocated_budget <= Decimal("0"):
            return None

        active_period = self._allocator.find_active_period(config, today)
        if active_period is not None:
            days_left = self._date_manager.days_left(today, active_period.end_date)
        else:
            days_left = pacing.days_left

        if not 0 < days_left <= settings.ending_days_threshold:
            return None

        spend_rate = pacing.spend_percentage
        if spend_rate >= settings.ending_spend_rate_threshold:
            return None

        return self._build(
            account_id,
            campaign,
            AlertType.CAMPAIGN_ENDING,
            AlertSeverity.MEDIUM,
            f"Campaign ending soon: {days_left} day(s) left but only "
            f"{spend_rate:.1f}% of the budget has been spent.",
            {"daysLeft": days_left, "spendRate": _rounded(spend_rate)},
        )

    def check_budget_exhausted(
        self,
        account_id: str,
        campaign: Campaign,
        pacing: PacingResult,
        settings: AlertSettings
    ) -> Optional[Alert]:
        """Raises budget_almost_exhausted once spend reaches the threshold."""
        if not settings.is_enabled(AlertType.BUDGET_ALMOST_EXHAUSTED):
            return None
        if pacing.allocated_budget <= Decimal("0"):
            return None

        spend_rate = pacing.spend_percentage
        if spend_rate < settings.exhaustion_threshold:
            return None

        return self._build(
            account_id,
            campaign,
            AlertType.BUDGET_ALMOST_EXHAUSTED,
            AlertSeverity.HIGH,
            f"Budget {spend_rate:.1f}% spent: the campaign may stop delivering soon.",
            {"spendRate": _rounded(spend_rate)},
        )

    def _build(
        self,
        account_id: str,
        campaign: Campaign,
        alert_type: AlertType,
        severity: AlertSeverity,
        message: str,
        metadata: dict
    ) -> Alert:
        return Alert(
            account_id=account_id,
            campaign_id=campaign.id,
            campaign_name=campaign.name,
            type=alert_type,
            severity=severity,
            message=message,
            metadata=metadata,
        )
