"""
BudgetPace - Data Schema Module.

This module defines the core data models for the BudgetPace system.
All monetary fields use Decimal type to ensure financial precision and all
calendar fields use date (no time-of-day component).

Agency Context:
    - Gross amounts include agency commission and are billed to the client
    - Net amounts are what is actually placed on the ad platform
    - Campaign spend and live daily budgets come from the platforms (net)
    - Budget configurations are entered by the agency (gross)

Classes:
    BudgetType: Recurring (per calendar month) or Fixed (one date range).
    CommissionType: Fixed amount or percentage commission.
    CampaignStatus: Platform delivery status of a campaign.
    AdPlatform: Source ad platform of a campaign.
    PacingStatus: Deviation-based pacing tier.
    AlertType: Closed set of alert kinds.
    AlertSeverity: Alert severity levels.
    PutStatus: Outcome of a store write.
    BudgetPeriod: One contiguous span with a fixed amount.
    RecurringRawConfig / FixedRawConfig: Editable form state echo.
    BudgetHistoryEntry: Append-only audit record of a budget save.
    CampaignBudgetConfig: The active budget configuration of a campaign.
    Commission: Client-level commission setting.
    Campaign: External, read-only campaign data from an ad platform.
    Client: External, read-only ad account owned by an agency.
    AllocationResult: Budget resolved for a reporting window.
    ExtensionQuote: Suggested top-up for extending a fixed period.
    PacingResult: Complete pacing analysis for a campaign.
    AlertSettings: Per-agency alert thresholds and enabled kinds.
    Alert: A raised alert.
    CampaignPacingRow: One dashboard row.
    DashboardSnapshot: Dashboard rows with KPI totals.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from budgetpace.errors import ValidationError


class BudgetType(Enum):
    """Budget model of a campaign configuration."""

    RECURRING = "recurring"
    FIXED = "fixed"


class CommissionType(Enum):
    """Commission model of a client."""

    FIXED = "fixed"
    PERCENTAGE = "percentage"


class CampaignStatus(Enum):
    """Delivery status reported by the ad platform."""

    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"

    @classmethod
    def from_platform(cls, value: str) -> "CampaignStatus":
        """
        Maps a platform status string to a CampaignStatus.

        Anything that is neither active nor paused is treated as ended.

        Args:
            value: Status as reported by the platform (any case).

        Returns:
            Matching CampaignStatus.
        """
        normalised = (value or "").strip().upper()
        if normalised in ("ACTIVE", "ENABLED"):
            return cls.ACTIVE
        if normalised == "PAUSED":
            return cls.PAUSED
        return cls.ENDED


class AdPlatform(Enum):
    """Ad platform a campaign is served on."""

    GOOGLE = "google"
    META = "meta"


class PacingStatus(Enum):
    """
    Pacing classification for campaign spend.

    Attributes:
        ON_TRACK: Live daily budget within 5% of the recommended daily.
        ATTENTION: Deviation above 5% and up to 15%.
        CRITICAL: Deviation above 15%, overspent, or no live budget.
        DISABLED: Not active, window finished or no budget to pace against.
    """

    ON_TRACK = "ON_TRACK"
    ATTENTION = "ATTENTION"
    CRITICAL = "CRITICAL"
    DISABLED = "DISABLED"

    @property
    def colour(self) -> str:
        """Status dot colour used by the dashboard."""
        return _STATUS_COLOURS[self]

    @property
    def label(self) -> str:
        """Human-readable status description."""
        return _STATUS_LABELS[self]


_STATUS_COLOURS = {
    PacingStatus.ON_TRACK: "green",
    PacingStatus.ATTENTION: "yellow",
    PacingStatus.CRITICAL: "red",
    PacingStatus.DISABLED: "gray",
}

_STATUS_LABELS = {
    PacingStatus.ON_TRACK: "On Track (±5%)",
    PacingStatus.ATTENTION: "Attention Needed (±15%)",
    PacingStatus.CRITICAL: "Critical Action Required",
    PacingStatus.DISABLED: "Disabled / Finished",
}


class AlertType(Enum):
    """Closed set of alert kinds."""

    DAILY_BUDGET_OVER = "daily_budget_over"
    DAILY_BUDGET_UNDER = "daily_budget_under"
    PROGRESS_MISMATCH_OVER = "progress_mismatch_over"
    PROGRESS_MISMATCH_UNDER = "progress_mismatch_under"
    CAMPAIGN_ENDING = "campaign_ending"
    BUDGET_ALMOST_EXHAUSTED = "budget_almost_exhausted"
    BUDGET_NOT_SET = "budget_not_set"


class AlertSeverity(Enum):
    """Alert severity levels."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PutStatus(Enum):
    """Outcome of a store write."""

    SAVED = "saved"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class BudgetPeriod:
    """
    One contiguous span during which a fixed monetary amount applies.

    Periods are never mutated in place; an extension produces a new
    period that supersedes the old one.

    Attributes:
        start_date: First day of the period (inclusive).
        end_date: Last day of the period (inclusive).
        amount: Budget amount for the whole period (gross).

    Raises:
        ValidationError: If end_date precedes start_date or amount < 0.
    """

    start_date: date
    end_date: date
    amount: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", Decimal(str(self.amount)))
        if self.end_date < self.start_date:
            raise ValidationError.for_field(
                "endDate",
                self.end_date.isoformat(),
                f"End date {self.end_date} is before start date {self.start_date}"
            )
        if self.amount < Decimal("0"):
            raise ValidationError.for_field(
                "amount",
                str(self.amount),
                "Amount must be a non-negative number"
            )

    def contains(self, day: date) -> bool:
        """Returns True if the day falls inside the period."""
        return self.start_date <= day <= self.end_date


@dataclass
class RecurringRawConfig:
    """Form state of a recurring budget: "YYYY-MM" months and monthly amount."""

    start_month: str
    end_month: str
    amount: Decimal


@dataclass
class FixedRawConfig:
    """Form state of a fixed budget: explicit date range and total amount."""

    start: date
    end: date
    amount: Decimal


RawConfig = Union[RecurringRawConfig, FixedRawConfig]


@dataclass
class BudgetHistoryEntry:
    """
    Append-only audit record, one per save or extension.

    Attributes:
        timestamp: When the save happened (UTC).
        type: Budget type that was saved.
        amount: Amount entered (monthly amount or period total).
        period_description: Human-readable period, e.g. "2025-12 ~ 2026-02".
        actor: Who performed the save, when known.
    """

    timestamp: datetime
    type: BudgetType
    amount: Decimal
    period_description: str
    actor: Optional[str] = None


@dataclass
class CampaignBudgetConfig:
    """
    The single active budget configuration of a campaign.

    Attributes:
        campaign_id: Campaign identifier.
        type: Allocation rule applied to the periods.
        periods: Ordered, non-overlapping budget periods.
        history: Append-only audit trail.
        raw_config: Editable form state kept in sync with periods.
    """

    campaign_id: str
    type: BudgetType
    periods: List[BudgetPeriod] = field(default_factory=list)
    history: List[BudgetHistoryEntry] = field(default_factory=list)
    raw_config: Optional[RawConfig] = None

    @property
    def has_periods(self) -> bool:
        """Returns True if at least one period is configured."""
        return len(self.periods) > 0


@dataclass
class Commission:
    """
    Agency commission configured for a client.

    Attributes:
        type: Fixed amount or percentage.
        value: Commission amount, or percentage in [0, 100).
    """

    type: CommissionType
    value: Decimal


@dataclass
class Campaign:
    """
    Campaign data supplied by the ad-platform sync. Read-only to the core.

    Attributes:
        id: Platform campaign identifier.
        name: Campaign name.
        client_id: Ad account the campaign belongs to.
        status: Delivery status.
        spend_to_date: Net spend within the requested window.
        live_daily_budget: Net daily budget currently set on the platform.
        platform: Ad platform serving the campaign.
    """

    id: str
    name: str
    client_id: str
    status: CampaignStatus
    spend_to_date: Decimal
    live_daily_budget: Decimal
    platform: AdPlatform = AdPlatform.META

    @property
    def is_active(self) -> bool:
        return self.status == CampaignStatus.ACTIVE


@dataclass
class Client:
    """An ad account managed by an agency."""

    id: str
    agency_id: str
    name: str
    platform: AdPlatform = AdPlatform.META


@dataclass
class AllocationResult:
    """
    Budget resolved for a reporting window.

    Attributes:
        amount: Allocated (gross) budget for the window, unrounded.
        contributing_periods: Periods that overlap the window.
    """

    amount: Decimal
    contributing_periods: List[BudgetPeriod] = field(default_factory=list)


@dataclass
class ExtensionQuote:
    """
    Suggested top-up for extending a fixed period.

    Attributes:
        period: Period being extended.
        new_end: Requested new end date.
        added_days: Days added beyond the current end date.
        current_daily: Current daily budget of the period.
        suggested_amount: current_daily * added_days rounded to a whole unit.
    """

    period: BudgetPeriod
    new_end: date
    added_days: int
    current_daily: Decimal
    suggested_amount: Decimal


@dataclass
class PacingResult:
    """
    Complete pacing analysis for a campaign.

    Attributes:
        campaign: Source campaign data.
        allocated_budget: Gross budget allocated to the window.
        gross_spend: Spend converted to gross.
        days_left: Days from today to window end (inclusive), 0 if passed.
        recommended_daily: Gross daily spend that exactly exhausts the
            remaining budget by the window end.
        projected_spend: Gross spend projected at the window end.
        deviation: |1 - live / recommended|, None when not computed.
        status: Pacing tier.
        window_start: Reporting window start.
        window_end: Reporting window end, None for open windows.
    """

    campaign: Campaign
    allocated_budget: Decimal
    gross_spend: Decimal
    days_left: int
    recommended_daily: Decimal
    projected_spend: Decimal
    deviation: Optional[Decimal]
    status: PacingStatus
    window_start: Optional[date] = None
    window_end: Optional[date] = None

    @property
    def remaining_budget(self) -> Decimal:
        return self.allocated_budget - self.gross_spend

    @property
    def spend_percentage(self) -> Decimal:
        """Gross spend as a percentage of the allocated budget (0 if none)."""
        if self.allocated_budget <= Decimal("0"):
            return Decimal("0")
        return (self.gross_spend / self.allocated_budget) * Decimal("100")

    @property
    def projected_percentage(self) -> Decimal:
        """Projected spend as a percentage of the allocated budget."""
        if self.allocated_budget <= Decimal("0"):
            return Decimal("0")
        return (self.projected_spend / self.allocated_budget) * Decimal("100")

    @property
    def is_projected_over_budget(self) -> bool:
        return self.projected_spend > self.allocated_budget


DEFAULT_ENABLED_ALERT_TYPES = [alert_type for alert_type in AlertType]


@dataclass
class AlertSettings:
    """
    Per-agency alert configuration.

    Thresholds are percentages except ending_days_threshold (days).
    """

    enabled_types: List[AlertType] = field(
        default_factory=lambda: list(DEFAULT_ENABLED_ALERT_TYPES)
    )
    daily_budget_threshold: Decimal = Decimal("20")
    progress_mismatch_threshold: Decimal = Decimal("15")
    exhaustion_threshold: Decimal = Decimal("95")
    ending_days_threshold: int = 7
    ending_spend_rate_threshold: Decimal = Decimal("80")

    def is_enabled(self, alert_type: AlertType) -> bool:
        return alert_type in self.enabled_types


@dataclass
class Alert:
    """
    A raised alert. Identity within an agency is (campaign_id, type).

    Attributes:
        id: Store-assigned identifier.
        account_id: Agency account the alert belongs to.
        campaign_id: Campaign that triggered the alert.
        campaign_name: Campaign name at the time of the check.
        type: Alert kind.
        severity: Alert severity.
        message: Human-readable message.
        metadata: Computed figures behind the alert.
        is_read: Whether the alert has been acknowledged.
        created_at: When the alert was (re)raised (UTC).
    """

    account_id: str
    campaign_id: str
    campaign_name: str
    type: AlertType
    severity: AlertSeverity
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    is_read: bool = False
    created_at: Optional[datetime] = None
    id: Optional[str] = None

    @property
    def key(self) -> tuple:
        return (self.account_id, self.campaign_id, self.type)


@dataclass
class CampaignPacingRow:
    """One dashboard row: campaign, its budget resolution and pacing."""

    client_name: str
    pacing: PacingResult
    has_custom_budget: bool
    commission: Optional[Commission] = None

    @property
    def campaign(self) -> Campaign:
        return self.pacing.campaign


@dataclass
class DashboardSnapshot:
    """
    Dashboard view of a client for one reporting window.

    Attributes:
        timestamp: When the snapshot was built (UTC).
        version: BudgetPace version identifier.
        window_start: Reporting window start.
        window_end: Reporting window end.
        rows: Per-campaign pacing rows.
        total_budget: Sum of allocated budgets.
        total_spend: Sum of gross spend.
    """

    timestamp: datetime
    version: str
    window_start: date
    window_end: date
    rows: List[CampaignPacingRow]
    total_budget: Decimal
    total_spend: Decimal

    # Usage above this percentage is flagged as Critical on the KPI grid.
    USAGE_CRITICAL_PERCENTAGE = Decimal("90")

    @property
    def usage_percentage(self) -> Decimal:
        if self.total_budget <= Decimal("0"):
            return Decimal("0")
        return (self.total_spend / self.total_budget) * Decimal("100")

    @property
    def usage_trend(self) -> str:
        if self.usage_percentage > self.USAGE_CRITICAL_PERCENTAGE:
            return "Critical"
        return "Normal"

    def count_by_status(self, status: PacingStatus) -> int:
        return sum(1 for row in self.rows if row.pacing.status == status)
