"""
BudgetPace - Serialisation Module.

This module converts domain objects to and from the JSON documents kept
in the document store, and saves dashboard snapshots for audit.

Decimal values are written as strings to preserve precision. Readers
accept strings or JSON numbers, since documents saved by earlier versions
of the dashboard stored plain numbers. Field names are stable camelCase
names and must not change: previously saved budget configurations,
including their rawConfig form echo, have to remain readable.

Classes:
    DecimalEncoder: JSON encoder for Decimal, date and enum values.
    DocumentSerialiser: Domain object <-> document conversion.
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from budgetpace import __version__
from budgetpace.errors import ValidationError
from budgetpace.schema import (
    AdPlatform,
    Alert,
    AlertSettings,
    AlertSeverity,
    AlertType,
    BudgetHistoryEntry,
    BudgetPeriod,
    BudgetType,
    Campaign,
    CampaignBudgetConfig,
    CampaignPacingRow,
    CampaignStatus,
    Client,
    Commission,
    CommissionType,
    DashboardSnapshot,
    FixedRawConfig,
    RawConfig,
    RecurringRawConfig,
)


class DecimalEncoder(json.JSONEncoder):
    """
    Custom JSON encoder that converts Decimal to string.

    Preserves full precision of Decimal values by encoding them
    as strings rather than floats.
    """

    def default(self, obj: Any) -> Any:
        """
        Encode Decimal, date/datetime and enum objects.

        Args:
            obj: Object to encode.

        Returns:
            JSON-serialisable representation.
        """
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """
    Reads a Decimal from a string or JSON number.

    Raises:
        ValidationError: If the value is not numeric.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError.for_field(field_name, value, f"{field_name} must be a number")
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError.for_field(
            field_name, value, f"{field_name} must be a valid number (received: '{value}')"
        ) from None
    if not result.is_finite():
        raise ValidationError.for_field(field_name, value, f"{field_name} must be finite")
    return result


def parse_date(value: Any, field_name: str) -> date:
    """Reads a calendar date from an ISO string."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError.for_field(
            field_name, value, f"{field_name} must be a date (YYYY-MM-DD)"
        ) from None


def parse_enum(enum_class: type, value: Any, field_name: str) -> Any:
    """Reads an enum member from its persisted value."""
    try:
        return enum_class(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_class)
        raise ValidationError.for_field(
            field_name, value, f"{field_name} must be one of: {allowed}"
        ) from None


def parse_timestamp(value: Any) -> datetime:
    """Reads an ISO timestamp; trailing 'Z' is accepted as UTC."""
    text = str(value).replace("Z", "+00:00")
    return datetime.fromisoformat(text)


class DocumentSerialiser:
    """
    Converts domain objects to and from persisted JSON documents.

    Example:
        >>> serialiser = DocumentSerialiser()
        >>> document = serialiser.config_to_dict(config)
        >>> restored = serialiser.config_from_dict(document)
        >>> assert restored.periods == config.periods
    """

    def __init__(self, version: str = None):
        """
        Initialises the DocumentSerialiser.

        Args:
            version: Version identifier for snapshots.
                     Defaults to package version.
        """
        self._version = version or __version__

    # Budget configuration

    def config_to_dict(self, config: CampaignBudgetConfig) -> Dict[str, Any]:
        """
        Converts a CampaignBudgetConfig to its persisted document.

        Args:
            config: Configuration to convert.

        Returns:
            Dictionary representation.
        """
        document: Dict[str, Any] = {
            "id": config.campaign_id,
            "type": config.type.value,
            "periods": [self.period_to_dict(period) for period in config.periods],
            "history": [self._history_to_dict(entry) for entry in config.history],
        }
        if config.raw_config is not None:
            document["rawConfig"] = self._raw_config_to_dict(config.raw_config)
        return document

    def config_from_dict(
        self,
        data: Dict[str, Any],
        campaign_id: Optional[str] = None
    ) -> CampaignBudgetConfig:
        """
        Converts a persisted document to CampaignBudgetConfig.

        Documents without a type are read as fixed budgets, matching how
        they were allocated when they were written.

        Args:
            data: Dictionary from JSON.
            campaign_id: Key the document was stored under, used when the
                document itself carries no id.

        Returns:
            Reconstructed CampaignBudgetConfig.

        Raises:
            ValidationError: If a field holds an invalid value.
        """
        budget_type = parse_enum(BudgetType, data.get("type") or "fixed", "type")
        return CampaignBudgetConfig(
            campaign_id=str(data.get("id") or campaign_id or ""),
            type=budget_type,
            periods=[self.period_from_dict(item) for item in data.get("periods") or []],
            history=[self._history_from_dict(item) for item in data.get("history") or []],
            raw_config=self._raw_config_from_dict(budget_type, data.get("rawConfig")),
        )

    def period_to_dict(self, period: BudgetPeriod) -> Dict[str, Any]:
        return {
            "startDate": period.start_date.isoformat(),
            "endDate": period.end_date.isoformat(),
            "amount": str(period.amount),
        }

    def period_from_dict(self, data: Dict[str, Any]) -> BudgetPeriod:
        return BudgetPeriod(
            start_date=parse_date(data.get("startDate"), "startDate"),
            end_date=parse_date(data.get("endDate"), "endDate"),
            amount=parse_decimal(data.get("amount"), "amount"),
        )

    def _history_to_dict(self, entry: BudgetHistoryEntry) -> Dict[str, Any]:
        document = {
            "timestamp": entry.timestamp.isoformat(),
            "type": entry.type.value,
            "amount": str(entry.amount),
            "period": entry.period_description,
        }
        if entry.actor is not None:
            document["user"] = entry.actor
        return document

    def _history_from_dict(self, data: Dict[str, Any]) -> BudgetHistoryEntry:
        return BudgetHistoryEntry(
            timestamp=parse_timestamp(data["timestamp"]),
            type=parse_enum(BudgetType, data.get("type") or "fixed", "type"),
            amount=parse_decimal(data.get("amount", 0), "amount"),
            period_description=str(data.get("period", "")),
            actor=data.get("user"),
        )

    def _raw_config_to_dict(self, raw: RawConfig) -> Dict[str, Any]:
        if isinstance(raw, RecurringRawConfig):
            return {
                "startMonth": raw.start_month,
                "endMonth": raw.end_month,
                "amount": str(raw.amount),
            }
        return {
            "start": raw.start.isoformat(),
            "end": raw.end.isoformat(),
            "amount": str(raw.amount),
        }

    def _raw_config_from_dict(
        self,
        budget_type: BudgetType,
        data: Optional[Dict[str, Any]]
    ) -> Optional[RawConfig]:
        if not data:
            return None
        amount = parse_decimal(data.get("amount", 0), "rawConfig.amount")
        if budget_type == BudgetType.RECURRING:
            if not data.get("startMonth") or not data.get("endMonth"):
                return None
            return RecurringRawConfig(
                start_month=str(data["startMonth"]),
                end_month=str(data["endMonth"]),
                amount=amount,
            )
        if not data.get("start") or not data.get("end"):
            return None
        return FixedRawConfig(
            start=parse_date(data["start"], "rawConfig.start"),
            end=parse_date(data["end"], "rawConfig.end"),
            amount=amount,
        )

    # Commission, settings, alerts

    def commission_to_dict(self, commission: Commission) -> Dict[str, Any]:
        return {"type": commission.type.value, "value": str(commission.value)}

    def commission_from_dict(self, data: Dict[str, Any]) -> Commission:
        return Commission(
            type=parse_enum(CommissionType, data.get("type"), "type"),
            value=parse_decimal(data.get("value"), "value"),
        )

    def settings_to_dict(self, settings: AlertSettings) -> Dict[str, Any]:
        return {
            "enabledTypes": [alert_type.value for alert_type in settings.enabled_types],
            "dailyBudgetThreshold": str(settings.daily_budget_threshold),
            "progressMismatchThreshold": str(settings.progress_mismatch_threshold),
            "exhaustionThreshold": str(settings.exhaustion_threshold),
            "endingDaysThreshold": settings.ending_days_threshold,
            "endingSpendRateThreshold": str(settings.ending_spend_rate_threshold),
        }

    def settings_from_dict(self, data: Dict[str, Any]) -> AlertSettings:
        """
        Converts a settings document to AlertSettings.

        Missing fields take their defaults. Enabled types must belong to
        the closed set of alert kinds.
        """
        defaults = AlertSettings()
        enabled = data.get("enabledTypes")
        if enabled is None:
            enabled_types = list(defaults.enabled_types)
        elif not isinstance(enabled, list):
            raise ValidationError.for_field(
                "enabledTypes", enabled, "enabledTypes must be a list"
            )
        else:
            enabled_types = [
                parse_enum(AlertType, value, "enabledTypes") for value in enabled
            ]

        def threshold(key: str, default: Decimal) -> Decimal:
            if data.get(key) is None:
                return default
            return parse_decimal(data[key], key)

        ending_days = data.get("endingDaysThreshold", defaults.ending_days_threshold)
        return AlertSettings(
            enabled_types=enabled_types,
            daily_budget_threshold=threshold(
                "dailyBudgetThreshold", defaults.daily_budget_threshold
            ),
            progress_mismatch_threshold=threshold(
                "progressMismatchThreshold", defaults.progress_mismatch_threshold
            ),
            exhaustion_threshold=threshold(
                "exhaustionThreshold", defaults.exhaustion_threshold
            ),
            ending_days_threshold=int(parse_decimal(ending_days, "endingDaysThreshold")),
            ending_spend_rate_threshold=threshold(
                "endingSpendRateThreshold", defaults.ending_spend_rate_threshold
            ),
        )

    def alert_to_dict(self, alert: Alert) -> Dict[str, Any]:
        return {
            "id": alert.id,
            "accountId": alert.account_id,
            "campaignId": alert.campaign_id,
            "campaignName": alert.campaign_name,
            "type": alert.type.value,
            "severity": alert.severity.value,
            "message": alert.message,
            "metadata": json.loads(json.dumps(alert.metadata, cls=DecimalEncoder)),
            "isRead": alert.is_read,
            "createdAt": alert.created_at.isoformat() if alert.created_at else None,
        }

    def alert_from_dict(self, data: Dict[str, Any]) -> Alert:
        created_at = data.get("createdAt")
        return Alert(
            id=data.get("id"),
            account_id=str(data.get("accountId", "")),
            campaign_id=str(data.get("campaignId", "")),
            campaign_name=str(data.get("campaignName", "")),
            type=parse_enum(AlertType, data.get("type"), "type"),
            severity=parse_enum(AlertSeverity, data.get("severity"), "severity"),
            message=str(data.get("message", "")),
            metadata=dict(data.get("metadata") or {}),
            is_read=bool(data.get("isRead", False)),
            created_at=parse_timestamp(created_at) if created_at else None,
        )

    # External campaign data

    def campaign_from_dict(self, data: Dict[str, Any]) -> Campaign:
        """
        Converts a platform campaign record to Campaign.

        Accepts the sync collaborator's field names (spendToDate,
        liveDailyBudget) and the dashboard's (spend, dailyBudget).
        """
        spend = data.get("spendToDate", data.get("spend", 0))
        daily = data.get("liveDailyBudget", data.get("dailyBudget", 0))
        return Campaign(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            client_id=str(data.get("clientId", "")),
            status=CampaignStatus.from_platform(str(data.get("status", ""))),
            spend_to_date=parse_decimal(spend or 0, "spendToDate"),
            live_daily_budget=parse_decimal(daily or 0, "liveDailyBudget"),
            platform=parse_enum(AdPlatform, data.get("platform", "meta"), "platform"),
        )

    def campaign_to_dict(self, campaign: Campaign) -> Dict[str, Any]:
        return {
            "id": campaign.id,
            "name": campaign.name,
            "clientId": campaign.client_id,
            "status": campaign.status.value,
            "spendToDate": str(campaign.spend_to_date),
            "liveDailyBudget": str(campaign.live_daily_budget),
            "platform": campaign.platform.value,
        }

    def client_to_dict(self, client: Client) -> Dict[str, Any]:
        return {
            "id": client.id,
            "accountId": client.agency_id,
            "name": client.name,
            "provider": client.platform.value,
        }

    def client_from_dict(self, data: Dict[str, Any]) -> Client:
        return Client(
            id=str(data["id"]),
            agency_id=str(data.get("accountId", "")),
            name=str(data.get("name", data["id"])),
            platform=parse_enum(AdPlatform, data.get("provider", "meta"), "provider"),
        )

    # Dashboard snapshots

    def serialise_snapshot(self, snapshot: DashboardSnapshot) -> str:
        """
        Serialises a DashboardSnapshot to JSON string.

        Args:
            snapshot: Dashboard snapshot to serialise.

        Returns:
            JSON string representation.
        """
        data = self._snapshot_to_dict(snapshot)
        return json.dumps(data, cls=DecimalEncoder, indent=2)

    def save_snapshot(
        self,
        snapshot: DashboardSnapshot,
        file_path: Union[str, Path]
    ) -> None:
        """
        Saves a DashboardSnapshot to a JSON file.

        Args:
            snapshot: Dashboard snapshot to save.
            file_path: Output file path.

        Raises:
            PermissionError: If file cannot be written.
        """
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(self.serialise_snapshot(snapshot), encoding="utf-8")

    def _snapshot_to_dict(self, snapshot: DashboardSnapshot) -> Dict[str, Any]:
        return {
            "metadata": {
                "timestamp": snapshot.timestamp.isoformat(),
                "version": snapshot.version,
                "generated_by": "BudgetPace",
                "window": {
                    "start": snapshot.window_start.isoformat(),
                    "end": snapshot.window_end.isoformat(),
                },
            },
            "summary": {
                "total_budget": str(snapshot.total_budget),
                "total_spend": str(snapshot.total_spend),
                "usage_percentage": str(snapshot.usage_percentage),
                "usage_trend": snapshot.usage_trend,
                "campaign_count": len(snapshot.rows),
            },
            "campaigns": [self._row_to_dict(row) for row in snapshot.rows],
        }

    def _row_to_dict(self, row: CampaignPacingRow) -> Dict[str, Any]:
        pacing = row.pacing
        row_dict: Dict[str, Any] = {
            "client": row.client_name,
            "campaign": self.campaign_to_dict(row.campaign),
            "hasCustomBudget": row.has_custom_budget,
            "pacing": {
                "allocated_budget": str(pacing.allocated_budget),
                "gross_spend": str(pacing.gross_spend),
                "days_left": pacing.days_left,
                "recommended_daily": str(pacing.recommended_daily),
                "projected_spend": str(pacing.projected_spend),
                "deviation": str(pacing.deviation) if pacing.deviation is not None else None,
                "status": pacing.status.value,
            },
        }
        if row.commission is not None:
            row_dict["commission"] = self.commission_to_dict(row.commission)
        return row_dict

    def generate_filename(self, prefix: str = "snapshot") -> str:
        """
        Generates a timestamped filename for snapshot files.

        Args:
            prefix: Filename prefix. Defaults to "snapshot".

        Returns:
            Filename like "snapshot_2025-12-18_143052.json".
        """
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H%M%S")
        return f"{prefix}_{timestamp}.json"
