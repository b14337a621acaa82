"""
BudgetPace - Document Serialiser Tests.

Tests for persisted document conversion, compatibility with documents
written by earlier versions, and dashboard snapshot output.

**Property: Decimal precision survives a document round trip**
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis.strategies import decimals

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
    PacingResult,
    PacingStatus,
    RecurringRawConfig,
)
from budgetpace.serialiser import DecimalEncoder, DocumentSerialiser, parse_decimal

SAVED_AT = datetime(2025, 12, 18, 14, 30, 52, tzinfo=timezone.utc)


def sample_campaign() -> Campaign:
    return Campaign(
        id="cmp_1",
        name="Winter Sale",
        client_id="act_1",
        status=CampaignStatus.ACTIVE,
        spend_to_date=Decimal("90000.50"),
        live_daily_budget=Decimal("10000"),
        platform=AdPlatform.GOOGLE,
    )


def sample_snapshot() -> DashboardSnapshot:
    pacing = PacingResult(
        campaign=sample_campaign(),
        allocated_budget=Decimal("310000"),
        gross_spend=Decimal("90000.50"),
        days_left=22,
        recommended_daily=Decimal("9999.977272727272727272727273"),
        projected_spend=Decimal("310000.50"),
        deviation=Decimal("0.0000022727"),
        status=PacingStatus.ON_TRACK,
        window_start=date(2025, 12, 1),
        window_end=date(2025, 12, 31),
    )
    row = CampaignPacingRow(
        client_name="Acme",
        pacing=pacing,
        has_custom_budget=True,
        commission=Commission(CommissionType.PERCENTAGE, Decimal("20")),
    )
    return DashboardSnapshot(
        timestamp=SAVED_AT,
        version="0.1.0",
        window_start=date(2025, 12, 1),
        window_end=date(2025, 12, 31),
        rows=[row],
        total_budget=Decimal("310000"),
        total_spend=Decimal("90000.50"),
    )


class TestDocumentSerialiserUnit:
    """Unit tests for DocumentSerialiser."""

    def setup_method(self) -> None:
        self.serialiser = DocumentSerialiser(version="0.1.0")

    def test_config_round_trip(self) -> None:
        config = CampaignBudgetConfig(
            campaign_id="cmp_1",
            type=BudgetType.RECURRING,
            periods=[
                BudgetPeriod(date(2025, 12, 1), date(2025, 12, 31), Decimal("300000")),
                BudgetPeriod(date(2026, 1, 1), date(2026, 1, 31), Decimal("300000")),
            ],
            history=[
                BudgetHistoryEntry(
                    SAVED_AT, BudgetType.RECURRING, Decimal("300000"), "2025-12 ~ 2026-01", "kim"
                )
            ],
            raw_config=RecurringRawConfig("2025-12", "2026-01", Decimal("300000")),
        )

        restored = self.serialiser.config_from_dict(self.serialiser.config_to_dict(config))

        assert restored == config

    def test_config_document_field_names(self) -> None:
        config = CampaignBudgetConfig(
            campaign_id="cmp_1",
            type=BudgetType.FIXED,
            periods=[BudgetPeriod(date(2025, 12, 1), date(2026, 1, 31), Decimal("620000"))],
            raw_config=FixedRawConfig(date(2025, 12, 1), date(2026, 1, 31), Decimal("620000")),
        )

        document = self.serialiser.config_to_dict(config)

        assert document["type"] == "fixed"
        assert document["periods"] == [
            {"startDate": "2025-12-01", "endDate": "2026-01-31", "amount": "620000"}
        ]
        assert document["rawConfig"] == {
            "start": "2025-12-01", "end": "2026-01-31", "amount": "620000"
        }

    def test_legacy_numeric_amounts_are_read(self) -> None:
        document = {
            "type": "fixed",
            "periods": [{"startDate": "2025-12-01", "endDate": "2025-12-31", "amount": 300000}],
            "history": [
                {"timestamp": "2025-12-01T09:00:00Z", "type": "fixed", "amount": 300000.5,
                 "period": "2025-12-01 ~ 2025-12-31"}
            ],
        }

        config = self.serialiser.config_from_dict(document, campaign_id="cmp_9")

        assert config.campaign_id == "cmp_9"
        assert config.periods[0].amount == Decimal("300000")
        assert config.history[0].amount == Decimal("300000.5")
        assert config.history[0].timestamp.tzinfo is not None
        assert config.history[0].actor is None

    def test_missing_type_reads_as_fixed(self) -> None:
        document = {
            "id": "cmp_1",
            "periods": [{"startDate": "2025-12-01", "endDate": "2025-12-31", "amount": "1000"}],
        }
        assert self.serialiser.config_from_dict(document).type == BudgetType.FIXED

    def test_datetime_period_bounds_are_truncated(self) -> None:
        period = self.serialiser.period_from_dict(
            {"startDate": "2025-12-01T00:00:00.000Z", "endDate": "2025-12-31T23:59:59Z",
             "amount": "1"}
        )
        assert period.start_date == date(2025, 12, 1)
        assert period.end_date == date(2025, 12, 31)

    def test_incomplete_raw_config_is_dropped(self) -> None:
        document = {"type": "recurring", "periods": [], "rawConfig": {"amount": "5"}}
        assert self.serialiser.config_from_dict(document).raw_config is None

    def test_invalid_type_raises(self) -> None:
        with pytest.raises(ValidationError):
            self.serialiser.config_from_dict({"type": "weekly", "periods": []})

    def test_invalid_amount_raises(self) -> None:
        with pytest.raises(ValidationError):
            self.serialiser.period_from_dict(
                {"startDate": "2025-12-01", "endDate": "2025-12-31", "amount": "lots"}
            )

    def test_commission_round_trip(self) -> None:
        commission = Commission(CommissionType.FIXED, Decimal("50000"))
        document = self.serialiser.commission_to_dict(commission)
        assert document == {"type": "fixed", "value": "50000"}
        assert self.serialiser.commission_from_dict(document) == commission

    def test_settings_defaults_for_missing_fields(self) -> None:
        restored = self.serialiser.settings_from_dict({"dailyBudgetThreshold": 25})
        assert restored.daily_budget_threshold == Decimal("25")
        assert restored.progress_mismatch_threshold == Decimal("15")
        assert restored.ending_days_threshold == 7
        assert restored.enabled_types == list(AlertType)

    def test_settings_round_trip(self) -> None:
        alert_settings = AlertSettings(
            enabled_types=[AlertType.CAMPAIGN_ENDING], ending_days_threshold=3
        )
        document = self.serialiser.settings_to_dict(alert_settings)
        assert self.serialiser.settings_from_dict(document) == alert_settings

    def test_settings_unknown_alert_type_raises(self) -> None:
        with pytest.raises(ValidationError):
            self.serialiser.settings_from_dict({"enabledTypes": ["weather"]})

    def test_alert_round_trip(self) -> None:
        alert = Alert(
            id="alert_1",
            account_id="agency_1",
            campaign_id="cmp_1",
            campaign_name="Winter Sale",
            type=AlertType.DAILY_BUDGET_OVER,
            severity=AlertSeverity.HIGH,
            message="Daily budget over",
            metadata={"dailyBudget": Decimal("15000")},
            created_at=SAVED_AT,
        )

        document = self.serialiser.alert_to_dict(alert)
        restored = self.serialiser.alert_from_dict(document)

        assert document["metadata"] == {"dailyBudget": "15000"}
        assert restored.key == alert.key
        assert restored.created_at == SAVED_AT
        assert restored.is_read is False

    def test_campaign_accepts_dashboard_field_names(self) -> None:
        campaign = self.serialiser.campaign_from_dict(
            {"id": "cmp_1", "name": "A", "status": "ENABLED", "spend": 12.5, "dailyBudget": "3"}
        )
        assert campaign.status == CampaignStatus.ACTIVE
        assert campaign.spend_to_date == Decimal("12.5")
        assert campaign.live_daily_budget == Decimal("3")
        assert campaign.platform == AdPlatform.META

    def test_campaign_round_trip(self) -> None:
        campaign = sample_campaign()
        document = self.serialiser.campaign_to_dict(campaign)
        assert self.serialiser.campaign_from_dict(document) == campaign

    def test_unknown_campaign_status_reads_as_ended(self) -> None:
        campaign = self.serialiser.campaign_from_dict({"id": "cmp_1", "status": "REMOVED"})
        assert campaign.status == CampaignStatus.ENDED

    def test_client_round_trip(self) -> None:
        client = Client("act_1", "agency_1", "Acme", AdPlatform.GOOGLE)
        document = self.serialiser.client_to_dict(client)
        assert document["accountId"] == "agency_1"
        assert self.serialiser.client_from_dict(document) == client

    def test_serialise_snapshot_structure(self) -> None:
        data = json.loads(self.serialiser.serialise_snapshot(sample_snapshot()))

        assert data["metadata"]["version"] == "0.1.0"
        assert data["metadata"]["window"] == {"start": "2025-12-01", "end": "2025-12-31"}
        assert data["summary"]["total_budget"] == "310000"
        assert data["summary"]["campaign_count"] == 1
        assert data["campaigns"][0]["pacing"]["status"] == "ON_TRACK"
        assert data["campaigns"][0]["commission"] == {"type": "percentage", "value": "20"}

    def test_snapshot_preserves_decimal_precision(self) -> None:
        data = json.loads(self.serialiser.serialise_snapshot(sample_snapshot()))
        recommended = data["campaigns"][0]["pacing"]["recommended_daily"]
        assert Decimal(recommended) == Decimal("9999.977272727272727272727273")

    def test_save_snapshot_creates_file(self, tmp_path: Path) -> None:
        target = tmp_path / "audit" / "snapshot.json"
        self.serialiser.save_snapshot(sample_snapshot(), target)
        assert json.loads(target.read_text(encoding="utf-8"))["summary"]["usage_trend"] == "Normal"

    def test_generate_filename(self) -> None:
        filename = self.serialiser.generate_filename()
        assert filename.startswith("snapshot_")
        assert filename.endswith(".json")

    def test_decimal_encoder(self) -> None:
        encoded = json.dumps(
            {"amount": Decimal("0.10"), "day": date(2025, 12, 1), "type": BudgetType.FIXED},
            cls=DecimalEncoder,
        )
        assert json.loads(encoded) == {"amount": "0.10", "day": "2025-12-01", "type": "fixed"}

    @pytest.mark.parametrize("value", [None, True, "abc", "NaN", "Infinity"])
    def test_parse_decimal_rejects(self, value) -> None:
        with pytest.raises(ValidationError):
            parse_decimal(value, "amount")


class TestDocumentSerialiserProperty:
    """Property-based tests for DocumentSerialiser."""

    def setup_method(self) -> None:
        self.serialiser = DocumentSerialiser()

    @given(decimals(min_value=Decimal("0"), max_value=Decimal("1000000000"), places=6))
    @settings(max_examples=200)
    def test_period_amount_precision_preserved(self, amount: Decimal) -> None:
        period = BudgetPeriod(date(2025, 12, 1), date(2025, 12, 31), amount)
        document = json.loads(json.dumps(self.serialiser.period_to_dict(period)))
        assert self.serialiser.period_from_dict(document).amount == amount
