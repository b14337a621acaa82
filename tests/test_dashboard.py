"""
BudgetPace - Dashboard Service Tests.

End-to-end tests of the read path: stored budget configurations and
commissions combined with synced campaigns into pacing rows and KPIs.
"""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from budgetpace.cache import CampaignCache
from budgetpace.dashboard import DashboardService
from budgetpace.errors import NotFoundError, ValidationError
from budgetpace.schema import Client, Commission, CommissionType, PacingStatus
from budgetpace.store import (
    BudgetConfigStore,
    ClientDirectory,
    CommissionStore,
    InMemoryDocumentStore,
)
from budgetpace.sync import CampaignSyncService, StaticCampaignSource

CAMPAIGNS = {
    "act_1": [
        {"id": "cmp_1", "name": "Winter Sale", "status": "ACTIVE",
         "spendToDate": "90000", "liveDailyBudget": "10000"},
        {"id": "cmp_2", "name": "Always On", "status": "ACTIVE",
         "spendToDate": "5000", "liveDailyBudget": "300"},
    ],
}


async def no_sleep(delay: float) -> None:
    return None


class TestDashboardService:
    """Tests for DashboardService."""

    def setup_method(self) -> None:
        documents = InMemoryDocumentStore()
        self.budgets = BudgetConfigStore(documents)
        self.commissions = CommissionStore(documents)
        self.directory = ClientDirectory(documents)
        sync = CampaignSyncService(
            StaticCampaignSource(CAMPAIGNS), CampaignCache(), sleep=no_sleep
        )
        self.service = DashboardService(
            self.budgets,
            self.commissions,
            self.directory,
            sync,
            clock=lambda: datetime(2025, 12, 10, 9, 0, tzinfo=timezone.utc),
        )

    def build(self, **kwargs):
        async def scenario():
            await self.directory.add_client(Client("act_1", "agency_1", "Acme"))
            await self.budgets.save_fixed("cmp_1", "2025-12-01", "2026-01-31", "620000")
            if kwargs.get("commission"):
                await self.commissions.put("act_1", kwargs["commission"])
            return await self.service.build_snapshot(
                kwargs.get("agency_id", "agency_1"),
                "act_1",
                "2025-12-01",
                "2025-12-31",
                today=date(2025, 12, 10),
            )

        return asyncio.run(scenario())

    def test_allocate_for_campaign(self) -> None:
        async def scenario():
            await self.budgets.save_fixed("cmp_1", "2025-12-01", "2026-01-31", "620000")
            return await self.service.allocate_for_campaign("cmp_1", "2026-01-01", "2026-01-31")

        assert asyncio.run(scenario()).amount == Decimal("310000")

    def test_allocate_for_unknown_campaign_is_zero(self) -> None:
        result = asyncio.run(
            self.service.allocate_for_campaign("cmp_x", "2025-12-01", "2025-12-31")
        )
        assert result.amount == Decimal("0")

    def test_snapshot_rows(self) -> None:
        snapshot = self.build()

        rows = {row.campaign.id: row for row in snapshot.rows}
        assert rows["cmp_1"].has_custom_budget is True
        assert rows["cmp_1"].pacing.allocated_budget == Decimal("310000")
        assert rows["cmp_1"].pacing.recommended_daily == Decimal("10000")
        assert rows["cmp_1"].pacing.status == PacingStatus.ON_TRACK
        assert rows["cmp_2"].has_custom_budget is False
        assert rows["cmp_2"].pacing.allocated_budget == Decimal("0")
        assert rows["cmp_2"].pacing.status == PacingStatus.DISABLED
        assert rows["cmp_1"].client_name == "Acme"

    def test_snapshot_totals(self) -> None:
        snapshot = self.build()

        assert snapshot.total_budget == Decimal("310000")
        assert snapshot.total_spend == Decimal("95000")
        assert snapshot.window_start == date(2025, 12, 1)
        assert snapshot.usage_trend == "Normal"
        assert snapshot.count_by_status(PacingStatus.ON_TRACK) == 1
        assert snapshot.timestamp == datetime(2025, 12, 10, 9, 0, tzinfo=timezone.utc)

    def test_snapshot_applies_commission(self) -> None:
        snapshot = self.build(commission=Commission(CommissionType.PERCENTAGE, Decimal("20")))

        row = next(row for row in snapshot.rows if row.campaign.id == "cmp_1")

        assert row.pacing.gross_spend == Decimal("112500")
        assert row.commission.value == Decimal("20")

    def test_client_of_other_agency_is_not_found(self) -> None:
        with pytest.raises(NotFoundError):
            self.build(agency_id="agency_2")

    def test_unknown_client_is_not_found(self) -> None:
        with pytest.raises(NotFoundError):
            asyncio.run(self.service.build_snapshot(
                "agency_1", "act_9", "2025-12-01", "2025-12-31"
            ))

    def test_fixed_commission_counts_unconfigured_spend(self) -> None:
        """A fixed fee on a campaign without budget keeps its spend in the totals."""
        snapshot = self.build(commission=Commission(CommissionType.FIXED, Decimal("50000")))

        rows = {row.campaign.id: row for row in snapshot.rows}

        assert rows["cmp_2"].pacing.gross_spend == Decimal("5000")
        assert rows["cmp_1"].pacing.gross_spend > Decimal("90000")
        assert snapshot.total_spend == (
            rows["cmp_1"].pacing.gross_spend + rows["cmp_2"].pacing.gross_spend
        )
        assert snapshot.total_spend > Decimal("95000")

    def test_reversed_window_is_rejected(self) -> None:
        async def scenario():
            await self.directory.add_client(Client("act_1", "agency_1", "Acme"))
            return await self.service.build_snapshot(
                "agency_1", "act_1", "2025-12-31", "2025-12-01"
            )

        with pytest.raises(ValidationError):
            asyncio.run(scenario())

    def test_allocate_for_reversed_window_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            asyncio.run(
                self.service.allocate_for_campaign("cmp_1", "2025-12-31", "2025-12-01")
            )
