"""
BudgetPace - Dashboard Service Module.

The read path of the dashboard: resolves each campaign of a client to
its allocated budget for the selected window, runs the pacing analysis
and totals the KPI grid.

Campaigns without a custom budget are shown with an allocated budget of
0, which paces them as Disabled.

Classes:
    DashboardService: Builds pacing rows and dashboard snapshots.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from budgetpace import __version__
from budgetpace.allocator import BudgetAllocator
from budgetpace.calculator import PacingEngine
from budgetpace.date_logic import DateLike, DateManager
from budgetpace.errors import NotFoundError
from budgetpace.schema import (
    AllocationResult,
    Campaign,
    CampaignBudgetConfig,
    CampaignPacingRow,
    Client,
    Commission,
    DashboardSnapshot,
    PacingResult,
)
from budgetpace.store import BudgetConfigStore, ClientDirectory, CommissionStore
from budgetpace.sync import CampaignSyncService

logger = logging.getLogger(__name__)


class DashboardService:
    """
    Builds the dashboard view of a client for a reporting window.

    Example:
        >>> service = DashboardService(budgets, commissions, directory, sync)
        >>> snapshot = await service.build_snapshot(
        ...     "agency_1", "act_1", date(2025, 12, 1), date(2025, 12, 31))
        >>> snapshot.usage_trend
        'Normal'
    """

    def __init__(
        self,
        budget_store: BudgetConfigStore,
        commission_store: CommissionStore,
        directory: ClientDirectory,
        sync_service: CampaignSyncService,
        date_manager: Optional[DateManager] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._budget_store = budget_store
        self._commission_store = commission_store
        self._directory = directory
        self._sync_service = sync_service
        self._date_manager = date_manager or DateManager()
        self._allocator = BudgetAllocator(self._date_manager)
        self._pacing_engine = PacingEngine(self._date_manager)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def allocate_for_campaign(
        self,
        campaign_id: str,
        window_start: DateLike,
        window_end: DateLike
    ) -> AllocationResult:
        """
        Returns the budget allocated to a campaign for a window.

        A campaign without a configuration allocates 0.

        Raises:
            ValidationError: If the window ends before it starts.
        """
        self._date_manager.total_days(window_start, window_end)
        config = await self._budget_store.get(campaign_id)
        return self._allocator.allocate(config, window_start, window_end)

    async def resolve_campaign(
        self,
        campaign: Campaign,
        commission: Optional[Commission],
        window_start: date,
        window_end: date,
        today: date
    ) -> Tuple[Optional[CampaignBudgetConfig], PacingResult]:
        """
        Loads a campaign's configuration and analyses its pacing.

        Returns:
            Tuple of (configuration or None, pacing result).
        """
        config = await self._budget_store.get(campaign.id)
        allocation = self._allocator.allocate(config, window_start, window_end)
        pacing = self._pacing_engine.analyse_campaign(
            campaign, allocation.amount, commission, today, window_start, window_end
        )
        return config, pacing

    async def campaign_rows(
        self,
        client: Client,
        campaigns: List[Campaign],
        window_start: DateLike,
        window_end: DateLike,
        today: Optional[DateLike] = None
    ) -> List[CampaignPacingRow]:
        """
        Builds one pacing row per campaign of a client.

        Args:
            client: Ad account the campaigns belong to.
            campaigns: Campaigns with spend inside the window.
            window_start: Reporting window start.
            window_end: Reporting window end.
            today: Reference date. Defaults to today.

        Returns:
            Rows in campaign order.
        """
        start = self._date_manager.normalise(window_start)
        end = self._date_manager.normalise(window_end)
        self._date_manager.total_days(start, end)
        today_date = self._date_manager.normalise(today or date.today())
        commission = await self._commission_store.get(client.id)

        rows = []
        for campaign in campaigns:
            config, pacing = await self.resolve_campaign(
                campaign, commission, start, end, today_date
            )
            rows.append(CampaignPacingRow(
                client_name=client.name,
                pacing=pacing,
                has_custom_budget=config is not None and config.has_periods,
                commission=commission,
            ))
        return rows

    async def build_snapshot(
        self,
        agency_id: str,
        client_id: str,
        window_start: DateLike,
        window_end: DateLike,
        today: Optional[DateLike] = None
    ) -> DashboardSnapshot:
        """
        Builds the dashboard snapshot of one client.

        Raises:
            ValidationError: If the window ends before it starts.
            NotFoundError: If the client does not belong to the agency.
            ExternalServiceError: If campaigns cannot be fetched and
                nothing is cached.
        """
        start = self._date_manager.normalise(window_start)
        end = self._date_manager.normalise(window_end)
        self._date_manager.total_days(start, end)

        client = await self._directory.get_client(client_id)
        if client.agency_id != agency_id:
            raise NotFoundError("Client", client_id)

        campaigns = await self._sync_service.get_campaigns(client.id, start, end)
        rows = await self.campaign_rows(client, campaigns, start, end, today)

        total_budget = sum((row.pacing.allocated_budget for row in rows), Decimal("0"))
        total_spend = sum((row.pacing.gross_spend for row in rows), Decimal("0"))
        logger.info(
            f"Built snapshot for {client_id} {start}..{end}: {len(rows)} campaign(s)"
        )

        return DashboardSnapshot(
            timestamp=self._clock(),
            version=__version__,
            window_start=start,
            window_end=end,
            rows=rows,
            total_budget=total_budget,
            total_spend=total_spend,
        )
