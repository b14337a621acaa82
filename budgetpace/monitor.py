"""
BudgetPace - Alert Monitor Module.

The daily alert job: for every agency and client, pace each campaign over
the current calendar month, evaluate the alert rules and upsert the
resulting alerts. One client failing is logged and does not stop the
others.

Classes:
    AlertCheckReport: Outcome of one alert check run.
    AlertMonitor: Runs the alert check.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from budgetpace.alerts import AlertRuleEngine
from budgetpace.dashboard import DashboardService
from budgetpace.date_logic import DateLike, DateManager
from budgetpace.errors import BudgetPaceError
from budgetpace.schema import Alert, AlertSettings, Client
from budgetpace.store import AlertSettingsStore, AlertStore, ClientDirectory, CommissionStore
from budgetpace.sync import CampaignSyncService

logger = logging.getLogger(__name__)


@dataclass
class AlertCheckReport:
    """
    Outcome of one alert check run.

    Attributes:
        alerts: Alerts raised (after upsert).
        clients_checked: Clients whose campaigns were evaluated.
        failed: Error message per client that could not be checked.
    """

    alerts: List[Alert] = field(default_factory=list)
    clients_checked: int = 0
    failed: Dict[str, str] = field(default_factory=dict)


class AlertMonitor:
    """
    Evaluates alert rules for every agency, client and campaign.

    Example:
        >>> monitor = AlertMonitor(directory, dashboard, commissions,
        ...                        settings_store, alert_store, sync)
        >>> report = await monitor.run_check(date(2025, 12, 20))
    """

    def __init__(
        self,
        directory: ClientDirectory,
        dashboard: DashboardService,
        commission_store: CommissionStore,
        settings_store: AlertSettingsStore,
        alert_store: AlertStore,
        sync_service: CampaignSyncService,
        date_manager: Optional[DateManager] = None
    ):
        self._directory = directory
        self._dashboard = dashboard
        self._commission_store = commission_store
        self._settings_store = settings_store
        self._alert_store = alert_store
        self._sync_service = sync_service
        self._date_manager = date_manager or DateManager()
        self._engine = AlertRuleEngine(self._date_manager)

    async def run_check(self, today: Optional[DateLike] = None) -> AlertCheckReport:
        """
        Runs the alert check for every agency.

        Args:
            today: Reference date. Defaults to today.

        Returns:
            AlertCheckReport with the raised alerts and any failures.
        """
        today_date = self._date_manager.normalise(today or date.today())
        report = AlertCheckReport()
        logger.info(f"Alert check started for {today_date}")

        for agency_id in await self._directory.list_agencies():
            settings = await self._settings_store.get(agency_id)
            for client in await self._directory.list_clients(agency_id):
                try:
                    alerts = await self.check_client(agency_id, client, settings, today_date)
                except BudgetPaceError as exc:
                    logger.error(f"Alert check failed for client {client.id}: {exc}")
                    report.failed[client.id] = str(exc)
                    continue
                report.alerts.extend(alerts)
                report.clients_checked += 1

        logger.info(
            f"Alert check finished: {len(report.alerts)} alert(s), "
            f"{report.clients_checked} client(s), {len(report.failed)} failure(s)"
        )
        return report

    async def check_client(
        self,
        agency_id: str,
        client: Client,
        settings: AlertSettings,
        today: date
    ) -> List[Alert]:
        """Evaluates and upserts the alerts of one client's campaigns."""
        window_start, window_end = self._date_manager.month_window(today)
        campaigns = await self._sync_service.get_campaigns(client.id, window_start, window_end)
        commission = await self._commission_store.get(client.id)

        raised = []
        for campaign in campaigns:
            config, pacing = await self._dashboard.resolve_campaign(
                campaign, commission, window_start, window_end, today
            )
            for alert in self._engine.evaluate(agency_id, campaign, config, pacing, settings, today):
                raised.append(await self._alert_store.upsert(alert))
        return raised
