"""
BudgetPace - Campaign Sync Module.

Fetches campaign lists from the ad-platform collaborator into the
campaign cache. Transient failures (network errors, timeouts, 5xx) are
retried with bounded exponential backoff; anything else is surfaced at
once. A failed sync leaves the last known good data in the cache.

Classes:
    CampaignDataSource: Abstract ad-platform collaborator.
    StaticCampaignSource: Serves campaign records from a JSON file.
    SyncReport: Outcome of syncing several accounts.
    CampaignSyncService: Cached, retrying campaign fetches.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from budgetpace.cache import CampaignCache, campaigns_resource
from budgetpace.config import Settings
from budgetpace.errors import ExternalServiceError
from budgetpace.schema import Campaign
from budgetpace.validator import RequestValidator

logger = logging.getLogger(__name__)


class CampaignDataSource(ABC):
    """Ad-platform collaborator delivering campaigns for a window."""

    @abstractmethod
    async def list_campaigns(
        self,
        account_id: str,
        window_start: date,
        window_end: date
    ) -> List[Campaign]:
        """
        Returns the account's campaigns with spend inside the window.

        Raises:
            ExternalServiceError: If the platform call fails.
        """


class StaticCampaignSource(CampaignDataSource):
    """
    Serves campaign records from a JSON file or mapping.

    The data is either an object mapping account ids to lists of
    campaign records, or a flat list of records carrying a clientId.
    Spend figures are taken as already scoped to the requested window.
    Invalid records are logged and skipped.
    """

    def __init__(
        self,
        data: Union[str, Path, Dict[str, Any], List[Dict[str, Any]]],
        validator: Optional[RequestValidator] = None
    ):
        self._data = data
        self._validator = validator or RequestValidator()

    def _load(self) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        if not isinstance(self._data, (str, Path)):
            return self._data
        path = Path(self._data)
        if not path.exists():
            raise ExternalServiceError(
                f"Campaign data file not found: {path}", status_code=404
            )
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ExternalServiceError(
                f"Campaign data file is not valid JSON: {exc}", status_code=422
            ) from exc

    async def list_campaigns(
        self,
        account_id: str,
        window_start: date,
        window_end: date
    ) -> List[Campaign]:
        data = await asyncio.to_thread(self._load)
        if isinstance(data, dict):
            records = [
                dict(record, clientId=record.get("clientId", account_id))
                for record in data.get(account_id, [])
            ]
        else:
            records = [record for record in data if record.get("clientId") == account_id]

        result = self._validator.validate_campaign_rows(records)
        for error in result.errors:
            logger.warning(f"Skipped campaign record for {account_id}: {error}")
        return result.campaigns

    def account_ids(self) -> List[str]:
        """Returns the account ids present in the data."""
        data = self._load()
        if isinstance(data, dict):
            return sorted(data.keys())
        return sorted({str(record.get("clientId", "")) for record in data if record.get("clientId")})


@dataclass
class SyncReport:
    """
    Outcome of syncing several accounts.

    Attributes:
        synced: Campaign count per successfully synced account.
        failed: Error message per failed account.
    """

    synced: Dict[str, int] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return not self.failed


class CampaignSyncService:
    """
    Fetches campaigns through the cache with timeout and retry.

    Example:
        >>> service = CampaignSyncService(source, CampaignCache(), Settings())
        >>> campaigns = await service.get_campaigns("act_1", start, end)
    """

    def __init__(
        self,
        source: CampaignDataSource,
        cache: CampaignCache,
        settings: Optional[Settings] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None
    ):
        self._source = source
        self._cache = cache
        self._settings = settings or Settings()
        self._sleep = sleep or asyncio.sleep

    async def sync_account(
        self,
        account_id: str,
        window_start: date,
        window_end: date
    ) -> List[Campaign]:
        """
        Fetches an account's campaigns and refreshes the cache.

        Returns:
            The fetched campaigns.

        Raises:
            ExternalServiceError: After the last failed attempt, or at
                once for a non-retryable failure.
        """
        retry = self._settings.retry
        timeout = self._settings.fetch_timeout_seconds
        resource = campaigns_resource(window_start, window_end)
        last_error: Optional[ExternalServiceError] = None

        for attempt in range(retry.max_attempts):
            try:
                campaigns = await asyncio.wait_for(
                    self._source.list_campaigns(account_id, window_start, window_end),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                last_error = ExternalServiceError(
                    f"Fetch timed out after {timeout}s", retryable=True
                )
            except ExternalServiceError as exc:
                last_error = exc
            except OSError as exc:
                last_error = ExternalServiceError(f"Network error: {exc}", retryable=True)
            else:
                self._cache.put(account_id, resource, campaigns)
                logger.info(f"Synced {len(campaigns)} campaign(s) for {account_id}")
                return campaigns

            logger.warning(
                f"Attempt {attempt + 1}/{retry.max_attempts} failed for {account_id}: {last_error}"
            )
            if not last_error.retryable or attempt == retry.max_attempts - 1:
                break

            delay = retry.delay_for(attempt)
            logger.info(f"Retrying in {delay} seconds...")
            await self._sleep(delay)

        self._cache.mark_failed(account_id, resource, str(last_error))
        raise last_error

    async def get_campaigns(
        self,
        account_id: str,
        window_start: date,
        window_end: date
    ) -> List[Campaign]:
        """
        Returns fresh cached campaigns, syncing when the cache is stale.

        When the sync fails and older data is cached, the older data is
        served instead.
        """
        resource = campaigns_resource(window_start, window_end)
        fresh = self._cache.get_fresh(account_id, resource)
        if fresh is not None:
            return fresh

        try:
            return await self.sync_account(account_id, window_start, window_end)
        except ExternalServiceError:
            entry = self._cache.get(account_id, resource)
            if entry is not None and entry.has_data:
                logger.warning(f"Serving last known good campaigns for {account_id}")
                return list(entry.campaigns)
            raise

    async def sync_all(
        self,
        account_ids: List[str],
        window_start: date,
        window_end: date
    ) -> SyncReport:
        """
        Syncs several accounts; one account failing does not stop the rest.
        """
        report = SyncReport()
        for account_id in account_ids:
            try:
                campaigns = await self.sync_account(account_id, window_start, window_end)
            except ExternalServiceError as exc:
                logger.error(f"Sync failed for {account_id}: {exc}")
                report.failed[account_id] = str(exc)
            else:
                report.synced[account_id] = len(campaigns)
        return report
