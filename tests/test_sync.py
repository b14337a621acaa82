"""
BudgetPace - Campaign Sync Tests.

Tests for retrying fetches, timeouts, last-known-good fallback and the
JSON-file campaign source.
"""

import asyncio
import json
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from budgetpace.cache import CampaignCache, campaigns_resource
from budgetpace.config import RetryConfig, Settings
from budgetpace.errors import ExternalServiceError
from budgetpace.schema import Campaign, CampaignStatus
from budgetpace.sync import CampaignDataSource, CampaignSyncService, StaticCampaignSource

START = date(2025, 12, 1)
END = date(2025, 12, 31)


def campaign(campaign_id: str = "cmp_1", client_id: str = "act_1") -> Campaign:
    return Campaign(
        id=campaign_id,
        name="Winter Sale",
        client_id=client_id,
        status=CampaignStatus.ACTIVE,
        spend_to_date=Decimal("100"),
        live_daily_budget=Decimal("10"),
    )


class ScriptedSource(CampaignDataSource):
    """Source that raises the scripted errors in order, then succeeds."""

    def __init__(self, errors=None, delay: float = 0.0):
        self.errors = list(errors or [])
        self.delay = delay
        self.calls = 0

    async def list_campaigns(self, account_id, window_start, window_end):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.errors:
            raise self.errors.pop(0)
        return [campaign(client_id=account_id)]


class RecordingSleep:
    def __init__(self) -> None:
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_service(source, ttl: float = 300.0, timeout: float = 30.0, attempts: int = 3):
    sleep = RecordingSleep()
    settings = Settings(
        fetch_timeout_seconds=timeout,
        retry=RetryConfig(max_attempts=attempts, base_delay=1.0, max_delay=30.0),
    )
    cache = CampaignCache(ttl_seconds=ttl)
    return CampaignSyncService(source, cache, settings, sleep=sleep), cache, sleep


class TestCampaignSyncService:
    """Tests for CampaignSyncService."""

    def test_sync_populates_cache(self) -> None:
        service, cache, _ = make_service(ScriptedSource())

        campaigns = asyncio.run(service.sync_account("act_1", START, END))

        assert [c.id for c in campaigns] == ["cmp_1"]
        assert cache.get_fresh("act_1", campaigns_resource(START, END)) is not None

    def test_server_errors_are_retried_with_backoff(self) -> None:
        source = ScriptedSource([
            ExternalServiceError("HTTP 503", status_code=503),
            ExternalServiceError("HTTP 502", status_code=502),
        ])
        service, _, sleep = make_service(source)

        campaigns = asyncio.run(service.sync_account("act_1", START, END))

        assert len(campaigns) == 1
        assert source.calls == 3
        assert sleep.delays == [1.0, 2.0]

    def test_network_errors_are_retried(self) -> None:
        source = ScriptedSource([ConnectionResetError("reset")])
        service, _, _ = make_service(source)

        asyncio.run(service.sync_account("act_1", START, END))

        assert source.calls == 2

    def test_client_errors_are_not_retried(self) -> None:
        source = ScriptedSource([ExternalServiceError("HTTP 401", status_code=401)])
        service, cache, sleep = make_service(source)

        with pytest.raises(ExternalServiceError) as exc_info:
            asyncio.run(service.sync_account("act_1", START, END))

        assert exc_info.value.status_code == 401
        assert source.calls == 1
        assert sleep.delays == []
        assert cache.get("act_1", campaigns_resource(START, END)).last_error == "HTTP 401"

    def test_gives_up_after_max_attempts(self) -> None:
        source = ScriptedSource([ExternalServiceError("HTTP 500", status_code=500)] * 5)
        service, _, sleep = make_service(source, attempts=3)

        with pytest.raises(ExternalServiceError):
            asyncio.run(service.sync_account("act_1", START, END))

        assert source.calls == 3
        assert sleep.delays == [1.0, 2.0]

    def test_timeout_is_retryable(self) -> None:
        source = ScriptedSource(delay=0.2)
        service, _, _ = make_service(source, timeout=0.01, attempts=2)

        with pytest.raises(ExternalServiceError) as exc_info:
            asyncio.run(service.sync_account("act_1", START, END))

        assert exc_info.value.retryable is True
        assert source.calls == 2

    def test_get_campaigns_uses_fresh_cache(self) -> None:
        source = ScriptedSource()
        service, _, _ = make_service(source)

        async def scenario():
            await service.get_campaigns("act_1", START, END)
            return await service.get_campaigns("act_1", START, END)

        asyncio.run(scenario())
        assert source.calls == 1

    def test_get_campaigns_serves_last_known_good(self) -> None:
        source = ScriptedSource()
        service, cache, _ = make_service(source, ttl=0.0)

        async def scenario():
            await service.get_campaigns("act_1", START, END)
            source.errors = [ExternalServiceError("HTTP 401", status_code=401)]
            return await service.get_campaigns("act_1", START, END)

        campaigns = asyncio.run(scenario())

        assert [c.id for c in campaigns] == ["cmp_1"]
        assert cache.get("act_1", campaigns_resource(START, END)).last_error == "HTTP 401"

    def test_get_campaigns_without_cache_raises(self) -> None:
        source = ScriptedSource([ExternalServiceError("HTTP 404", status_code=404)])
        service, _, _ = make_service(source)

        with pytest.raises(ExternalServiceError):
            asyncio.run(service.get_campaigns("act_1", START, END))

    def test_sync_all_continues_past_failures(self) -> None:
        class PerAccountSource(CampaignDataSource):
            async def list_campaigns(self, account_id, window_start, window_end):
                if account_id == "act_bad":
                    raise ExternalServiceError("HTTP 403", status_code=403)
                return [campaign(client_id=account_id)]

        service, _, _ = make_service(PerAccountSource())

        report = asyncio.run(service.sync_all(["act_1", "act_bad", "act_2"], START, END))

        assert report.synced == {"act_1": 1, "act_2": 1}
        assert report.failed == {"act_bad": "HTTP 403"}
        assert not report.is_complete


class TestStaticCampaignSource:
    """Tests for StaticCampaignSource."""

    def test_mapping_by_account(self) -> None:
        source = StaticCampaignSource({
            "act_1": [{"id": "cmp_1", "name": "A", "status": "ACTIVE", "spendToDate": "10"}],
            "act_2": [{"id": "cmp_2", "name": "B", "status": "PAUSED"}],
        })

        campaigns = asyncio.run(source.list_campaigns("act_1", START, END))

        assert [c.id for c in campaigns] == ["cmp_1"]
        assert campaigns[0].client_id == "act_1"
        assert source.account_ids() == ["act_1", "act_2"]

    def test_flat_list_filtered_by_client(self) -> None:
        source = StaticCampaignSource([
            {"id": "cmp_1", "clientId": "act_1"},
            {"id": "cmp_2", "clientId": "act_2"},
        ])
        campaigns = asyncio.run(source.list_campaigns("act_2", START, END))
        assert [c.id for c in campaigns] == ["cmp_2"]

    def test_invalid_records_are_skipped(self) -> None:
        source = StaticCampaignSource({
            "act_1": [{"id": "cmp_1", "spendToDate": "lots"}, {"id": "cmp_2"}],
        })
        campaigns = asyncio.run(source.list_campaigns("act_1", START, END))
        assert [c.id for c in campaigns] == ["cmp_2"]

    def test_reads_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "campaigns.json"
        path.write_text(json.dumps({"act_1": [{"id": "cmp_1"}]}), encoding="utf-8")
        campaigns = asyncio.run(StaticCampaignSource(path).list_campaigns("act_1", START, END))
        assert len(campaigns) == 1

    def test_missing_file_is_not_retryable(self, tmp_path: Path) -> None:
        source = StaticCampaignSource(tmp_path / "absent.json")
        with pytest.raises(ExternalServiceError) as exc_info:
            asyncio.run(source.list_campaigns("act_1", START, END))
        assert exc_info.value.status_code == 404
        assert exc_info.value.retryable is False

    def test_malformed_file(self, tmp_path: Path) -> None:
        path = tmp_path / "campaigns.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ExternalServiceError) as exc_info:
            asyncio.run(StaticCampaignSource(path).list_campaigns("act_1", START, END))
        assert exc_info.value.status_code == 422
