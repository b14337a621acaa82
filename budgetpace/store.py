"""
BudgetPace - Store Module.

This module holds the persistent state of the dashboard: per-campaign
budget configurations with their change history, client commissions,
per-agency alert settings, raised alerts and the agency/client directory.

Every typed store sits on a generic async document store. The document
store offers whole-document get/put only, so every write is a
read-modify-write. Two concurrent saves for the same campaign race and
the last write wins; neither save is rejected.

Classes:
    DocumentStore: Abstract async key-document store.
    InMemoryDocumentStore: Process-local document store.
    JsonFileDocumentStore: Document store backed by one JSON file.
    SaveResult: Outcome of a budget save.
    BudgetConfigStore: Campaign budget configurations.
    CommissionStore: Client commission settings.
    AlertSettingsStore: Per-agency alert settings.
    AlertStore: Raised alerts, one per (account, campaign, type).
    ClientDirectory: Agencies and their ad accounts.
"""

import asyncio
import copy
import json
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from budgetpace.allocator import BudgetAllocator
from budgetpace.commission import CommissionConverter
from budgetpace.date_logic import DateLike, DateManager
from budgetpace.errors import NotFoundError, ValidationError
from budgetpace.schema import (
    Alert,
    AlertSettings,
    BudgetHistoryEntry,
    BudgetType,
    CampaignBudgetConfig,
    Client,
    Commission,
    FixedRawConfig,
    PutStatus,
)
from budgetpace.serialiser import DecimalEncoder, DocumentSerialiser
from budgetpace.validator import RequestValidator

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
Clock = Callable[[], datetime]

BUDGETS = "campaign_budgets"
REMOVED_CAMPAIGNS = "removed_campaigns"
COMMISSIONS = "commissions"
ALERT_SETTINGS = "alert_settings"
ALERTS = "alerts"
AGENCIES = "agencies"
CLIENTS = "clients"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStore(ABC):
    """
    Abstract async document store: collections of JSON documents by key.
    """

    @abstractmethod
    async def get(self, collection: str, key: str) -> Optional[Document]:
        """Returns the document stored under key, or None."""

    @abstractmethod
    async def put(self, collection: str, key: str, document: Document) -> None:
        """Stores a document under key, replacing any previous one."""

    @abstractmethod
    async def delete(self, collection: str, key: str) -> bool:
        """Deletes a document. Returns False if it did not exist."""

    @abstractmethod
    async def list(self, collection: str) -> Dict[str, Document]:
        """Returns every document in a collection, keyed by key."""


class InMemoryDocumentStore(DocumentStore):
    """
    Document store kept in process memory.

    Documents are copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self, initial: Optional[Dict[str, Dict[str, Document]]] = None):
        self._data: Dict[str, Dict[str, Document]] = copy.deepcopy(initial or {})

    async def get(self, collection: str, key: str) -> Optional[Document]:
        document = self._data.get(collection, {}).get(key)
        return copy.deepcopy(document) if document is not None else None

    async def put(self, collection: str, key: str, document: Document) -> None:
        self._data.setdefault(collection, {})[key] = copy.deepcopy(document)

    async def delete(self, collection: str, key: str) -> bool:
        return self._data.get(collection, {}).pop(key, None) is not None

    async def list(self, collection: str) -> Dict[str, Document]:
        return copy.deepcopy(self._data.get(collection, {}))


class JsonFileDocumentStore(DocumentStore):
    """
    Document store backed by a single JSON file.

    Each operation reads the whole file and writes it back. File I/O runs
    in a worker thread; a lock serialises operations within the process.
    The file is created on first write.

    Attributes:
        path: Location of the JSON data file.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> Dict[str, Dict[str, Document]]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        return json.loads(text)

    def _write(self, data: Dict[str, Dict[str, Document]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(
            json.dumps(data, cls=DecimalEncoder, indent=2, ensure_ascii=False),
            encoding="utf-8"
        )
        tmp_path.replace(self.path)

    async def get(self, collection: str, key: str) -> Optional[Document]:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
        return data.get(collection, {}).get(key)

    async def put(self, collection: str, key: str, document: Document) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data.setdefault(collection, {})[key] = document
            await asyncio.to_thread(self._write, data)

    async def delete(self, collection: str, key: str) -> bool:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            if key not in data.get(collection, {}):
                return False
            del data[collection][key]
            await asyncio.to_thread(self._write, data)
        return True

    async def list(self, collection: str) -> Dict[str, Document]:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
        return data.get(collection, {})


@dataclass
class SaveResult:
    """
    Outcome of a budget save.

    Attributes:
        status: SAVED, or NOT_FOUND if the campaign has been removed.
        config: The configuration that was written.
        replaced_type: Type of a previous configuration of a different
            type that this save overwrote, if any.
    """

    status: PutStatus
    config: CampaignBudgetConfig
    replaced_type: Optional[BudgetType] = None

    @property
    def warning(self) -> Optional[str]:
        if self.replaced_type is None:
            return None
        return (
            f"Existing {self.replaced_type.value} budget was replaced by a "
            f"{self.config.type.value} budget"
        )


class BudgetConfigStore:
    """
    Holds the single active budget configuration of each campaign.

    Saves replace the configuration (periods and raw form state) but carry
    the history forward and append one entry per save or extension.

    Example:
        >>> store = BudgetConfigStore(InMemoryDocumentStore())
        >>> result = await store.save_recurring("cmp_1", "2025-12", "2026-02", 300000)
        >>> [p.start_date for p in result.config.periods]
        [date(2025, 12, 1), date(2026, 1, 1), date(2026, 2, 1)]
    """

    def __init__(
        self,
        documents: DocumentStore,
        allocator: Optional[BudgetAllocator] = None,
        serialiser: Optional[DocumentSerialiser] = None,
        validator: Optional[RequestValidator] = None,
        clock: Optional[Clock] = None
    ):
        date_manager = DateManager()
        self._documents = documents
        self._allocator = allocator or BudgetAllocator(date_manager)
        self._serialiser = serialiser or DocumentSerialiser()
        self._validator = validator or RequestValidator(date_manager)
        self._clock = clock or utc_now

    async def get(self, campaign_id: str) -> Optional[CampaignBudgetConfig]:
        """Returns the campaign's configuration, or None if none is stored."""
        document = await self._documents.get(BUDGETS, campaign_id)
        if document is None:
            return None
        return self._serialiser.config_from_dict(document, campaign_id)

    async def put(self, campaign_id: str, config: CampaignBudgetConfig) -> PutStatus:
        """
        Stores a configuration as is.

        Returns:
            NOT_FOUND if the campaign has been removed, otherwise SAVED.
        """
        if await self.is_removed(campaign_id):
            logger.warning(f"Rejected budget write for removed campaign {campaign_id}")
            return PutStatus.NOT_FOUND
        config.campaign_id = campaign_id
        await self._documents.put(BUDGETS, campaign_id, self._serialiser.config_to_dict(config))
        return PutStatus.SAVED

    async def remove(self, campaign_id: str) -> bool:
        """
        Deletes a campaign's configuration and marks the campaign removed.

        Later writes for the campaign return NOT_FOUND.
        """
        existed = await self._documents.delete(BUDGETS, campaign_id)
        await self._documents.put(
            REMOVED_CAMPAIGNS, campaign_id, {"removedAt": self._clock().isoformat()}
        )
        logger.info(f"Removed campaign {campaign_id} (config existed: {existed})")
        return existed

    async def is_removed(self, campaign_id: str) -> bool:
        return await self._documents.get(REMOVED_CAMPAIGNS, campaign_id) is not None

    async def save_recurring(
        self,
        campaign_id: str,
        start_month: str,
        end_month: str,
        amount: Any,
        actor: Optional[str] = None
    ) -> SaveResult:
        """
        Saves a recurring monthly budget.

        Args:
            campaign_id: Campaign identifier.
            start_month: First month, "YYYY-MM".
            end_month: Last month, "YYYY-MM" (inclusive).
            amount: Monthly amount (gross).
            actor: Who performed the save.

        Returns:
            SaveResult with the written configuration.

        Raises:
            ValidationError: If the months or amount are invalid.
        """
        raw = self._validator.validate_recurring(start_month, end_month, amount)
        periods = self._allocator.generate_recurring_periods(
            raw.start_month, raw.end_month, raw.amount
        )
        config = CampaignBudgetConfig(
            campaign_id=campaign_id,
            type=BudgetType.RECURRING,
            periods=periods,
            raw_config=raw,
        )
        description = f"{raw.start_month} ~ {raw.end_month}"
        return await self._replace(config, raw.amount, description, actor)

    async def save_fixed(
        self,
        campaign_id: str,
        start: DateLike,
        end: DateLike,
        amount: Any,
        actor: Optional[str] = None
    ) -> SaveResult:
        """
        Saves a fixed budget spanning one date range.

        Raises:
            ValidationError: If the dates or amount are invalid.
        """
        raw = self._validator.validate_fixed(start, end, amount)
        period = self._allocator.build_fixed_period(raw.start, raw.end, raw.amount)
        config = CampaignBudgetConfig(
            campaign_id=campaign_id,
            type=BudgetType.FIXED,
            periods=[period],
            raw_config=raw,
        )
        description = f"{raw.start.isoformat()} ~ {raw.end.isoformat()}"
        return await self._replace(config, raw.amount, description, actor)

    async def extend(
        self,
        campaign_id: str,
        new_end: DateLike,
        add_amount: Any = None,
        actor: Optional[str] = None
    ) -> SaveResult:
        """
        Extends a fixed budget to a new end date with a top-up.

        Args:
            campaign_id: Campaign identifier.
            new_end: New end date, after the current end date.
            add_amount: Top-up amount. Defaults to the suggested amount
                that keeps the current daily budget.
            actor: Who performed the extension.

        Returns:
            SaveResult with the extended configuration.

        Raises:
            NotFoundError: If the campaign has no configuration.
            ValidationError: If the configuration is not fixed, or the new
                end date or amount is invalid.
        """
        existing = await self.get(campaign_id)
        if existing is None or not existing.has_periods:
            raise NotFoundError("Budget configuration", campaign_id)
        if existing.type != BudgetType.FIXED:
            raise ValidationError.for_field(
                "type", existing.type.value, "Only fixed budgets can be extended"
            )

        period = existing.periods[-1]
        quote = self._allocator.quote_extension(period, new_end)
        if add_amount is None:
            top_up = quote.suggested_amount
        else:
            top_up, error = self._validator.parse_amount(add_amount, "addAmount")
            if error:
                raise ValidationError(str(error), [error])

        extended = self._allocator.apply_extension(period, quote.new_end, top_up)
        existing.periods = existing.periods[:-1] + [extended]
        existing.raw_config = FixedRawConfig(
            start=extended.start_date, end=extended.end_date, amount=extended.amount
        )
        existing.history.append(BudgetHistoryEntry(
            timestamp=self._clock(),
            type=BudgetType.FIXED,
            amount=extended.amount,
            period_description=(
                f"{extended.start_date.isoformat()} ~ {extended.end_date.isoformat()} "
                f"(extended +{quote.added_days}d, +{top_up})"
            ),
            actor=actor,
        ))

        status = await self.put(campaign_id, existing)
        logger.info(
            f"Extended budget of {campaign_id} to {extended.end_date} "
            f"(+{top_up}, total {extended.amount})"
        )
        return SaveResult(status=status, config=existing)

    async def _replace(
        self,
        config: CampaignBudgetConfig,
        amount: Any,
        description: str,
        actor: Optional[str]
    ) -> SaveResult:
        existing = await self.get(config.campaign_id)
        replaced_type = None
        if existing is not None:
            config.history = list(existing.history)
            if existing.type != config.type and existing.has_periods:
                replaced_type = existing.type

        config.history.append(BudgetHistoryEntry(
            timestamp=self._clock(),
            type=config.type,
            amount=amount,
            period_description=description,
            actor=actor,
        ))

        status = await self.put(config.campaign_id, config)
        result = SaveResult(status=status, config=config, replaced_type=replaced_type)
        if result.warning:
            logger.warning(f"Campaign {config.campaign_id}: {result.warning}")
        if status == PutStatus.SAVED:
            logger.info(
                f"Saved {config.type.value} budget for {config.campaign_id}: "
                f"{description} ({len(config.periods)} period(s))"
            )
        return result


class CommissionStore:
    """Holds the commission setting of each client."""

    def __init__(
        self,
        documents: DocumentStore,
        converter: Optional[CommissionConverter] = None,
        serialiser: Optional[DocumentSerialiser] = None
    ):
        self._documents = documents
        self._converter = converter or CommissionConverter()
        self._serialiser = serialiser or DocumentSerialiser()

    async def get(self, client_id: str) -> Optional[Commission]:
        document = await self._documents.get(COMMISSIONS, client_id)
        if document is None:
            return None
        return self._serialiser.commission_from_dict(document)

    async def put(self, client_id: str, commission: Commission) -> None:
        """
        Stores a client's commission.

        Raises:
            ValidationError: If the value is negative, or a percentage
                value is 100 or more.
        """
        self._converter.validate(commission)
        await self._documents.put(
            COMMISSIONS, client_id, self._serialiser.commission_to_dict(commission)
        )
        logger.info(
            f"Saved {commission.type.value} commission {commission.value} for client {client_id}"
        )

    async def delete(self, client_id: str) -> bool:
        return await self._documents.delete(COMMISSIONS, client_id)


class AlertSettingsStore:
    """Holds alert thresholds and enabled kinds per agency."""

    def __init__(
        self,
        documents: DocumentStore,
        serialiser: Optional[DocumentSerialiser] = None,
        validator: Optional[RequestValidator] = None
    ):
        self._documents = documents
        self._serialiser = serialiser or DocumentSerialiser()
        self._validator = validator or RequestValidator()

    async def get(self, agency_id: str) -> AlertSettings:
        """Returns the agency's settings, or the defaults if none are stored."""
        document = await self._documents.get(ALERT_SETTINGS, agency_id)
        if document is None:
            return AlertSettings()
        return self._serialiser.settings_from_dict(document)

    async def put(self, agency_id: str, settings: AlertSettings) -> None:
        self._validator.validate_alert_settings(settings)
        await self._documents.put(
            ALERT_SETTINGS, agency_id, self._serialiser.settings_to_dict(settings)
        )
        logger.info(f"Saved alert settings for agency {agency_id}")


class AlertStore:
    """
    Holds raised alerts.

    At most one alert exists per (account, campaign, type): upserting an
    alert replaces the previous one of the same kind.
    """

    def __init__(
        self,
        documents: DocumentStore,
        serialiser: Optional[DocumentSerialiser] = None,
        clock: Optional[Clock] = None
    ):
        self._documents = documents
        self._serialiser = serialiser or DocumentSerialiser()
        self._clock = clock or utc_now

    async def list(self, account_id: Optional[str] = None, unread_only: bool = False) -> List[Alert]:
        """
        Lists alerts, newest first.

        Args:
            account_id: Restrict to one agency account.
            unread_only: Only return alerts that have not been read.
        """
        documents = await self._documents.list(ALERTS)
        alerts = [self._serialiser.alert_from_dict(document) for document in documents.values()]
        if account_id is not None:
            alerts = [alert for alert in alerts if alert.account_id == account_id]
        if unread_only:
            alerts = [alert for alert in alerts if not alert.is_read]
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(alerts, key=lambda alert: alert.created_at or epoch, reverse=True)

    async def upsert(self, alert: Alert) -> Alert:
        """
        Stores an alert, replacing any alert of the same kind for the campaign.

        The replaced alert's id is kept. An alert the user has read stays
        read while its message and figures are unchanged; otherwise the
        stored alert is unread and stamped with the current time.

        Returns:
            The stored alert.
        """
        existing = [
            stored for stored in await self.list(alert.account_id)
            if stored.key == alert.key
        ]
        previous = existing[0] if existing else None
        alert.id = previous.id if previous else f"alert_{uuid.uuid4().hex[:12]}"
        if previous is not None and previous.is_read and self._unchanged(previous, alert):
            alert.is_read = True
            alert.created_at = previous.created_at
        else:
            alert.is_read = False
            alert.created_at = self._clock()

        # Older duplicates of the same kind collapse into this one
        for stale in existing[1:]:
            await self._documents.delete(ALERTS, stale.id)

        await self._documents.put(ALERTS, alert.id, self._serialiser.alert_to_dict(alert))
        logger.debug(f"Upserted {alert.type.value} alert {alert.id} for {alert.campaign_id}")
        return alert

    def _unchanged(self, previous: Alert, alert: Alert) -> bool:
        # Stored metadata holds serialised figures
        before = self._serialiser.alert_to_dict(previous)
        after = self._serialiser.alert_to_dict(alert)
        return before["message"] == after["message"] and before["metadata"] == after["metadata"]

    async def mark_read(self, alert_id: str) -> bool:
        document = await self._documents.get(ALERTS, alert_id)
        if document is None:
            return False
        document["isRead"] = True
        await self._documents.put(ALERTS, alert_id, document)
        return True

    async def delete(self, alert_id: str) -> bool:
        return await self._documents.delete(ALERTS, alert_id)


class ClientDirectory:
    """
    Agencies and the ad accounts (clients) they manage.

    Account and client management itself happens elsewhere; this is the
    read side used by the alert monitor and the CLI.
    """

    def __init__(
        self,
        documents: DocumentStore,
        serialiser: Optional[DocumentSerialiser] = None
    ):
        self._documents = documents
        self._serialiser = serialiser or DocumentSerialiser()

    async def list_agencies(self) -> List[str]:
        """Returns the ids of every agency that has at least one client."""
        agencies = set((await self._documents.list(AGENCIES)).keys())
        for client in await self._all_clients():
            agencies.add(client.agency_id)
        return sorted(agencies)

    async def list_clients(self, agency_id: str) -> List[Client]:
        return [client for client in await self._all_clients() if client.agency_id == agency_id]

    async def get_client(self, client_id: str) -> Client:
        """
        Raises:
            NotFoundError: If the client does not exist.
        """
        document = await self._documents.get(CLIENTS, client_id)
        if document is None:
            raise NotFoundError("Client", client_id)
        return self._serialiser.client_from_dict(document)

    async def add_client(self, client: Client) -> None:
        await self._documents.put(CLIENTS, client.id, self._serialiser.client_to_dict(client))
        if await self._documents.get(AGENCIES, client.agency_id) is None:
            await self._documents.put(AGENCIES, client.agency_id, {"id": client.agency_id})

    async def remove_client(self, client_id: str) -> bool:
        return await self._documents.delete(CLIENTS, client_id)

    async def _all_clients(self) -> List[Client]:
        documents = await self._documents.list(CLIENTS)
        return [self._serialiser.client_from_dict(document) for document in documents.values()]
