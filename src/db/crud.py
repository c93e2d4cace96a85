# src/db/crud.py
from __future__ import annotations

import asyncio
import dataclasses
import random
import string
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    List,
    Optional,
    Sequence,
    Type,
    TypeVar,
)

from db import fixtures, models
from db.database import KeyValueStore, PersistenceError
from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)

E = TypeVar("E")

USERS_KEY = "terminal_pulse_users"
TERMINALS_KEY = "terminal_pulse_terminals"
TICKETS_KEY = "terminal_pulse_tickets"
ALERTS_KEY = "terminal_pulse_alerts"
METRICS_KEY = "terminal_pulse_metrics"
CURRENT_USER_KEY = "terminal_pulse_current_user"

_BASE36 = string.digits + string.ascii_lowercase


def generate_id(prefix: str, suffix_len: int = 9, upper: bool = False) -> str:
    """
    `<prefix>-<epoch ms>-<random base36>`. Unique in practice, not guaranteed.
    """
    suffix = "".join(random.choices(_BASE36, k=suffix_len))
    if upper:
        suffix = suffix.upper()
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


@dataclass(frozen=True)
class PersistenceFailure:
    key: str
    error: BaseException
    occurred_at: datetime


FailureListener = Callable[[PersistenceFailure], None]


def _decode_records(model: Type[E], raw: List[Any], key: str) -> List[E]:
    """Rebuild stored records, skipping the ones that no longer fit the model."""
    entities: List[E] = []
    for record in raw:
        if not isinstance(record, dict):
            _logger.warning(f"Skipping malformed record in {key}: {record!r}")
            continue
        try:
            entities.append(models.from_record(model, record))
        except (TypeError, ValueError, AttributeError) as exc:
            _logger.warning(f"Skipping malformed record in {key}: {exc}")
    return entities


# ---------------------------
# Collections
# ---------------------------


class Collection(Generic[E]):
    """
    CRUD over one JSON array stored under a single key.

    Every mutation reads the whole array, changes one element and writes
    the whole array back, under a lock shared by all mutations of this
    collection.
    """

    def __init__(
        self,
        store: RecordStore,
        key: str,
        model: Type[E],
        seed: Callable[[], Sequence[E]],
        id_prefix: str,
        id_suffix_len: int = 9,
        upper_ids: bool = False,
        normalize: Optional[Callable[[E, datetime], E]] = None,
    ) -> None:
        self._store = store
        self.key = key
        self.model = model
        self._seed = seed
        self._id_prefix = id_prefix
        self._id_suffix_len = id_suffix_len
        self._upper_ids = upper_ids
        self._normalize = normalize
        self._lock = asyncio.Lock()
        field_names = {f.name for f in dataclasses.fields(model)}
        self._tracks_updates = "updated_at" in field_names

    async def list(self) -> List[E]:
        """Full collection in insertion order, seeding it if absent."""
        raw = await self._store.kv.get_item(self.key)
        if raw is None:
            seeded = list(self._seed())
            _logger.info(f"Seeding {self.key} with {len(seeded)} records.")
            await self._write(seeded)
            return seeded
        if not isinstance(raw, list):
            _logger.warning(f"Ignoring {self.key}: expected a list, got {type(raw).__name__}.")
            return []
        return _decode_records(self.model, raw, self.key)

    async def get_by_id(self, entity_id: str) -> Optional[E]:
        return await self.find(lambda e: e.id == entity_id)

    async def find(self, predicate: Callable[[E], bool]) -> Optional[E]:
        for entity in await self.list():
            if predicate(entity):
                return entity
        return None

    async def create(self, fields: Dict[str, Any]) -> E:
        now = datetime.now()
        values = dict(fields)
        values.setdefault(
            "id", generate_id(self._id_prefix, self._id_suffix_len, self._upper_ids)
        )
        values["created_at"] = now
        if self._tracks_updates:
            values["updated_at"] = now
        entity = self.model(**values)
        if self._normalize:
            entity = self._normalize(entity, now)
        async with self._lock:
            entities = await self.list()
            entities.append(entity)
            await self._write(entities)
        _logger.debug(f"Created {entity.id} in {self.key}.")
        return entity

    async def update(self, entity_id: str, fields: Dict[str, Any]) -> Optional[E]:
        """
        Shallow-merge fields into the entity. Returns None when the id is
        unknown. The id itself is never changed.
        """
        changes = {k: v for k, v in fields.items() if k != "id"}

        def merge(entity: E) -> E:
            return dataclasses.replace(entity, **changes)

        return await self._apply(entity_id, merge, always_touch=True)

    async def mutate(self, entity_id: str, fn: Callable[[E], E]) -> Optional[E]:
        """
        Atomic read-modify-write. fn gets the freshly read entity; returning
        it unchanged skips the write.
        """
        return await self._apply(entity_id, fn, always_touch=False)

    async def delete(self, entity_id: str) -> bool:
        async with self._lock:
            entities = await self.list()
            remaining = [e for e in entities if e.id != entity_id]
            if len(remaining) == len(entities):
                return False
            await self._write(remaining)
        _logger.debug(f"Deleted {entity_id} from {self.key}.")
        return True

    async def _apply(
        self, entity_id: str, fn: Callable[[E], E], always_touch: bool
    ) -> Optional[E]:
        async with self._lock:
            entities = await self.list()
            for idx, current in enumerate(entities):
                if current.id == entity_id:
                    break
            else:
                return None
            updated = fn(current)
            if updated is current and not always_touch:
                return current
            now = datetime.now()
            if self._tracks_updates:
                updated = dataclasses.replace(updated, updated_at=now)
            if self._normalize:
                updated = self._normalize(updated, now)
            entities[idx] = updated
            await self._write(entities)
        return updated

    async def _write(self, entities: Sequence[E]) -> None:
        await self._store.persist(self.key, [models.to_record(e) for e in entities])


class MetricsSeries:
    """Read-only daily metrics, generated once and never mutated."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self.key = METRICS_KEY

    async def list(self) -> List[models.PerformanceMetrics]:
        raw = await self._store.kv.get_item(self.key)
        if raw is None:
            series = fixtures.sample_metrics()
            await self._store.persist(self.key, [models.to_record(m) for m in series])
            return series
        if not isinstance(raw, list):
            _logger.warning(f"Ignoring {self.key}: expected a list, got {type(raw).__name__}.")
            return []
        return _decode_records(models.PerformanceMetrics, raw, self.key)

    async def latest(self, days: int) -> List[models.PerformanceMetrics]:
        series = await self.list()
        return series[-days:] if days > 0 else []


def _normalize_user(user: models.User, now: datetime) -> models.User:
    """Too many failed logins always means a locked account."""
    if (
        user.failed_login_attempts >= config.MAX_FAILED_LOGIN_ATTEMPTS
        and not user.is_locked
    ):
        return dataclasses.replace(user, status="Locked")
    return user


def _normalize_ticket(
    ticket: models.SupportTicket, now: datetime
) -> models.SupportTicket:
    """resolved_at is set exactly when the ticket is Resolved."""
    if ticket.status == "Resolved" and ticket.resolved_at is None:
        return dataclasses.replace(ticket, resolved_at=now)
    if ticket.status != "Resolved" and ticket.resolved_at is not None:
        return dataclasses.replace(ticket, resolved_at=None)
    return ticket


# ---------------------------
# Record store
# ---------------------------


class RecordStore:
    """
    Owns every collection plus the current-session slot. Construct one per
    app (or per test) and pass it to whoever needs it.
    """

    def __init__(self, kv: Optional[KeyValueStore] = None) -> None:
        self.kv = kv or KeyValueStore()
        self.failures: List[PersistenceFailure] = []
        self._failure_listeners: List[FailureListener] = []

        self.users: Collection[models.User] = Collection(
            self,
            USERS_KEY,
            models.User,
            fixtures.sample_users,
            "user",
            normalize=_normalize_user,
        )
        self.terminals: Collection[models.Terminal] = Collection(
            self, TERMINALS_KEY, models.Terminal, fixtures.sample_terminals, "T"
        )
        self.tickets: Collection[models.SupportTicket] = Collection(
            self,
            TICKETS_KEY,
            models.SupportTicket,
            fixtures.sample_tickets,
            "TKT",
            id_suffix_len=6,
            upper_ids=True,
            normalize=_normalize_ticket,
        )
        self.alerts: Collection[models.SystemAlert] = Collection(
            self, ALERTS_KEY, models.SystemAlert, fixtures.sample_alerts, "alert"
        )
        self.metrics = MetricsSeries(self)

    # -- persistence failures --

    def add_failure_listener(self, listener: FailureListener) -> None:
        self._failure_listeners.append(listener)

    def remove_failure_listener(self, listener: FailureListener) -> None:
        if listener in self._failure_listeners:
            self._failure_listeners.remove(listener)

    async def persist(self, key: str, value: Any) -> bool:
        """
        Write a value. A failure is logged, recorded and passed to the
        listeners but never raised; returns False in that case.
        """
        try:
            await self.kv.set_item(key, value)
        except PersistenceError as exc:
            self._report_failure(key, exc)
            return False
        return True

    def _report_failure(self, key: str, exc: PersistenceError) -> None:
        _logger.error(f"Error saving {key}: {exc.cause}")
        failure = PersistenceFailure(key=key, error=exc, occurred_at=datetime.now())
        self.failures.append(failure)
        for listener in list(self._failure_listeners):
            listener(failure)

    # -- users & session --

    async def get_user_by_username(self, username: str) -> Optional[models.User]:
        """Case-sensitive exact match."""
        return await self.users.find(lambda u: u.username == username)

    async def get_current_session(self) -> Optional[models.User]:
        raw = await self.kv.get_item(CURRENT_USER_KEY)
        if raw is None:
            return None
        try:
            return models.from_record(models.User, raw)
        except (TypeError, ValueError, AttributeError) as exc:
            _logger.warning(f"Discarding unreadable session record: {exc}")
            return None

    async def set_current_session(self, user: Optional[models.User]) -> bool:
        if user is not None:
            return await self.persist(CURRENT_USER_KEY, models.to_record(user))
        try:
            await self.kv.remove_item(CURRENT_USER_KEY)
        except PersistenceError as exc:
            self._report_failure(CURRENT_USER_KEY, exc)
            return False
        return True

    # -- scoped reads --

    async def terminals_for_user(self, user_id: str) -> List[models.Terminal]:
        user = await self.users.get_by_id(user_id)
        terminals = await self.terminals.list()
        if user is None or user.role != "Merchant":
            return terminals
        return [t for t in terminals if t.id in user.assigned_terminals]

    async def tickets_for_user(self, user_id: str) -> List[models.SupportTicket]:
        user = await self.users.get_by_id(user_id)
        if user is None:
            return []
        tickets = await self.tickets.list()
        if user.role != "Merchant":
            return tickets
        return [t for t in tickets if t.terminal_id in user.assigned_terminals]

    # -- terminals --

    async def update_terminal_status(
        self, terminal_id: str, status: models.TerminalStatus
    ) -> bool:
        updated = await self.terminals.update(
            terminal_id, {"status": status, "last_seen": datetime.now()}
        )
        return updated is not None

    # -- tickets --

    async def create_ticket(
        self, fields: Dict[str, Any], reported_by: str
    ) -> models.SupportTicket:
        values = {
            "status": "Open",
            "source": "Merchant",
            "priority": "Medium",
            **fields,
            "reported_by": reported_by,
            "assigned_to": None,
            "sla_target": datetime.now() + timedelta(hours=config.SLA_TARGET_HOURS),
            "sla_breach": False,
            "sla_breach_duration": 0,
        }
        return await self.tickets.create(values)

    async def assign_ticket(
        self, ticket_id: str, user_id: str
    ) -> Optional[models.SupportTicket]:
        return await self.tickets.update(
            ticket_id, {"assigned_to": user_id, "status": "In Progress"}
        )

    async def update_ticket_status(
        self, ticket_id: str, status: models.TicketStatus, resolution: Optional[str] = None
    ) -> Optional[models.SupportTicket]:
        def apply(ticket: models.SupportTicket) -> models.SupportTicket:
            changes: Dict[str, Any] = {"status": status}
            if status == "Resolved":
                created = ticket.created_at or datetime.now()
                elapsed = datetime.now() - created
                changes["resolution_time"] = int(elapsed.total_seconds() // 60)
                if resolution is not None:
                    changes["resolution"] = resolution
            return dataclasses.replace(ticket, **changes)

        return await self.tickets.mutate(ticket_id, apply)

    async def evaluate_sla(
        self, now: Optional[datetime] = None
    ) -> List[models.SupportTicket]:
        """
        Flag open tickets that are past their SLA target. Returns the tickets
        whose breach state changed.
        """
        now = now or datetime.now()
        flagged = set()

        # decided on the freshly read ticket, so a concurrent resolve wins
        def flag_overdue(ticket: models.SupportTicket) -> models.SupportTicket:
            if not ticket.is_open or ticket.sla_target is None:
                return ticket
            if now <= ticket.sla_target:
                return ticket
            overdue = int((now - ticket.sla_target).total_seconds() // 60)
            if ticket.sla_breach and ticket.sla_breach_duration == overdue:
                return ticket
            flagged.add(ticket.id)
            return dataclasses.replace(
                ticket, sla_breach=True, sla_breach_duration=overdue
            )

        changed = []
        for ticket in await self.tickets.list():
            if not ticket.is_open:
                continue
            updated = await self.tickets.mutate(ticket.id, flag_overdue)
            if updated is not None and updated.id in flagged:
                changed.append(updated)
        if changed:
            _logger.info(f"{len(changed)} ticket(s) past their SLA target.")
        return changed

    # -- alerts --

    async def create_alert(self, fields: Dict[str, Any]) -> models.SystemAlert:
        return await self.alerts.create(fields)

    async def acknowledge_alert(
        self, alert_id: str, user_id: str
    ) -> Optional[models.SystemAlert]:
        return await self.alerts.update(
            alert_id,
            {
                "acknowledged": True,
                "acknowledged_by": user_id,
                "acknowledged_at": datetime.now(),
            },
        )

    # -- maintenance --

    async def clear_all(self) -> None:
        """Wipe every key and the session slot, then seed fixtures again."""
        try:
            await self.kv.clear()
        except PersistenceError as exc:
            self._report_failure(exc.key, exc)
        _logger.info("All data cleared, re-seeding fixtures.")
        await self.seed()

    async def seed(self) -> None:
        """Touch every collection so absent ones get their fixtures."""
        await self.users.list()
        await self.terminals.list()
        await self.tickets.list()
        await self.alerts.list()
        await self.metrics.list()
