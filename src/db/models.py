# dataclass models and their JSON record conversion

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Dict, Literal, Optional, Tuple, Type, TypeVar

Role = Literal["Administrator", "Support Agent", "Service Desk Manager", "Merchant"]
UserStatus = Literal["Active", "Locked"]
TerminalStatus = Literal["Online", "Offline", "Maintenance", "Error"]
TicketPriority = Literal["Low", "Medium", "High", "Critical"]
TicketStatus = Literal["Open", "In Progress", "Resolved", "Closed", "Scheduled"]
TicketSource = Literal["System", "Merchant", "Customer Call", "WhatsApp", "Email"]
AlertType = Literal["Terminal Down", "SLA Breach", "High Priority Ticket", "System Error"]
Severity = Literal["Low", "Medium", "High", "Critical"]

ROLES: Tuple[str, ...] = (
    "Administrator",
    "Support Agent",
    "Service Desk Manager",
    "Merchant",
)
TERMINAL_STATUSES: Tuple[str, ...] = ("Online", "Offline", "Maintenance", "Error")
TICKET_PRIORITIES: Tuple[str, ...] = ("Low", "Medium", "High", "Critical")
TICKET_STATUSES: Tuple[str, ...] = (
    "Open",
    "In Progress",
    "Resolved",
    "Closed",
    "Scheduled",
)
TICKET_SOURCES: Tuple[str, ...] = (
    "System",
    "Merchant",
    "Customer Call",
    "WhatsApp",
    "Email",
)

# tickets in these states no longer count against their SLA
CLOSED_TICKET_STATUSES: Tuple[str, ...] = ("Resolved", "Closed")


@dataclass(frozen=True)
class User:
    id: str
    username: str
    email: str
    full_name: str
    password: str
    role: Role
    status: UserStatus = "Active"
    failed_login_attempts: int = 0
    last_login: Optional[datetime] = None
    assigned_terminals: Tuple[str, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    DATETIME_FIELDS: ClassVar[Tuple[str, ...]] = ("last_login", "created_at", "updated_at")
    TUPLE_FIELDS: ClassVar[Tuple[str, ...]] = ("assigned_terminals",)

    @property
    def is_locked(self) -> bool:
        return self.status == "Locked"


@dataclass(frozen=True)
class Terminal:
    id: str
    location: str
    merchant: str
    status: TerminalStatus
    latitude: float = 0.0
    longitude: float = 0.0
    uptime: float = 100.0  # percent
    transactions_today: int = 0
    last_seen: Optional[datetime] = None
    last_transaction: Optional[datetime] = None
    last_maintenance: Optional[datetime] = None
    next_maintenance: Optional[datetime] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    firmware_version: Optional[str] = None
    network_type: Optional[Literal["WiFi", "Ethernet", "4G", "3G"]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    DATETIME_FIELDS: ClassVar[Tuple[str, ...]] = (
        "last_seen",
        "last_transaction",
        "last_maintenance",
        "next_maintenance",
        "created_at",
        "updated_at",
    )
    TUPLE_FIELDS: ClassVar[Tuple[str, ...]] = ()


@dataclass(frozen=True)
class SupportTicket:
    id: str
    title: str
    description: str
    terminal_id: str
    priority: TicketPriority
    status: TicketStatus
    source: TicketSource
    reported_by: str
    assigned_to: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    sla_target: Optional[datetime] = None
    sla_breach: bool = False
    sla_breach_duration: int = 0  # minutes past sla_target
    resolution: Optional[str] = None
    resolution_time: Optional[int] = None  # minutes from creation to resolution

    DATETIME_FIELDS: ClassVar[Tuple[str, ...]] = (
        "created_at",
        "updated_at",
        "resolved_at",
        "sla_target",
    )
    TUPLE_FIELDS: ClassVar[Tuple[str, ...]] = ()

    @property
    def is_open(self) -> bool:
        return self.status not in CLOSED_TICKET_STATUSES


@dataclass(frozen=True)
class SystemAlert:
    id: str
    type: AlertType
    message: str
    severity: Severity
    terminal_id: Optional[str] = None
    ticket_id: Optional[str] = None
    acknowledged: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    DATETIME_FIELDS: ClassVar[Tuple[str, ...]] = ("acknowledged_at", "created_at")
    TUPLE_FIELDS: ClassVar[Tuple[str, ...]] = ()


@dataclass(frozen=True)
class PerformanceMetrics:
    date: str  # YYYY-MM-DD
    total_terminals: int
    online_terminals: int
    offline_terminals: int
    maintenance_terminals: int
    error_terminals: int
    average_uptime: float
    total_tickets: int
    open_tickets: int
    resolved_tickets: int
    average_resolution_time: float  # minutes
    sla_compliance: float  # percent
    customer_satisfaction: float  # 1..5

    DATETIME_FIELDS: ClassVar[Tuple[str, ...]] = ()
    TUPLE_FIELDS: ClassVar[Tuple[str, ...]] = ()


M = TypeVar("M")


def to_record(entity: Any) -> Dict[str, Any]:
    """Flatten a model into a JSON-ready dict."""
    record = dataclasses.asdict(entity)
    for name in type(entity).DATETIME_FIELDS:
        value = record.get(name)
        if isinstance(value, datetime):
            record[name] = value.isoformat()
    for name in type(entity).TUPLE_FIELDS:
        record[name] = list(record[name])
    return record


def from_record(model: Type[M], record: Dict[str, Any]) -> M:
    """
    Build a model from a stored dict. Unknown keys are ignored, so records
    written by a newer schema still load.
    """
    names = {f.name for f in dataclasses.fields(model)}
    kwargs = {k: v for k, v in record.items() if k in names}
    for name in model.DATETIME_FIELDS:
        value = kwargs.get(name)
        if isinstance(value, str):
            kwargs[name] = datetime.fromisoformat(value)
    for name in model.TUPLE_FIELDS:
        if kwargs.get(name) is not None:
            kwargs[name] = tuple(kwargs[name])
    return model(**kwargs)
