# sample records written into each collection the first time it is read
import random
from datetime import datetime, timedelta
from typing import List, Optional

from db.models import (
    PerformanceMetrics,
    SupportTicket,
    SystemAlert,
    Terminal,
    User,
)
from utils import config

_EPOCH = datetime(2025, 1, 1)


def sample_users() -> List[User]:
    return [
        User(
            id="user-admin-001",
            full_name="Tendai Mukamuri",
            username="admin.mukamuri",
            email="admin.mukamuri@stanbic.co.zw",
            password="admin123",
            role="Administrator",
            last_login=datetime(2025, 9, 3, 19, 5, 13),
            created_at=_EPOCH,
            updated_at=datetime(2025, 9, 3, 19, 5, 13),
        ),
        User(
            id="user-support-001",
            full_name="Chipo Nhongo",
            username="support.nhongo",
            email="support.nhongo@stanbic.co.zw",
            password="support123",
            role="Support Agent",
            last_login=datetime(2025, 8, 25, 13, 51, 55),
            created_at=_EPOCH,
            updated_at=datetime(2025, 8, 25, 13, 51, 55),
        ),
        User(
            id="user-manager-001",
            full_name="Sarah Chigumba",
            username="servicedesk.manager",
            email="servicedesk.manager@stanbic.co.zw",
            password="manager123",
            role="Service Desk Manager",
            last_login=datetime(2025, 9, 3, 19, 14, 46),
            created_at=_EPOCH,
            updated_at=datetime(2025, 9, 3, 19, 14, 46),
        ),
        User(
            id="user-merchant-001",
            full_name="Tafadzwa Mutasa",
            username="merchant.mutasa",
            email="merchant.mutasa@stanbic.co.zw",
            password="merchant123",
            role="Merchant",
            last_login=datetime(2025, 8, 23, 22, 17, 10),
            assigned_terminals=("T001",),
            created_at=_EPOCH,
            updated_at=datetime(2025, 8, 23, 22, 17, 10),
        ),
    ]


def sample_terminals(now: Optional[datetime] = None) -> List[Terminal]:
    now = now or datetime.now()

    def minutes(n: int) -> datetime:
        return now - timedelta(minutes=n)

    return [
        Terminal(
            id="T001",
            location="Harare CBD",
            merchant="Pick n Pay",
            status="Online",
            latitude=-17.8292,
            longitude=31.0522,
            uptime=100,
            transactions_today=45,
            last_seen=now,
            last_transaction=now,
            created_at=_EPOCH,
            updated_at=now,
        ),
        Terminal(
            id="T002",
            location="Bulawayo City",
            merchant="Ushe Manhuna",
            status="Online",
            latitude=-20.1594,
            longitude=28.5906,
            uptime=98.5,
            transactions_today=32,
            last_seen=minutes(9),
            last_transaction=minutes(30),
            created_at=_EPOCH,
            updated_at=now,
        ),
        Terminal(
            id="T003",
            location="Mutare Center",
            merchant="Ushe Manhuna",
            status="Offline",
            latitude=-18.9707,
            longitude=32.6473,
            uptime=85.2,
            transactions_today=0,
            last_seen=minutes(120),
            last_transaction=minutes(180),
            created_at=_EPOCH,
            updated_at=now,
        ),
        Terminal(
            id="T004",
            location="Gweru Main",
            merchant="Choppies",
            status="Maintenance",
            latitude=-19.4543,
            longitude=29.8154,
            uptime=92.1,
            transactions_today=15,
            last_seen=minutes(34),
            last_transaction=minutes(60),
            created_at=_EPOCH,
            updated_at=now,
        ),
        Terminal(
            id="T005",
            location="Masvingo Plaza",
            merchant="Food World",
            status="Online",
            latitude=-20.0716,
            longitude=30.8272,
            uptime=96.8,
            transactions_today=28,
            last_seen=minutes(5),
            last_transaction=minutes(15),
            created_at=_EPOCH,
            updated_at=now,
        ),
    ]


def sample_tickets(now: Optional[datetime] = None) -> List[SupportTicket]:
    now = now or datetime.now()
    opened = now - timedelta(days=10)
    return [
        SupportTicket(
            id="TKT-2025-001",
            title="Terminal Offline - Pick n Pay Borrowdale",
            description="Terminal T001 has been offline for over 2 hours",
            terminal_id="T001",
            priority="High",
            status="Open",
            source="System",
            reported_by="user-admin-001",
            assigned_to="user-support-001",
            created_at=opened,
            updated_at=opened,
            sla_target=opened + timedelta(hours=config.SLA_TARGET_HOURS),
            sla_breach=True,
            sla_breach_duration=259 * 60,
        )
    ]


def sample_alerts(now: Optional[datetime] = None) -> List[SystemAlert]:
    now = now or datetime.now()
    return [
        SystemAlert(
            id="alert-001",
            type="Terminal Down",
            message="Terminal T003 (Mutare Center) has been offline for 2 hours",
            severity="High",
            terminal_id="T003",
            created_at=now - timedelta(hours=2),
        )
    ]


def sample_metrics(
    now: Optional[datetime] = None, rng: Optional[random.Random] = None
) -> List[PerformanceMetrics]:
    """One synthetic record per day, oldest first, ending today."""
    now = now or datetime.now()
    rng = rng or random.Random()
    metrics = []
    for days_back in range(config.METRICS_HISTORY_DAYS, -1, -1):
        day = (now - timedelta(days=days_back)).date()
        metrics.append(
            PerformanceMetrics(
                date=day.isoformat(),
                total_terminals=20,
                online_terminals=rng.randint(12, 19),
                offline_terminals=rng.randint(0, 3),
                maintenance_terminals=rng.randint(0, 2),
                error_terminals=rng.randint(0, 2),
                average_uptime=rng.uniform(80, 100),
                total_tickets=rng.randint(5, 19),
                open_tickets=rng.randint(2, 9),
                resolved_tickets=rng.randint(3, 12),
                average_resolution_time=rng.uniform(60, 300),
                sla_compliance=rng.uniform(85, 100),
                customer_satisfaction=rng.uniform(4, 5),
            )
        )
    return metrics
