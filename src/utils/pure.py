from collections import Counter
from datetime import datetime
from typing import Dict, List, Literal, Optional, Sequence

from db.models import PerformanceMetrics, SupportTicket, Terminal


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows, each a list of strings.
        aligns: List of alignments ('l', 'c', 'r') for each column.
                Defaults to all center ('c').

    Returns:
        str: Markdown formatted table.
    """
    if not rows:
        return ""

    # If no headers, take the first row as header and remove it from rows
    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = list(map(str, headers))
    rows = [list(map(str, row)) for row in rows]

    num_cols = len(headers)
    if aligns is None:
        aligns = ["c"] * num_cols
    elif len(aligns) != num_cols:
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {
        "l": ":---",
        "c": ":---:",
        "r": "---:",
    }

    header_line = "| " + " | ".join(headers) + " |"
    align_line = "| " + " | ".join(align_map[a] for a in aligns) + " |"
    row_lines = ["| " + " | ".join(map(str, row)) + " |" for row in rows]

    return "\n".join([header_line, align_line, *row_lines])


def time_ago(when: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Compact relative time, e.g. "5m ago". Falls back to the date after 30 days."""
    if when is None:
        return "Never"
    now = now or datetime.now()
    seconds = int((now - when).total_seconds())
    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    if seconds < 2592000:
        return f"{seconds // 86400}d ago"
    return when.strftime("%Y-%m-%d")


def format_duration(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}m"
    hours, rem_minutes = divmod(minutes, 60)
    if hours < 24:
        return f"{hours}h {rem_minutes}m" if rem_minutes else f"{hours}h"
    days, rem_hours = divmod(hours, 24)
    return f"{days}d {rem_hours}h" if rem_hours else f"{days}d"


def format_percentage(value: float, decimals: int = 1) -> str:
    return f"{value:.{decimals}f}%"


def truncate(text: str, length: int) -> str:
    if len(text) <= length:
        return text
    return text[:length] + "..."


def dashboard_kpis(
    terminals: Sequence[Terminal], tickets: Sequence[SupportTicket]
) -> Dict[str, float]:
    """
    Fleet and ticket headline numbers for the dashboard.

    Percentages are rounded to whole numbers. SLA compliance counts every
    ticket that has left the Open state; with none, it reports 100.
    """
    total = len(terminals)
    by_status = Counter(t.status for t in terminals)
    online_pct = round(by_status["Online"] / total * 100) if total else 0
    avg_uptime = round(sum(t.uptime for t in terminals) / total) if total else 0

    ticket_status = Counter(t.status for t in tickets)
    handled = [t for t in tickets if t.status != "Open"]
    compliant = [t for t in handled if not t.sla_breach]
    sla_compliance = round(len(compliant) / len(handled) * 100) if handled else 100

    resolved_times = [
        t.resolution_time
        for t in tickets
        if t.status == "Resolved" and t.resolution_time
    ]
    avg_resolution = (
        round(sum(resolved_times) / len(resolved_times)) if resolved_times else 0
    )

    return {
        "total_terminals": total,
        "online_terminals": by_status["Online"],
        "offline_terminals": by_status["Offline"],
        "maintenance_terminals": by_status["Maintenance"],
        "error_terminals": by_status["Error"],
        "online_percentage": online_pct,
        "avg_uptime": avg_uptime,
        "issues_detected": by_status["Offline"] + by_status["Error"],
        "total_tickets": len(tickets),
        "open_tickets": ticket_status["Open"],
        "in_progress_tickets": ticket_status["In Progress"],
        "resolved_tickets": ticket_status["Resolved"],
        "scheduled_tickets": ticket_status["Scheduled"],
        "sla_breaches": sum(1 for t in tickets if t.sla_breach),
        "sla_compliance": sla_compliance,
        "avg_resolution_minutes": avg_resolution,
    }


def metrics_summary(series: Sequence[PerformanceMetrics]) -> Dict[str, float]:
    """Averages over a window of daily metrics; zeros for an empty window."""
    if not series:
        return {
            "days": 0,
            "average_uptime": 0.0,
            "sla_compliance": 0.0,
            "average_resolution_time": 0.0,
            "customer_satisfaction": 0.0,
            "total_tickets": 0,
            "resolved_tickets": 0,
        }
    n = len(series)
    return {
        "days": n,
        "average_uptime": sum(m.average_uptime for m in series) / n,
        "sla_compliance": sum(m.sla_compliance for m in series) / n,
        "average_resolution_time": sum(m.average_resolution_time for m in series) / n,
        "customer_satisfaction": sum(m.customer_satisfaction for m in series) / n,
        "total_tickets": sum(m.total_tickets for m in series),
        "resolved_tickets": sum(m.resolved_tickets for m in series),
    }
