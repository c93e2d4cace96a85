import os
import sys
import unittest
from datetime import datetime, timedelta

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db import fixtures  # noqa: E402
from db.models import PerformanceMetrics, SupportTicket, Terminal  # noqa: E402
from utils.pure import (  # noqa: E402
    dashboard_kpis,
    format_duration,
    format_percentage,
    generate_markdown_table,
    metrics_summary,
    time_ago,
    truncate,
)


def make_ticket(ticket_id, status, sla_breach=False, resolution_time=None):
    return SupportTicket(
        id=ticket_id,
        title=ticket_id,
        description="",
        terminal_id="T001",
        priority="Medium",
        status=status,
        source="System",
        reported_by="user-admin-001",
        sla_breach=sla_breach,
        resolution_time=resolution_time,
    )


class FormattingTestCase(unittest.TestCase):
    def test_time_ago(self):
        now = datetime(2025, 9, 1, 12, 0, 0)
        self.assertEqual(time_ago(None, now), "Never")
        self.assertEqual(time_ago(now - timedelta(seconds=30), now), "Just now")
        self.assertEqual(time_ago(now - timedelta(minutes=5), now), "5m ago")
        self.assertEqual(time_ago(now - timedelta(hours=3), now), "3h ago")
        self.assertEqual(time_ago(now - timedelta(days=2), now), "2d ago")
        self.assertEqual(time_ago(now - timedelta(days=45), now), "2025-07-18")

    def test_format_duration(self):
        self.assertEqual(format_duration(45), "45m")
        self.assertEqual(format_duration(120), "2h")
        self.assertEqual(format_duration(135), "2h 15m")
        self.assertEqual(format_duration(24 * 60), "1d")
        self.assertEqual(format_duration(26 * 60 + 10), "1d 2h")

    def test_format_percentage_and_truncate(self):
        self.assertEqual(format_percentage(98.456), "98.5%")
        self.assertEqual(format_percentage(50, 0), "50%")
        self.assertEqual(truncate("short", 10), "short")
        self.assertEqual(truncate("a long description", 6), "a long...")

    def test_markdown_table(self):
        table = generate_markdown_table(["A", "B"], [[1, 2]], ["l", "r"])
        self.assertEqual(table, "| A | B |\n| :--- | ---: |\n| 1 | 2 |")
        self.assertEqual(generate_markdown_table(["A"], []), "")
        with self.assertRaises(ValueError):
            generate_markdown_table(["A", "B"], [[1, 2]], ["l"])


class KpiTestCase(unittest.TestCase):
    def test_dashboard_kpis_on_fixtures(self):
        now = datetime(2025, 9, 1, 12, 0, 0)
        kpis = dashboard_kpis(
            fixtures.sample_terminals(now), fixtures.sample_tickets(now)
        )
        self.assertEqual(kpis["total_terminals"], 5)
        self.assertEqual(kpis["online_terminals"], 3)
        self.assertEqual(kpis["offline_terminals"], 1)
        self.assertEqual(kpis["maintenance_terminals"], 1)
        self.assertEqual(kpis["online_percentage"], 60)
        self.assertEqual(kpis["avg_uptime"], 95)
        self.assertEqual(kpis["issues_detected"], 1)
        self.assertEqual(kpis["open_tickets"], 1)
        self.assertEqual(kpis["sla_breaches"], 1)
        # nothing has been handled yet
        self.assertEqual(kpis["sla_compliance"], 100)

    def test_sla_compliance_and_resolution_average(self):
        tickets = [
            make_ticket("a", "Resolved", resolution_time=60),
            make_ticket("b", "Resolved", sla_breach=True, resolution_time=180),
            make_ticket("c", "In Progress"),
            make_ticket("d", "Closed"),
            make_ticket("e", "Open", sla_breach=True),
        ]
        kpis = dashboard_kpis([], tickets)
        self.assertEqual(kpis["total_terminals"], 0)
        self.assertEqual(kpis["online_percentage"], 0)
        self.assertEqual(kpis["sla_compliance"], 75)
        self.assertEqual(kpis["avg_resolution_minutes"], 120)
        self.assertEqual(kpis["in_progress_tickets"], 1)
        self.assertEqual(kpis["resolved_tickets"], 2)
        self.assertEqual(kpis["sla_breaches"], 2)

    def test_error_terminals_count_as_issues(self):
        terminals = [
            Terminal(id="T1", location="A", merchant="M", status="Error", uptime=50),
            Terminal(id="T2", location="B", merchant="M", status="Offline", uptime=0),
        ]
        kpis = dashboard_kpis(terminals, [])
        self.assertEqual(kpis["issues_detected"], 2)
        self.assertEqual(kpis["avg_uptime"], 25)

    def test_metrics_summary(self):
        self.assertEqual(metrics_summary([])["days"], 0)

        def day(date, uptime, tickets):
            return PerformanceMetrics(
                date=date,
                total_terminals=20,
                online_terminals=18,
                offline_terminals=1,
                maintenance_terminals=1,
                error_terminals=0,
                average_uptime=uptime,
                total_tickets=tickets,
                open_tickets=2,
                resolved_tickets=3,
                average_resolution_time=100.0,
                sla_compliance=90.0,
                customer_satisfaction=4.5,
            )

        summary = metrics_summary([day("2025-09-01", 90.0, 5), day("2025-09-02", 100.0, 7)])
        self.assertEqual(summary["days"], 2)
        self.assertAlmostEqual(summary["average_uptime"], 95.0)
        self.assertEqual(summary["total_tickets"], 12)
        self.assertEqual(summary["resolved_tickets"], 6)

    def test_sample_metrics_window(self):
        now = datetime(2025, 9, 30, 8, 0, 0)
        series = fixtures.sample_metrics(now)
        self.assertEqual(len(series), 31)
        self.assertEqual(series[0].date, "2025-08-31")
        self.assertEqual(series[-1].date, "2025-09-30")


if __name__ == "__main__":
    unittest.main()
