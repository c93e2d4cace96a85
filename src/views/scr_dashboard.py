from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, MarkdownViewer

from db.models import SystemAlert
from utils.messages import RecordsChangedMessage
from utils.pure import dashboard_kpis, format_duration, generate_markdown_table, time_ago
from views.base_screen import BaseScreen


class DashboardScreen(BaseScreen):
    """
    Fleet overview: headline KPIs over the terminals and tickets the
    current user can see, plus unacknowledged alerts.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-dashboard", show_table_of_contents=False)
            with Horizontal(id="hort-dashboard-controls"):
                yield Button("Refresh", id="btn-refresh")
                yield Button("Acknowledge alerts", id="btn-ack", variant="warning")

    def on_mount(self) -> None:
        self.query_one("#btn-ack").display = not self.state.is_merchant()
        self.handle_reload()

    @on(Button.Pressed, "#btn-refresh")
    @on(ScreenResume)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        await self.store.evaluate_sla()
        terminals = await self.state.accessible_terminals()
        tickets = await self.state.accessible_tickets()
        kpis = dashboard_kpis(terminals, tickets)
        visible_ids = {t.id for t in terminals}
        alerts = [
            a
            for a in await self.store.alerts.list()
            if not a.acknowledged
            and (a.terminal_id is None or a.terminal_id in visible_ids)
        ]

        kpi_rows = [
            ["Total terminals", kpis["total_terminals"]],
            ["Online", f"{kpis['online_terminals']} ({kpis['online_percentage']}%)"],
            ["Offline", kpis["offline_terminals"]],
            ["Maintenance", kpis["maintenance_terminals"]],
            ["Error", kpis["error_terminals"]],
            ["Average uptime", f"{kpis['avg_uptime']}%"],
            ["Issues detected", kpis["issues_detected"]],
        ]
        ticket_rows = [
            ["Total tickets", kpis["total_tickets"]],
            ["Open", kpis["open_tickets"]],
            ["In progress", kpis["in_progress_tickets"]],
            ["Resolved", kpis["resolved_tickets"]],
            ["Scheduled", kpis["scheduled_tickets"]],
            ["SLA breaches", kpis["sla_breaches"]],
            ["SLA compliance", f"{kpis['sla_compliance']}%"],
            ["Avg resolution time", format_duration(kpis["avg_resolution_minutes"])],
        ]

        md = (
            "### Terminals\n\n"
            + generate_markdown_table(["Metric", "Value"], kpi_rows, ["l", "r"])
            + "\n\n### Tickets\n\n"
            + generate_markdown_table(["Metric", "Value"], ticket_rows, ["l", "r"])
            + "\n\n### Active Alerts\n\n"
            + self._alerts_markdown(alerts)
        )
        self.query_one("#md-dashboard", MarkdownViewer).document.update(md)

    @staticmethod
    def _alerts_markdown(alerts: list[SystemAlert]) -> str:
        if not alerts:
            return "_No active alerts._"
        rows = [[a.severity, a.type, a.message, time_ago(a.created_at)] for a in alerts]
        return generate_markdown_table(
            ["Severity", "Type", "Message", "Raised"], rows, ["l", "l", "l", "r"]
        )

    @on(Button.Pressed, "#btn-ack")
    @work(exclusive=True, group="ack")
    async def handle_acknowledge(self) -> None:
        count = 0
        for alert in await self.store.alerts.list():
            if not alert.acknowledged:
                await self.store.acknowledge_alert(alert.id, self.state.uid)
                count += 1
        self.notify(f"{count} alert(s) acknowledged.")
        self.app.post_message(RecordsChangedMessage("alerts"))
