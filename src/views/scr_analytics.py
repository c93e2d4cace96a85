from textual import on, work
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.events import ScreenResume
from textual.widgets import MarkdownViewer

from utils import permissions
from utils.pure import (
    dashboard_kpis,
    format_duration,
    format_percentage,
    generate_markdown_table,
    metrics_summary,
)
from views.base_screen import BaseScreen


class AnalyticsScreen(BaseScreen):
    """
    Fleet analytics from the daily metrics series. Merchants only get
    figures for their own terminals.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-analytics", show_table_of_contents=False)

    def on_mount(self) -> None:
        self.handle_reload()

    @on(ScreenResume)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        if self.state.has_permission(permissions.VIEW_ANALYTICS):
            md = await self._fleet_markdown()
        elif self.state.has_permission(permissions.VIEW_OWN_ANALYTICS):
            md = await self._own_markdown()
        else:
            md = "### Access denied. Insufficient permissions."
        self.query_one("#md-analytics", MarkdownViewer).document.update(md)

    async def _fleet_markdown(self) -> str:
        sections = []
        for days in (7, 30):
            s = metrics_summary(await self.store.metrics.latest(days))
            rows = [
                ["Average uptime", format_percentage(s["average_uptime"])],
                ["SLA compliance", format_percentage(s["sla_compliance"])],
                ["Avg resolution time", format_duration(int(s["average_resolution_time"]))],
                ["Customer satisfaction", f"{s['customer_satisfaction']:.1f} / 5"],
                ["Tickets raised", s["total_tickets"]],
                ["Tickets resolved", s["resolved_tickets"]],
            ]
            sections.append(
                f"### Last {days} days\n\n"
                + generate_markdown_table(["Metric", "Value"], rows, ["l", "r"])
            )

        daily = await self.store.metrics.latest(7)
        daily_rows = [
            [m.date, m.online_terminals, m.offline_terminals, m.error_terminals, m.open_tickets]
            for m in daily
        ]
        sections.append(
            "### Daily breakdown\n\n"
            + generate_markdown_table(
                ["Date", "Online", "Offline", "Error", "Open Tickets"],
                daily_rows,
                ["l", "r", "r", "r", "r"],
            )
        )
        return "\n\n".join(sections)

    async def _own_markdown(self) -> str:
        terminals = await self.state.accessible_terminals()
        tickets = await self.state.accessible_tickets()
        kpis = dashboard_kpis(terminals, tickets)
        rows = [
            ["Terminals", kpis["total_terminals"]],
            ["Average uptime", f"{kpis['avg_uptime']}%"],
            ["Transactions today", sum(t.transactions_today for t in terminals)],
            ["Open tickets", kpis["open_tickets"]],
            ["SLA breaches", kpis["sla_breaches"]],
        ]
        return "### My terminals\n\n" + generate_markdown_table(
            ["Metric", "Value"], rows, ["l", "r"]
        )
