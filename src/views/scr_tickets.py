from datetime import datetime
from typing import Dict, List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, MarkdownViewer, Select

from db.models import TICKET_STATUSES, SupportTicket
from utils import permissions
from utils.messages import RecordsChangedMessage
from utils.pure import format_duration, generate_markdown_table, time_ago, truncate
from views.base_screen import BaseScreen
from views.modal_ticket import NewTicketModal


class TicketsScreen(BaseScreen):
    """
    Support tickets visible to the current user.

    Staff with manage_tickets can assign tickets to themselves, resolve and
    close them. Anyone with create_tickets or manage_tickets can open one.
    """

    BINDINGS = [
        Binding("n", "new_ticket", "New Ticket", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._tickets: List[SupportTicket] = []
        self._user_names: Dict[str, str] = {}

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield Select(
                [(s, s) for s in TICKET_STATUSES],
                prompt="All statuses",
                id="select-ticket-filter",
            )
            yield DataTable(id="table-tickets")
            yield MarkdownViewer(id="md-ticket", show_table_of_contents=False)
            with Horizontal(id="hort-ticket-controls"):
                yield Button("New", id="btn-new", variant="primary")
                yield Button("Assign to me", id="btn-assign")
                yield Button("Resolve", id="btn-resolve", variant="success")
                yield Button("Close", id="btn-close", variant="warning")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns(
            "Ticket", "Title", "Terminal", "Priority", "Status", "Assignee", "Age", "SLA"
        )
        can_manage = self.state.has_permission(permissions.MANAGE_TICKETS)
        for btn_id in ("#btn-assign", "#btn-resolve", "#btn-close"):
            self.query_one(btn_id).display = can_manage
        self.query_one("#btn-new").display = self._can_create()
        self.handle_reload()

    def _can_create(self) -> bool:
        return self.state.has_permission(
            permissions.CREATE_TICKETS
        ) or self.state.has_permission(permissions.MANAGE_TICKETS)

    @on(ScreenResume)
    @on(Select.Changed, "#select-ticket-filter")
    @work(exclusive=True, group="tickets")
    async def handle_reload(self) -> None:
        self._tickets = await self.state.accessible_tickets()
        self._user_names = {u.id: u.full_name for u in await self.store.users.list()}
        status = self.query_one("#select-ticket-filter", Select).value

        table = self.query_one(DataTable)
        table.clear()
        # newest first
        for t in sorted(self._tickets, key=lambda t: t.created_at or datetime.min, reverse=True):
            if status != Select.BLANK and t.status != status:
                continue
            sla = f"+{format_duration(t.sla_breach_duration)}" if t.sla_breach else "OK"
            table.add_row(
                t.id,
                truncate(t.title, 40),
                t.terminal_id,
                t.priority,
                t.status,
                self._user_names.get(t.assigned_to, "Unassigned"),
                time_ago(t.created_at),
                sla,
                key=t.id,
            )
        self._render_detail(self._selected())

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self) -> None:
        self._render_detail(self._selected())

    def _selected(self) -> Optional[SupportTicket]:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return next((t for t in self._tickets if t.id == row_key.value), None)

    def _render_detail(self, ticket: Optional[SupportTicket]) -> None:
        viewer = self.query_one("#md-ticket", MarkdownViewer)
        if ticket is None:
            viewer.document.update("### Select a ticket to view its details.")
            return
        rows = [
            ["Status", ticket.status],
            ["Priority", ticket.priority],
            ["Source", ticket.source],
            ["Reported by", self._user_names.get(ticket.reported_by, ticket.reported_by)],
            ["Assigned to", self._user_names.get(ticket.assigned_to, "Unassigned")],
            ["SLA target", ticket.sla_target.strftime("%Y-%m-%d %H:%M") if ticket.sla_target else "-"],
            ["Resolved", time_ago(ticket.resolved_at) if ticket.resolved_at else "-"],
        ]
        viewer.document.update(
            f"### {ticket.id}: {ticket.title}\n\n{ticket.description}\n\n"
            + generate_markdown_table(["Field", "Value"], rows, ["l", "l"])
        )

    def action_new_ticket(self) -> None:
        if self._can_create():
            self.handle_new_ticket()

    @on(Button.Pressed, "#btn-new")
    @work(exclusive=True, group="ticket-new")
    async def handle_new_ticket(self) -> None:
        terminals = await self.state.accessible_terminals()
        source = "Merchant" if self.state.is_merchant() else "Customer Call"
        fields = await self.app.push_screen_wait(NewTicketModal(terminals, source))
        if not fields:
            return
        ticket = await self.store.create_ticket(fields, reported_by=self.state.uid)
        self.notify(f"Ticket {ticket.id} created.")
        self.app.post_message(RecordsChangedMessage("tickets"))

    @on(Button.Pressed, "#btn-assign")
    @work(exclusive=True, group="ticket-update")
    async def handle_assign(self) -> None:
        ticket = self._require_manageable()
        if ticket is None:
            return
        if await self.store.assign_ticket(ticket.id, self.state.uid):
            self.notify(f"{ticket.id} assigned to you.")
            self.app.post_message(RecordsChangedMessage("tickets"))

    @on(Button.Pressed, "#btn-resolve")
    @work(exclusive=True, group="ticket-update")
    async def handle_resolve(self) -> None:
        await self._set_status("Resolved")

    @on(Button.Pressed, "#btn-close")
    @work(exclusive=True, group="ticket-update")
    async def handle_close(self) -> None:
        await self._set_status("Closed")

    async def _set_status(self, status: str) -> None:
        ticket = self._require_manageable()
        if ticket is None:
            return
        if ticket.status == status:
            self.notify(f"{ticket.id} is already {status}.", severity="warning")
            return
        if await self.store.update_ticket_status(ticket.id, status):
            self.notify(f"{ticket.id} marked {status}.")
            self.app.post_message(RecordsChangedMessage("tickets"))
        else:
            self.notify("Ticket no longer exists.", severity="error")

    def _require_manageable(self) -> Optional[SupportTicket]:
        if not self.state.has_permission(permissions.MANAGE_TICKETS):
            self.notify("You are not allowed to manage tickets.", severity="error")
            return None
        ticket = self._selected()
        if ticket is None:
            self.notify("Select a ticket first.", severity="warning")
        return ticket
