from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Input, MarkdownViewer, Select

from db.models import TERMINAL_STATUSES, Terminal
from utils import permissions
from utils.messages import RecordsChangedMessage
from utils.pure import format_percentage, generate_markdown_table, time_ago
from views.base_screen import BaseScreen


class TerminalsScreen(BaseScreen):
    """
    Terminals visible to the current user, filterable by status and text.
    Users with manage_terminals can change a terminal's status.
    """

    def __init__(self) -> None:
        super().__init__()
        self._terminals: List[Terminal] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            with Horizontal(id="hort-terminal-filters"):
                yield Input(placeholder="Search location / merchant / id", id="input-search")
                yield Select(
                    [(s, s) for s in TERMINAL_STATUSES],
                    prompt="All statuses",
                    id="select-status-filter",
                )
            yield DataTable(id="table-terminals")
            yield MarkdownViewer(id="md-terminal", show_table_of_contents=False)
            with Horizontal(id="hort-terminal-controls"):
                yield Select(
                    [(s, s) for s in TERMINAL_STATUSES],
                    prompt="New status",
                    id="select-new-status",
                )
                yield Button("Apply", id="btn-apply-status", variant="primary")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Location", "Merchant", "Status", "Uptime", "Txns", "Last Seen")
        can_manage = self.state.has_permission(permissions.MANAGE_TERMINALS)
        self.query_one("#hort-terminal-controls").display = can_manage
        self.handle_reload()

    @on(ScreenResume)
    @on(Input.Changed, "#input-search")
    @on(Select.Changed, "#select-status-filter")
    @work(exclusive=True, group="terminals")
    async def handle_reload(self) -> None:
        self._terminals = await self.state.accessible_terminals()
        query = self.query_one("#input-search", Input).value.strip().lower()
        status = self.query_one("#select-status-filter", Select).value

        table = self.query_one(DataTable)
        table.clear()
        for t in self._terminals:
            if status != Select.BLANK and t.status != status:
                continue
            haystack = f"{t.id} {t.location} {t.merchant}".lower()
            if query and query not in haystack:
                continue
            table.add_row(
                t.id,
                t.location,
                t.merchant,
                t.status,
                format_percentage(t.uptime),
                t.transactions_today,
                time_ago(t.last_seen),
                key=t.id,
            )
        self._render_detail(self._selected())

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self) -> None:
        self._render_detail(self._selected())

    def _selected(self) -> Optional[Terminal]:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return next((t for t in self._terminals if t.id == row_key.value), None)

    def _render_detail(self, terminal: Optional[Terminal]) -> None:
        viewer = self.query_one("#md-terminal", MarkdownViewer)
        if terminal is None:
            viewer.document.update("### Select a terminal to view its details.")
            return
        rows = [
            ["Status", terminal.status],
            ["Coordinates", f"{terminal.latitude:.4f}, {terminal.longitude:.4f}"],
            ["Last transaction", time_ago(terminal.last_transaction)],
            ["Last maintenance", time_ago(terminal.last_maintenance)],
            ["Model", terminal.model or "-"],
            ["Firmware", terminal.firmware_version or "-"],
            ["Network", terminal.network_type or "-"],
        ]
        viewer.document.update(
            f"### {terminal.id} - {terminal.location}\n\n"
            + generate_markdown_table(["Attribute", "Value"], rows, ["l", "l"])
        )

    @on(Button.Pressed, "#btn-apply-status")
    @work(exclusive=True, group="terminal-update")
    async def handle_status_change(self) -> None:
        if not self.state.has_permission(permissions.MANAGE_TERMINALS):
            self.notify("You are not allowed to manage terminals.", severity="error")
            return
        terminal = self._selected()
        new_status = self.query_one("#select-new-status", Select).value
        if terminal is None or new_status == Select.BLANK:
            self.notify("Pick a terminal and a status first.", severity="warning")
            return
        if terminal.status == new_status:
            self.notify("Nothing to update.", severity="warning")
            return
        if await self.store.update_terminal_status(terminal.id, new_status):
            self.notify(f"{terminal.id} is now {new_status}.")
            self.app.post_message(RecordsChangedMessage("terminals"))
        else:
            self.notify("Terminal no longer exists.", severity="error")
