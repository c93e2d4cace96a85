from typing import Any, Dict, List, Optional

from textual import on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Select

from db.models import TICKET_PRIORITIES, TICKET_SOURCES, Terminal


class NewTicketModal(ModalScreen[Optional[Dict[str, Any]]]):
    """
    Collects the fields of a new support ticket. Dismisses with the field
    dict, or None when cancelled.
    """

    def __init__(self, terminals: List[Terminal], default_source: str = "Merchant") -> None:
        super().__init__()
        self.terminals = terminals
        self.default_source = default_source

    def compose(self) -> ComposeResult:
        with Vertical(id="div-new-ticket"):
            yield Label("Title")
            yield Input(placeholder="Card reader not responding", id="input-title")
            yield Label("Description")
            yield Input(placeholder="What happened?", id="input-description")
            yield Label("Terminal")
            yield Select(
                [(f"{t.id} - {t.location}", t.id) for t in self.terminals],
                prompt="Select terminal",
                id="select-terminal",
            )
            yield Label("Priority")
            yield Select(
                [(p, p) for p in TICKET_PRIORITIES],
                value="Medium",
                allow_blank=False,
                id="select-priority",
            )
            yield Label("Source")
            yield Select(
                [(s, s) for s in TICKET_SOURCES],
                value=self.default_source,
                allow_blank=False,
                id="select-source",
            )
            with Horizontal(id="div-ticket-btns"):
                yield Button("Cancel", id="btn-cancel")
                yield Button("Create", id="btn-create", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#input-title").focus()

    @on(Button.Pressed, "#btn-cancel")
    def handle_cancel(self) -> None:
        self.dismiss(None)

    @on(Button.Pressed, "#btn-create")
    def handle_create(self) -> None:
        title = self.query_one("#input-title", Input)
        terminal = self.query_one("#select-terminal", Select)
        if not title.value.strip():
            title.add_class("-invalid")
            title.focus()
            return
        if terminal.value == Select.BLANK:
            self.notify("Pick the affected terminal.", severity="error")
            terminal.focus()
            return
        self.dismiss(
            {
                "title": title.value.strip(),
                "description": self.query_one("#input-description", Input).value.strip(),
                "terminal_id": terminal.value,
                "priority": self.query_one("#select-priority", Select).value,
                "source": self.query_one("#select-source", Select).value,
            }
        )
