from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable

from db.models import User
from utils import permissions
from utils.messages import RecordsChangedMessage, UserLogoutMessage
from utils.pure import time_ago
from views.base_screen import BaseScreen
from views.modal_dialog import ConfirmDialogModal


class UsersScreen(BaseScreen):
    """
    User administration for manage_users holders: lock and unlock accounts.
    Administrators (system_admin) also get the demo data reset.
    """

    def __init__(self) -> None:
        super().__init__()
        self._users: List[User] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield DataTable(id="table-users")
            with Horizontal(id="hort-user-controls"):
                yield Button("Unlock", id="btn-unlock", variant="success")
                yield Button("Lock", id="btn-lock", variant="warning")
                yield Button("Reset demo data", id="btn-reset", variant="error")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Username", "Name", "Email", "Role", "Status", "Failed", "Last Login")
        self.query_one("#btn-reset").display = self.state.has_permission(
            permissions.SYSTEM_ADMIN
        )
        self.handle_reload()

    @on(ScreenResume)
    @work(exclusive=True, group="users")
    async def handle_reload(self) -> None:
        if not self.state.has_permission(permissions.MANAGE_USERS):
            return
        self._users = await self.store.users.list()
        table = self.query_one(DataTable)
        table.clear()
        for u in self._users:
            table.add_row(
                u.username,
                u.full_name,
                u.email,
                u.role,
                u.status,
                u.failed_login_attempts,
                time_ago(u.last_login),
                key=u.id,
            )

    def _selected(self) -> Optional[User]:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return next((u for u in self._users if u.id == row_key.value), None)

    @on(Button.Pressed, "#btn-unlock")
    @work(exclusive=True, group="user-update")
    async def handle_unlock(self) -> None:
        user = self._selected()
        if user is None or not user.is_locked:
            self.notify("Select a locked account.", severity="warning")
            return
        # unlocking also clears the counter, or the next typo locks again
        await self.store.users.update(user.id, {"status": "Active", "failed_login_attempts": 0})
        self.notify(f"{user.username} unlocked.")
        self.app.post_message(RecordsChangedMessage("users"))

    @on(Button.Pressed, "#btn-lock")
    @work(exclusive=True, group="user-update")
    async def handle_lock(self) -> None:
        user = self._selected()
        if user is None or user.is_locked:
            self.notify("Select an active account.", severity="warning")
            return
        if user.id == self.state.uid:
            self.notify("You cannot lock your own account.", severity="error")
            return
        await self.store.users.update(user.id, {"status": "Locked"})
        self.notify(f"{user.username} locked.")
        self.app.post_message(RecordsChangedMessage("users"))

    @on(Button.Pressed, "#btn-reset")
    @work(exclusive=True, group="user-update")
    async def handle_reset(self) -> None:
        if not self.state.has_permission(permissions.SYSTEM_ADMIN):
            return
        if not await self.app.push_screen_wait(
            ConfirmDialogModal(
                "Wipe all data and restore the demo fixtures? You will be logged out.",
                confirm_text="Reset",
                cancel_text="Cancel",
                tone="error",
            )
        ):
            return
        await self.store.clear_all()
        self.app.post_message(UserLogoutMessage())
