from typing import Dict, Optional, Tuple

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from db.crud import PersistenceFailure, RecordStore
from db.database import KeyValueStore
from utils import permissions
from utils.logger import get_logger
from utils.messages import (
    QuitRequestedMessage,
    RecordsChangedMessage,
    UserLoginMessage,
    UserLogoutMessage,
    ViewSwitchedMessage,
)
from utils.state import SessionState
from views.base_screen import BaseScreen
from views.scr_analytics import AnalyticsScreen
from views.scr_dashboard import DashboardScreen
from views.scr_login import LoginScreen
from views.scr_terminals import TerminalsScreen
from views.scr_tickets import TicketsScreen
from views.scr_users import UsersScreen

_logger = get_logger(__name__)


class PulseApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    VIEWS = {
        "dashboard": DashboardScreen,
        "terminals": TerminalsScreen,
        "tickets": TicketsScreen,
        "analytics": AnalyticsScreen,
        "users": UsersScreen,
    }

    # view -> (menu label, any one of these permissions unlocks it)
    MENU: Dict[str, Tuple[str, Tuple[str, ...]]] = {
        "dashboard": ("Dashboard", ()),
        "terminals": (
            "Terminals",
            (permissions.VIEW_ALL_TERMINALS, permissions.VIEW_OWN_TERMINALS),
        ),
        "tickets": (
            "Support Tickets",
            (permissions.VIEW_ALL_TICKETS, permissions.VIEW_OWN_TICKETS),
        ),
        "analytics": (
            "Analytics",
            (permissions.VIEW_ANALYTICS, permissions.VIEW_OWN_ANALYTICS),
        ),
        "users": ("User Management", (permissions.MANAGE_USERS,)),
    }

    CSS_PATH = "styles/pulse.tcss"

    store: RecordStore
    state: SessionState
    active_view: str

    def __init__(self, db_path: Optional[str] = None):
        super().__init__()
        self.store = RecordStore(KeyValueStore(db_path))
        self.state = SessionState(self.store)
        self.active_view = ""
        self.store.add_failure_listener(self._on_persistence_failure)

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow()

    def visible_views(self) -> Dict[str, str]:
        return {
            view: label
            for view, (label, required) in self.MENU.items()
            if not required or any(self.state.has_permission(p) for p in required)
        }

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    def _on_persistence_failure(self, failure: PersistenceFailure) -> None:
        self.notify(
            f"Changes to {failure.key} could not be saved.",
            title="Storage error",
            severity="error",
        )

    async def show_view(self, view: str) -> None:
        """Replace the current view with a fresh instance of another one."""
        if view not in self.visible_views():
            self.notify("Access denied. Insufficient permissions.", severity="error")
            return
        self.active_view = view
        screen = self.VIEWS[view]()
        if len(self.screen_stack) > 1:
            await self.switch_screen(screen)
        else:
            await self.push_screen(screen)

    @on(ViewSwitchedMessage)
    async def handle_view_switch(self, message: ViewSwitchedMessage) -> None:
        await self.show_view(message.new_view)

    @on(RecordsChangedMessage)
    def handle_records_changed(self, message: RecordsChangedMessage) -> None:
        _logger.debug(f"{message.collection} changed, reloading {self.active_view}.")
        if isinstance(self.screen, BaseScreen):
            self.screen.handle_reload()

    @on(UserLoginMessage)
    def handle_user_login(self) -> None:
        _logger.debug(f"Session started for {self.state.current_user.username}.")

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        await self.state.logout()
        while len(self.screen_stack) > 1:
            await self.pop_screen()
        self.active_view = ""
        self.notify("Logout successful.")
        self.main_flow()

    @on(QuitRequestedMessage)
    def handle_quit(self):
        # quitting keeps the session, so the next start skips the login screen
        self.exit()

    @work
    async def main_flow(self):
        await self.state.restore()
        if self.state.current_user is None:
            await self.push_screen_wait(LoginScreen())
        await self.show_view("dashboard")


def run() -> None:
    app = PulseApp()
    app.run()


if __name__ == "__main__":
    run()
