from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from utils import config
from utils.messages import UserLogoutMessage, ViewSwitchedMessage
from utils.pure import generate_markdown_table, time_ago
from views.modal_dialog import ConfirmDialogModal, QuitDialogModal


class Sidebar(Container):
    init_view = ""

    def compose(self) -> ComposeResult:
        yield Label("User Info", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Log out", id="btn-logout", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def on_mount(self):
        self.init_view = self.app.active_view
        user = self.app.state.current_user
        if user is None:
            return

        table_rows = [
            ["User", user.username],
            ["Name", user.full_name],
            ["Role", user.role],
            ["Last login", time_ago(user.last_login)],
        ]
        if user.role == "Merchant":
            table_rows.append(["Terminals", ", ".join(user.assigned_terminals) or "-"])
        md_table_str = generate_markdown_table(None, table_rows, ["l", "l"])
        await self.query_one(Markdown).update(md_table_str)

        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        await list_menu.extend(
            [
                ListItem(Label(label), id="list-menu-item-" + view)
                for view, label in self.app.visible_views().items()
            ]
        )
        self.highlight_item(self.init_view)

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_view = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.init_view)
        if self.app.active_view != selected_view:
            self.post_message(ViewSwitchedMessage(self.app.active_view, selected_view))

    @on(Button.Pressed, "#btn-logout")
    @work
    async def handle_logout(self):
        if not await self.app.push_screen_wait(
            ConfirmDialogModal(
                "Are you sure you want to log out?",
                confirm_text="Yes",
                cancel_text="No",
                tone="warning",
            )
        ):
            return

        self.post_message(UserLogoutMessage())

    def highlight_item(self, view: str):
        list_menu = self.query_one("#list-menu")
        for item in list_menu.children:
            item.highlighted = item.id == "list-menu-item-" + view


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self):
        super().__init__()
        self.configure()

    def configure(
        self,
        header_sub_title: str = "",
        show_sidebar: bool = True,
    ) -> None:
        self.app.title = config.APP_TITLE
        self.sub_title = header_sub_title
        for view, screen_cls in self.app.VIEWS.items():
            if isinstance(self, screen_cls):
                self.sub_title = self.app.MENU[view][0]
        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    @property
    def state(self):
        return self.app.state

    @property
    def store(self):
        return self.app.store

    def handle_reload(self) -> None:
        """Re-read whatever this screen shows. Screens with data override it."""

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
