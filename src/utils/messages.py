from textual.message import Message


class QuitRequestedMessage(Message):
    """
    Posted by the quit dialog once the user confirmed. The app exits
    but keeps the persisted session.
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    Posted by the sidebar (or after a data reset). The app clears the
    session and returns to the login screen.
    """

    bubble = True


class UserLoginMessage(Message):
    """
    Posted by the login screen right before it dismisses itself.
    """

    bubble = True


class RecordsChangedMessage(Message):
    """
    Posted after a screen writes to the store so the visible screen reloads.
    Post it on the app, screens do not receive each other's messages.
    """

    bubble = True

    def __init__(self, collection: str) -> None:
        super().__init__()
        self.collection = collection  # "users" | "terminals" | "tickets" | "alerts" | "*"


class ViewSwitchedMessage(Message):
    """
    Sidebar menu selection. The app swaps in a fresh screen for new_view.
    """

    bubble = True

    def __init__(self, old_view: str, new_view: str) -> None:
        super().__init__()
        self.old_view = old_view
        self.new_view = new_view
