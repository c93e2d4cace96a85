from __future__ import annotations

import dataclasses
import hmac
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from db.crud import RecordStore
from db.models import SupportTicket, Terminal, User
from utils import config
from utils.logger import get_logger
from utils.permissions import role_has_permission

_logger = get_logger(__name__)

Phase = Literal["anonymous", "authenticating", "authenticated"]
LoginOutcome = Literal[
    "success",
    "user_not_found",
    "account_locked",
    "locked_out",
    "invalid_password",
]

LOGIN_MESSAGES: Dict[str, str] = {
    "success": "Login successful.",
    "user_not_found": "User not found",
    "account_locked": "Account is locked. Contact administrator.",
    "locked_out": "Account locked due to multiple failed login attempts.",
    "invalid_password": "Invalid password",
}


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a login attempt. Truthy only on success."""

    outcome: LoginOutcome
    user: Optional[User] = None

    @property
    def ok(self) -> bool:
        return self.outcome == "success"

    @property
    def message(self) -> str:
        return LOGIN_MESSAGES[self.outcome]

    def __bool__(self) -> bool:
        return self.ok


def _passwords_match(stored: str, supplied: str) -> bool:
    return hmac.compare_digest(stored.encode("utf-8"), supplied.encode("utf-8"))


@dataclass
class SessionState:
    """
    Centralized session state shared by screens.

    Fields:
      - store: the record store every lookup goes through
      - current_user: the authenticated actor, or None
      - phase: "anonymous" | "authenticating" | "authenticated"
      - error: message of the last failed login, cleared on success
    """

    store: RecordStore
    current_user: Optional[User] = None
    phase: Phase = "anonymous"
    error: Optional[str] = None

    @property
    def role(self) -> Optional[str]:
        return self.current_user.role if self.current_user else None

    @property
    def uid(self) -> Optional[str]:
        return self.current_user.id if self.current_user else None

    async def restore(self) -> Optional[User]:
        """Pick up a persisted session without asking for credentials."""
        saved = await self.store.get_current_session()
        if saved is not None:
            self.current_user = saved
            self.phase = "authenticated"
            _logger.info(f"Restored session for {saved.username}.")
        return saved

    async def login(self, username: str, password: str) -> LoginResult:
        self.phase = "authenticating"
        self.error = None

        user = await self.store.get_user_by_username(username)
        if user is None:
            return self._fail("user_not_found", username)

        if user.is_locked:
            return self._fail("account_locked", username)

        if not _passwords_match(user.password, password):
            return await self._register_bad_password(user)

        def reset_counter(fresh: User) -> User:
            if fresh.is_locked:
                return fresh
            return dataclasses.replace(
                fresh, failed_login_attempts=0, last_login=datetime.now()
            )

        updated = await self.store.users.mutate(user.id, reset_counter)
        if updated is None:
            return self._fail("user_not_found", username)
        if updated.is_locked:
            return self._fail("account_locked", username)

        await self.store.set_current_session(updated)
        self.current_user = updated
        self.phase = "authenticated"
        _logger.info(f"{updated.username} logged in as {updated.role}.")
        return LoginResult("success", updated)

    async def _register_bad_password(self, user: User) -> LoginResult:
        # the increment and the lockout decision share one critical section
        locked_now = False

        def count_failure(fresh: User) -> User:
            nonlocal locked_now
            if fresh.is_locked:
                return fresh
            attempts = fresh.failed_login_attempts + 1
            if attempts < config.MAX_FAILED_LOGIN_ATTEMPTS:
                return dataclasses.replace(fresh, failed_login_attempts=attempts)
            locked_now = True
            return dataclasses.replace(
                fresh, failed_login_attempts=attempts, status="Locked"
            )

        updated = await self.store.users.mutate(user.id, count_failure)
        if updated is None:
            return self._fail("user_not_found", user.username)
        if locked_now:
            _logger.warning(f"Locking {user.username} after repeated failures.")
            return self._fail("locked_out", user.username)
        if updated.is_locked:
            return self._fail("account_locked", user.username)
        return self._fail("invalid_password", user.username)

    def _fail(self, outcome: LoginOutcome, username: str) -> LoginResult:
        result = LoginResult(outcome)
        self.error = result.message
        self.current_user = None
        self.phase = "anonymous"
        _logger.info(f"Login failed for {username!r}: {outcome}")
        return result

    async def logout(self) -> None:
        if self.current_user is not None:
            _logger.info(f"{self.current_user.username} logged out.")
        await self.store.set_current_session(None)
        self.current_user = None
        self.phase = "anonymous"
        self.error = None

    def clear_error(self) -> None:
        self.error = None

    def has_permission(self, permission: str) -> bool:
        return role_has_permission(self.role, permission)

    def is_admin(self) -> bool:
        return self.role == "Administrator"

    def is_manager(self) -> bool:
        return self.role == "Service Desk Manager"

    def is_support(self) -> bool:
        return self.role == "Support Agent"

    def is_merchant(self) -> bool:
        return self.role == "Merchant"

    async def _assigned_terminals(self) -> set:
        # re-read so reassignments made elsewhere show up immediately
        fresh = await self.store.users.get_by_id(self.current_user.id)
        return set((fresh or self.current_user).assigned_terminals)

    async def accessible_terminals(self) -> List[Terminal]:
        if self.current_user is None:
            return []
        terminals = await self.store.terminals.list()
        if not self.is_merchant():
            return terminals
        assigned = await self._assigned_terminals()
        return [t for t in terminals if t.id in assigned]

    async def accessible_tickets(self) -> List[SupportTicket]:
        if self.current_user is None:
            return []
        tickets = await self.store.tickets.list()
        if not self.is_merchant():
            return tickets
        assigned = await self._assigned_terminals()
        return [t for t in tickets if t.terminal_id in assigned]

    async def update_current_user(self, changes: Dict[str, Any]) -> Optional[User]:
        if self.current_user is None:
            return None
        updated = await self.store.users.update(self.current_user.id, changes)
        if updated is not None:
            await self.store.set_current_session(updated)
            self.current_user = updated
        return updated
