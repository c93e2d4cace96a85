import asyncio
import os
import sys
import tempfile
import unittest
from collections import Counter

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db.crud import RecordStore  # noqa: E402
from db.database import KeyValueStore  # noqa: E402
from utils import permissions  # noqa: E402
from utils.state import SessionState  # noqa: E402


class SessionStateTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.sqlite")
        self.store = RecordStore(KeyValueStore(self.db_path))
        self.state = SessionState(self.store)

    async def asyncSetUp(self):
        await self.store.seed()
        self.admin = await self.store.users.create(
            {
                "username": "admin",
                "email": "admin@example.com",
                "full_name": "Demo Admin",
                "password": "admin123",
                "role": "Administrator",
            }
        )

    def tearDown(self):
        self.temp_dir.cleanup()

    # ---------- Login ----------

    async def test_login_success(self):
        result = await self.state.login("admin.mukamuri", "admin123")
        self.assertTrue(result)
        self.assertEqual(result.outcome, "success")
        self.assertEqual(self.state.current_user.id, "user-admin-001")
        self.assertEqual(self.state.phase, "authenticated")
        self.assertIsNone(self.state.error)

        saved = await self.store.get_current_session()
        self.assertEqual(saved.id, "user-admin-001")

    async def test_unknown_user(self):
        result = await self.state.login("ghost", "whatever")
        self.assertFalse(result)
        self.assertEqual(result.outcome, "user_not_found")
        self.assertEqual(self.state.error, "User not found")
        self.assertIsNone(self.state.current_user)
        self.assertEqual(self.state.phase, "anonymous")

    async def test_username_must_match_exactly(self):
        result = await self.state.login("ADMIN", "admin123")
        self.assertEqual(result.outcome, "user_not_found")

    async def test_wrong_password_counts_attempt(self):
        result = await self.state.login("admin", "wrong")
        self.assertEqual(result.outcome, "invalid_password")
        self.assertEqual(self.state.error, "Invalid password")
        stored = await self.store.users.get_by_id(self.admin.id)
        self.assertEqual(stored.failed_login_attempts, 1)
        self.assertEqual(stored.status, "Active")

    async def test_three_failures_lock_the_account(self):
        first = await self.state.login("admin", "wrong")
        second = await self.state.login("admin", "wrong")
        third = await self.state.login("admin", "wrong")
        self.assertEqual(
            [first.outcome, second.outcome, third.outcome],
            ["invalid_password", "invalid_password", "locked_out"],
        )
        self.assertFalse(third)

        stored = await self.store.users.get_by_id(self.admin.id)
        self.assertEqual(stored.status, "Locked")
        self.assertEqual(stored.failed_login_attempts, 3)

        # correct password no longer helps
        fourth = await self.state.login("admin", "admin123")
        self.assertEqual(fourth.outcome, "account_locked")
        self.assertEqual(self.state.error, "Account is locked. Contact administrator.")
        self.assertIsNone(self.state.current_user)
        self.assertIsNone(await self.store.get_current_session())

        after = await self.store.users.get_by_id(self.admin.id)
        self.assertEqual(after.failed_login_attempts, 3)
        self.assertEqual(after.status, "Locked")

    async def test_counter_at_threshold_blocks_correct_password(self):
        await self.store.users.update(self.admin.id, {"failed_login_attempts": 3})
        result = await self.state.login("admin", "admin123")
        self.assertEqual(result.outcome, "account_locked")
        self.assertIsNone(self.state.current_user)

    async def test_success_resets_failure_counter(self):
        previous = await self.store.users.update(
            self.admin.id, {"failed_login_attempts": 2}
        )
        result = await self.state.login("admin", "admin123")
        self.assertTrue(result)

        stored = await self.store.users.get_by_id(self.admin.id)
        self.assertEqual(stored.failed_login_attempts, 0)
        self.assertIsNotNone(stored.last_login)
        self.assertGreaterEqual(stored.last_login, previous.updated_at)

    async def test_concurrent_bad_passwords_lock_exactly_once(self):
        attempts = [SessionState(self.store) for _ in range(5)]
        results = await asyncio.gather(
            *(s.login("support.nhongo", "nope") for s in attempts)
        )
        outcomes = Counter(r.outcome for r in results)
        self.assertEqual(outcomes["locked_out"], 1)
        self.assertEqual(outcomes["success"], 0)

        stored = await self.store.get_user_by_username("support.nhongo")
        self.assertEqual(stored.status, "Locked")
        self.assertEqual(stored.failed_login_attempts, 3)

    async def test_login_result_message(self):
        result = await self.state.login("admin", "wrong")
        self.assertEqual(result.message, "Invalid password")
        self.assertIsNone(result.user)

    # ---------- Session lifecycle ----------

    async def test_restore_picks_up_saved_session(self):
        await self.state.login("servicedesk.manager", "manager123")

        fresh = SessionState(self.store)
        restored = await fresh.restore()
        self.assertEqual(restored.id, "user-manager-001")
        self.assertEqual(fresh.phase, "authenticated")
        self.assertTrue(fresh.is_manager())

    async def test_restore_without_session(self):
        self.assertIsNone(await self.state.restore())
        self.assertEqual(self.state.phase, "anonymous")

    async def test_logout_clears_session(self):
        await self.state.login("admin.mukamuri", "admin123")
        await self.state.logout()
        self.assertIsNone(self.state.current_user)
        self.assertEqual(self.state.phase, "anonymous")
        self.assertIsNone(await self.store.get_current_session())
        self.assertIsNone(await SessionState(self.store).restore())

    async def test_clear_error(self):
        await self.state.login("ghost", "x")
        self.assertIsNotNone(self.state.error)
        self.state.clear_error()
        self.assertIsNone(self.state.error)

    async def test_update_current_user(self):
        self.assertIsNone(await self.state.update_current_user({"full_name": "X"}))

        await self.state.login("support.nhongo", "support123")
        updated = await self.state.update_current_user({"full_name": "Chipo N."})
        self.assertEqual(updated.full_name, "Chipo N.")
        self.assertEqual(self.state.current_user.full_name, "Chipo N.")
        self.assertEqual((await self.store.get_current_session()).full_name, "Chipo N.")
        self.assertEqual(
            (await self.store.users.get_by_id("user-support-001")).full_name,
            "Chipo N.",
        )

    # ---------- Permissions ----------

    async def test_no_user_has_no_permissions(self):
        for permission in (
            permissions.MANAGE_USERS,
            permissions.VIEW_ALL_TERMINALS,
            permissions.VIEW_OWN_TICKETS,
        ):
            self.assertFalse(self.state.has_permission(permission))
        self.assertFalse(self.state.is_admin())

    async def test_manage_users_by_role(self):
        expected = {
            "admin.mukamuri": ("admin123", True),
            "servicedesk.manager": ("manager123", True),
            "support.nhongo": ("support123", False),
            "merchant.mutasa": ("merchant123", False),
        }
        for username, (password, allowed) in expected.items():
            state = SessionState(self.store)
            self.assertTrue(await state.login(username, password))
            self.assertEqual(
                state.has_permission(permissions.MANAGE_USERS), allowed, username
            )

    async def test_role_table_details(self):
        self.assertTrue(
            permissions.role_has_permission("Support Agent", permissions.MANAGE_TERMINALS)
        )
        self.assertFalse(
            permissions.role_has_permission(
                "Service Desk Manager", permissions.MANAGE_TERMINALS
            )
        )
        self.assertTrue(
            permissions.role_has_permission("Merchant", permissions.CREATE_TICKETS)
        )
        self.assertFalse(
            permissions.role_has_permission("Merchant", permissions.VIEW_ALL_TICKETS)
        )
        self.assertEqual(permissions.permissions_for("Auditor"), frozenset())

    async def test_role_predicates(self):
        await self.state.login("support.nhongo", "support123")
        self.assertTrue(self.state.is_support())
        self.assertFalse(self.state.is_admin())
        self.assertFalse(self.state.is_manager())
        self.assertFalse(self.state.is_merchant())

    # ---------- Scoping ----------

    async def test_merchant_sees_only_assigned_terminals(self):
        await self.store.create_ticket(
            {"title": "Paper out", "description": "", "terminal_id": "T003"},
            reported_by="user-support-001",
        )
        self.assertTrue(await self.state.login("merchant.mutasa", "merchant123"))

        terminals = await self.state.accessible_terminals()
        self.assertEqual([t.id for t in terminals], ["T001"])
        self.assertEqual(len(await self.store.terminals.list()), 5)

        tickets = await self.state.accessible_tickets()
        self.assertTrue(tickets)
        self.assertTrue(all(t.terminal_id == "T001" for t in tickets))

    async def test_merchant_scope_follows_reassignment(self):
        self.assertTrue(await self.state.login("merchant.mutasa", "merchant123"))
        await self.store.users.update(
            "user-merchant-001", {"assigned_terminals": ("T001", "T004")}
        )
        terminals = await self.state.accessible_terminals()
        self.assertEqual([t.id for t in terminals], ["T001", "T004"])

    async def test_non_merchants_see_everything(self):
        await self.store.create_ticket(
            {"title": "Paper out", "description": "", "terminal_id": "T003"},
            reported_by="user-support-001",
        )
        all_terminals = await self.store.terminals.list()
        all_tickets = await self.store.tickets.list()
        for username, password in (
            ("admin.mukamuri", "admin123"),
            ("support.nhongo", "support123"),
            ("servicedesk.manager", "manager123"),
        ):
            state = SessionState(self.store)
            self.assertTrue(await state.login(username, password))
            self.assertEqual(await state.accessible_terminals(), all_terminals)
            self.assertEqual(await state.accessible_tickets(), all_tickets)

    async def test_no_user_sees_nothing(self):
        self.assertEqual(await self.state.accessible_terminals(), [])
        self.assertEqual(await self.state.accessible_tickets(), [])


if __name__ == "__main__":
    unittest.main()
