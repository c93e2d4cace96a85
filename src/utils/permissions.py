# role -> permission table, fixed and exhaustive
from typing import Dict, FrozenSet, Optional

VIEW_ALL_TERMINALS = "view_all_terminals"
MANAGE_TERMINALS = "manage_terminals"
VIEW_ALL_TICKETS = "view_all_tickets"
MANAGE_TICKETS = "manage_tickets"
VIEW_ANALYTICS = "view_analytics"
GENERATE_REPORTS = "generate_reports"
MANAGE_USERS = "manage_users"
SYSTEM_ADMIN = "system_admin"

VIEW_OWN_TERMINALS = "view_own_terminals"
VIEW_OWN_TICKETS = "view_own_tickets"
CREATE_TICKETS = "create_tickets"
VIEW_OWN_ANALYTICS = "view_own_analytics"

ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    "Administrator": frozenset(
        {
            VIEW_ALL_TERMINALS,
            MANAGE_TERMINALS,
            VIEW_ALL_TICKETS,
            MANAGE_TICKETS,
            VIEW_ANALYTICS,
            GENERATE_REPORTS,
            MANAGE_USERS,
            SYSTEM_ADMIN,
        }
    ),
    "Service Desk Manager": frozenset(
        {
            VIEW_ALL_TERMINALS,
            VIEW_ALL_TICKETS,
            MANAGE_TICKETS,
            VIEW_ANALYTICS,
            GENERATE_REPORTS,
            MANAGE_USERS,
        }
    ),
    "Support Agent": frozenset(
        {
            VIEW_ALL_TERMINALS,
            MANAGE_TERMINALS,
            VIEW_ALL_TICKETS,
            MANAGE_TICKETS,
            VIEW_ANALYTICS,
            GENERATE_REPORTS,
        }
    ),
    "Merchant": frozenset(
        {
            VIEW_OWN_TERMINALS,
            VIEW_OWN_TICKETS,
            CREATE_TICKETS,
            VIEW_OWN_ANALYTICS,
        }
    ),
}


def permissions_for(role: Optional[str]) -> FrozenSet[str]:
    """Unknown roles (or no role) get no permissions."""
    if role is None:
        return frozenset()
    return ROLE_PERMISSIONS.get(role, frozenset())


def role_has_permission(role: Optional[str], permission: str) -> bool:
    return permission in permissions_for(role)
