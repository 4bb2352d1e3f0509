"""
Admin role -> permission table.
"""
ALL_PERMISSIONS = (
    "dashboard:read",
    "bookings:read", "bookings:write", "bookings:delete",
    "customers:read", "customers:write", "customers:delete",
    "financial:read", "financial:write",
    "pricing:read", "pricing:write",
    "configuration:read", "configuration:write",
    "users:read", "users:write", "users:delete",
    "settings:read", "settings:write",
    "audit:read",
    "analytics:read",
    "reports:read", "reports:write",
    "content:read", "content:write",
)

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "SUPER_ADMIN": frozenset(ALL_PERMISSIONS),
    "OPERATIONS_MANAGER": frozenset({
        "dashboard:read",
        "bookings:read", "bookings:write", "bookings:delete",
        "customers:read", "customers:write",
        "financial:read",
        "pricing:read", "pricing:write",
        "configuration:read", "configuration:write",
        "analytics:read",
        "reports:read", "reports:write",
        "audit:read",
        "content:read", "content:write",
    }),
    "FINANCE_MANAGER": frozenset({
        "dashboard:read",
        "bookings:read",
        "customers:read",
        "financial:read", "financial:write",
        "pricing:read", "pricing:write",
        "configuration:read",
        "analytics:read",
        "reports:read", "reports:write",
        "audit:read",
    }),
    "CUSTOMER_SERVICE": frozenset({
        "dashboard:read",
        "bookings:read", "bookings:write",
        "customers:read", "customers:write",
        "analytics:read",
        "content:read",
    }),
}


def permissions_for(role: str, extra: list[str] | None = None) -> set[str]:
    return set(ROLE_PERMISSIONS.get(role, frozenset())) | set(extra or [])


def has_permission(role: str, permission: str, extra: list[str] | None = None) -> bool:
    return permission in permissions_for(role, extra)
