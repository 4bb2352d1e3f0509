from stableride.services.permissions import has_permission, permissions_for, ALL_PERMISSIONS


def test_super_admin_has_everything():
    assert permissions_for("SUPER_ADMIN") == set(ALL_PERMISSIONS)


def test_finance_manager_scope():
    assert has_permission("FINANCE_MANAGER", "financial:write")
    assert has_permission("FINANCE_MANAGER", "configuration:read")
    assert not has_permission("FINANCE_MANAGER", "configuration:write")
    assert not has_permission("FINANCE_MANAGER", "bookings:write")


def test_customer_service_cannot_touch_finance_or_config():
    assert has_permission("CUSTOMER_SERVICE", "bookings:write")
    assert not has_permission("CUSTOMER_SERVICE", "financial:read")
    assert not has_permission("CUSTOMER_SERVICE", "configuration:read")


def test_extra_grants():
    assert has_permission("CUSTOMER_SERVICE", "financial:read", extra=["financial:read"])


def test_unknown_role_has_nothing():
    assert permissions_for("INTERN") == set()
