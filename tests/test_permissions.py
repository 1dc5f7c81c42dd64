import pytest

from cashflow.users.permissions import has_any_role, normalize_role, normalize_roles
from cashflow.users.schemas import CurrentUser


def _user(*roles):
    return CurrentUser(id=1, name="x", email="x@example.com", roles=list(roles))


@pytest.mark.parametrize("raw, expected", [
    ("Admin", "ADMIN"),
    (" admin ", "ADMIN"),
    ("Accountant", "ACCOUNTING"),
    ("ACCOUNTING", "ACCOUNTING"),
    ("manager", "MANAGER"),
])
def test_normalize_role(raw, expected):
    assert normalize_role(raw) == expected


def test_normalize_roles_drops_blanks():
    assert normalize_roles(["Admin", "", "  ", "employee"]) == {"ADMIN", "EMPLOYEE"}


def test_has_any_role():
    assert has_any_role(_user("Accountant"), ["ACCOUNTING"])
    assert has_any_role(_user("admin"), ["MANAGER"])
    assert not has_any_role(_user("EMPLOYEE"), ["ADMIN", "ACCOUNTING", "MANAGER"])
    assert not has_any_role(_user(), ["EMPLOYEE"])


ADMIN_ROUTES = [
    ("get", "/api/admin/users"),
    ("post", "/api/admin/users"),
    ("get", "/api/admin/users/1"),
    ("put", "/api/admin/users/1"),
    ("delete", "/api/admin/users/1"),
    ("put", "/api/admin/users/1/roles"),
    ("put", "/api/admin/users/1/toggle-enabled"),
    ("get", "/api/admin/roles"),
    ("post", "/api/admin/roles"),
    ("delete", "/api/admin/roles/1"),
    ("get", "/api/admin/categories/"),
    ("post", "/api/admin/categories/"),
    ("get", "/api/admin/categories/1"),
    ("put", "/api/admin/categories/1"),
    ("delete", "/api/admin/categories/1"),
]


@pytest.mark.parametrize("role", ["EMPLOYEE", "MANAGER", "ACCOUNTING"])
@pytest.mark.parametrize("method, url", ADMIN_ROUTES)
def test_admin_routes_forbidden_for_non_admins(make_user, login, role, method, url):
    user = make_user("Not Admin", "notadmin@example.com", roles=[role])
    c = login(user)
    response = getattr(c, method)(url)
    assert response.status_code == 403


@pytest.mark.parametrize("url", [
    "/api/dashboard/stats",
    "/api/dashboard/category-stats",
    "/api/dashboard/user-stats",
    "/api/dashboard/individual-stats",
    "/api/dashboard/export",
    "/api/expenses/pending",
    "/api/expenses/reports",
    "/api/expenses/export",
])
def test_reporting_routes_forbidden_for_employees(login, employee, url):
    c = login(employee)
    assert c.get(url).status_code == 403


def test_legacy_role_spelling_is_accepted(make_user, login):
    user = make_user("Old Style", "old@example.com", roles=["Accountant"])
    c = login(user)
    assert c.get("/api/dashboard/stats").status_code == 200
