import io
from datetime import datetime

import pytest
from openpyxl import load_workbook

from cashflow.dashboard import service
from cashflow.dashboard.export import EXPORT_COLUMNS
from cashflow.expenses.models import ExpenseStatus


APPROVED = ExpenseStatus.APPROVED


@pytest.fixture
def spread(make_user, employee, category, make_category, make_expense):
    """Approved spend across two users and two categories, plus noise."""
    travel = make_category("Travel")
    other_user = make_user("Olly Other", "olly@example.com", roles=["EMPLOYEE"])
    make_expense(employee, category, 30, status=APPROVED)
    make_expense(employee, travel, 70, status=APPROVED)
    make_expense(other_user, travel, 100, status=APPROVED)
    make_expense(other_user, travel, 500, status=ExpenseStatus.PENDING)
    make_expense(other_user, category, 900, status=ExpenseStatus.REJECTED)
    return {"travel": travel, "other_user": other_user}


def test_category_stats_percentages(login, accountant, spread):
    stats = login(accountant).get("/api/dashboard/category-stats").json()

    assert [s["category_name"] for s in stats] == ["Travel", "Other"]
    assert stats[0]["total_amount"] == 170
    assert stats[0]["expense_count"] == 2
    assert stats[0]["percentage"] == pytest.approx(85.0)
    assert stats[1]["percentage"] == pytest.approx(15.0)
    assert sum(s["percentage"] for s in stats) <= 100.0 + 1e-9


def test_category_stats_empty_window(login, accountant, spread):
    stats = login(accountant).get("/api/dashboard/category-stats", params={
        "period": "custom", "startDate": "2001-01-01", "endDate": "2001-01-31",
    }).json()
    assert stats == []


def test_user_stats(login, accountant, employee, spread):
    stats = login(accountant).get("/api/dashboard/user-stats").json()
    by_name = {s["user_name"]: s for s in stats}

    assert set(by_name) == {"Erin Employee", "Olly Other"}
    erin = by_name["Erin Employee"]
    assert erin["total_amount"] == 100
    assert erin["expense_count"] == 2
    assert erin["average_amount"] == 50
    assert {c["category_name"]: c["amount"] for c in erin["categories"]} == {"Other": 30, "Travel": 70}


def test_individual_stats_include_idle_users(login, accountant, spread):
    stats = login(accountant).get("/api/dashboard/individual-stats").json()
    by_name = {s["user_name"]: s for s in stats}

    assert by_name["Carl Counter"]["total_amount"] == 0
    assert by_name["Carl Counter"]["category_breakdown"] == {}
    assert by_name["Olly Other"]["category_breakdown"] == {"Travel": 100}


def test_summary_stats(login, accountant, spread):
    body = login(accountant).get("/api/dashboard/stats").json()

    assert body["total_expenses"] == 5
    assert body["pending_expenses"] == 1
    assert body["approved_expenses"] == 3
    assert body["rejected_expenses"] == 1
    assert body["total_amount"] == 200
    assert [e["amount"] for e in body["recent_pending"]] == [500]


def test_monthly_comparison(db, employee, category, make_expense):
    now = datetime(2024, 3, 15)
    make_expense(employee, category, 150, status=APPROVED, created_at=datetime(2024, 3, 2))
    make_expense(employee, category, 100, status=APPROVED, created_at=datetime(2024, 2, 20))
    make_expense(employee, category, 999, status=APPROVED, created_at=datetime(2024, 1, 31))

    result = service.monthly_comparison(db, now=now)
    assert result["current_month"] == 150
    assert result["last_month"] == 100
    assert result["difference"] == 50
    assert result["percentage_change"] == pytest.approx(50.0)


def test_monthly_comparison_without_last_month(db, employee, category, make_expense):
    make_expense(employee, category, 10, status=APPROVED, created_at=datetime(2024, 1, 5))
    result = service.monthly_comparison(db, now=datetime(2024, 1, 20))
    assert result["last_month"] == 0
    assert result["percentage_change"] is None


def test_manager_can_read_breakdowns_but_not_summary(login, make_user):
    boss = make_user("Mona Manager", "mona@example.com", roles=["MANAGER"])
    c = login(boss)
    assert c.get("/api/dashboard/category-stats").status_code == 200
    assert c.get("/api/dashboard/monthly").status_code == 200
    assert c.get("/api/dashboard/stats").status_code == 403


def test_xlsx_export(login, accountant, spread):
    response = login(accountant).get("/api/dashboard/export")
    assert response.status_code == 200
    assert "attachment" in response.headers["content-disposition"]
    assert response.headers["content-disposition"].endswith('.xlsx"')

    workbook = load_workbook(io.BytesIO(response.content))
    assert workbook.sheetnames == ["Expenses", "Summary"]

    expenses = workbook["Expenses"]
    header = [cell.value for cell in expenses[1]]
    assert header == EXPORT_COLUMNS
    assert expenses["A1"].font.bold
    assert expenses.max_row == 4

    summary = workbook["Summary"]
    rows = {row[0]: (row[1], row[2]) for row in summary.iter_rows(min_row=2, values_only=True)}
    assert rows == {"Other": (30, 1), "Travel": (170, 2)}


def test_bad_custom_window(login, accountant):
    response = login(accountant).get("/api/dashboard/category-stats", params={
        "period": "custom", "startDate": "2024-02-10", "endDate": "2024-02-01",
    })
    assert response.status_code == 400
