from collections import defaultdict
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from cashflow.categories.models import Category
from cashflow.dashboard.periods import Window, apply_window, month_bounds, previous_month
from cashflow.expenses import models as expense_models
from cashflow.expenses.models import ExpenseStatus
from cashflow.expenses.service import expense_query, serialize_expense
from cashflow.users.models import User


Expense = expense_models.Expense


def _approved(query, window: Window):
    query = query.filter(Expense.status == ExpenseStatus.APPROVED)
    return apply_window(query, Expense.created_at, window)


def approved_total(db: Session, window: Window = (None, None), owner_ids: Optional[List[int]] = None) -> float:
    query = _approved(db.query(func.coalesce(func.sum(Expense.amount), 0.0)), window)
    if owner_ids is not None:
        query = query.filter(Expense.submitted_by_id.in_(owner_ids))
    return float(query.scalar() or 0.0)


# -------------------------
# Summary block
# -------------------------
def summary_stats(db: Session, recent_limit: int = 5):
    counts = dict(
        db.query(Expense.status, func.count(Expense.id))
        .group_by(Expense.status)
        .all()
    )

    recent_pending = (
        expense_query(db)
        .filter(Expense.status == ExpenseStatus.PENDING)
        .order_by(Expense.created_at.desc(), Expense.id.desc())
        .limit(recent_limit)
        .all()
    )

    return {
        "total_expenses": sum(counts.values()),
        "pending_expenses": counts.get(ExpenseStatus.PENDING, 0),
        "approved_expenses": counts.get(ExpenseStatus.APPROVED, 0),
        "rejected_expenses": counts.get(ExpenseStatus.REJECTED, 0),
        "total_amount": approved_total(db),
        "recent_pending": [serialize_expense(e) for e in recent_pending],
    }


# -------------------------
# Per category
# -------------------------
def category_stats(db: Session, window: Window = (None, None)):
    total = approved_total(db, window)

    rows = _approved(
        db.query(
            Category.id.label("category_id"),
            Category.name.label("category_name"),
            func.sum(Expense.amount).label("total_amount"),
            func.count(Expense.id).label("expense_count"),
        )
        .select_from(Expense)
        .join(Category, Category.id == Expense.category_id),
        window,
    ).group_by(Category.id, Category.name).all()

    stats = [
        {
            "category_id": row.category_id,
            "category_name": row.category_name,
            "total_amount": float(row.total_amount or 0),
            "expense_count": row.expense_count,
            "percentage": (float(row.total_amount or 0) / total) * 100 if total > 0 else 0,
        }
        for row in rows
    ]
    stats.sort(key=lambda s: s["total_amount"], reverse=True)
    return stats


# -------------------------
# Per user
# -------------------------
def _user_category_breakdown(db: Session, window: Window):
    rows = _approved(
        db.query(
            Expense.submitted_by_id.label("user_id"),
            Category.id.label("category_id"),
            Category.name.label("category_name"),
            func.sum(Expense.amount).label("amount"),
        )
        .select_from(Expense)
        .join(Category, Category.id == Expense.category_id),
        window,
    ).group_by(Expense.submitted_by_id, Category.id, Category.name).all()

    breakdown = defaultdict(list)
    for row in rows:
        breakdown[row.user_id].append({
            "category_id": row.category_id,
            "category_name": row.category_name,
            "amount": float(row.amount or 0),
        })
    return breakdown


def user_stats(db: Session, window: Window = (None, None)):
    rows = _approved(
        db.query(
            User.id.label("user_id"),
            User.name.label("user_name"),
            func.sum(Expense.amount).label("total_amount"),
            func.count(Expense.id).label("expense_count"),
        )
        .select_from(Expense)
        .join(User, User.id == Expense.submitted_by_id),
        window,
    ).group_by(User.id, User.name).all()

    breakdown = _user_category_breakdown(db, window)

    stats = []
    for row in rows:
        total = float(row.total_amount or 0)
        stats.append({
            "user_id": row.user_id,
            "user_name": row.user_name,
            "total_amount": total,
            "expense_count": row.expense_count,
            "average_amount": total / row.expense_count if row.expense_count else 0,
            "categories": breakdown.get(row.user_id, []),
        })
    stats.sort(key=lambda s: s["total_amount"], reverse=True)
    return stats


def individual_stats(db: Session, window: Window = (None, None)):
    """Every user, including those without approved expenses in the window."""
    by_user = {s["user_id"]: s for s in user_stats(db, window)}

    result = []
    for user in db.query(User).order_by(User.name).all():
        stat = by_user.get(user.id)
        if stat is None:
            result.append({
                "user_id": user.id,
                "user_name": user.name,
                "total_amount": 0.0,
                "expense_count": 0,
                "average_amount": 0,
                "category_breakdown": {},
            })
            continue
        result.append({
            "user_id": user.id,
            "user_name": user.name,
            "total_amount": stat["total_amount"],
            "expense_count": stat["expense_count"],
            "average_amount": stat["average_amount"],
            "category_breakdown": {c["category_name"]: c["amount"] for c in stat["categories"]},
        })
    return result


# -------------------------
# Month over month
# -------------------------
def monthly_comparison(db: Session, owner_ids: Optional[List[int]] = None, now: Optional[datetime] = None):
    now = now or datetime.utcnow()
    current = approved_total(db, month_bounds(now.year, now.month), owner_ids)
    last = approved_total(db, month_bounds(*previous_month(now.year, now.month)), owner_ids)

    return {
        "current_month": current,
        "last_month": last,
        "difference": current - last,
        "percentage_change": ((current - last) / last) * 100 if last > 0 else None,
    }


def approved_expenses(db: Session, window: Window = (None, None)):
    return (
        _approved(expense_query(db), window)
        .order_by(Expense.created_at.desc(), Expense.id.desc())
        .all()
    )
