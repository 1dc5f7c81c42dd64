from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from cashflow.database import get_db
from cashflow.dashboard import export, service
from cashflow.dashboard.periods import resolve_window
from cashflow.users.permissions import role_required, FINANCE_ROLES, REVIEWER_ROLES
from cashflow.users.schemas import CurrentUser


router = APIRouter()


def window_params(
    period: str = Query("monthly", description="monthly, yearly or custom"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
):
    return resolve_window(period, start_date=start_date, end_date=end_date)


@router.get("/stats")
def dashboard_stats(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required(FINANCE_ROLES)),
):
    """Status counts, approved total and the most recent pending claims."""
    return service.summary_stats(db)


@router.get("/category-stats")
def category_stats(
    window=Depends(window_params),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required(REVIEWER_ROLES)),
):
    return service.category_stats(db, window)


@router.get("/user-stats")
def user_stats(
    window=Depends(window_params),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required(REVIEWER_ROLES)),
):
    return service.user_stats(db, window)


@router.get("/individual-stats")
def individual_stats(
    window=Depends(window_params),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required(REVIEWER_ROLES)),
):
    return service.individual_stats(db, window)


@router.get("/monthly")
def monthly_comparison(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required(REVIEWER_ROLES)),
):
    return service.monthly_comparison(db)


@router.get("/export")
def export_report(
    window=Depends(window_params),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required(FINANCE_ROLES)),
):
    content = export.to_xlsx_bytes(service.approved_expenses(db, window))
    filename = export.export_filename("expense-report", "xlsx")
    return Response(
        content=content,
        media_type=export.XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
