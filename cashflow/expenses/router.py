import math
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from cashflow.database import get_db
from cashflow.dashboard import export
from cashflow.dashboard import service as dashboard_service
from cashflow.dashboard.periods import resolve_window
from cashflow.expenses import schemas, service
from cashflow.expenses.models import ExpenseStatus
from cashflow.users.auth import SESSION_USER_KEY, get_current_user
from cashflow.users.permissions import role_required, has_any_role, FINANCE_ROLES, REVIEWER_ROLES
from cashflow.users.schemas import CurrentUser


router = APIRouter()


def report_window(
    period: Optional[str] = Query(None, description="month, year or custom"),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    return resolve_window(period, start_date=start_date, end_date=end_date, month=month, year=year)


# =========================
# Listing
# =========================
@router.get("/")
def list_expenses(
    scope: str = "mine",
    status_filter: Optional[ExpenseStatus] = Query(None, alias="status"),
    category_id: Optional[int] = None,
    window=Depends(report_window),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return service.list_expenses(
        db,
        current_user,
        scope=scope,
        window=window,
        status_filter=status_filter,
        category_id=category_id,
    )


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=schemas.ExpenseOut)
def create_expense(
    expense: schemas.ExpenseCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return service.create_expense(db, current_user, expense)


@router.get("/pending", response_model=List[schemas.ExpenseOut])
def list_pending(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required(REVIEWER_ROLES)),
):
    return service.list_pending(db, current_user)


# =========================
# Reporting
# =========================
@router.get("/reports")
def expense_reports(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100, alias="perPage"),
    user_id: Optional[int] = Query(None, alias="userId"),
    category_id: Optional[int] = None,
    status_filter: Optional[ExpenseStatus] = Query(None, alias="status"),
    window=Depends(report_window),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required(FINANCE_ROLES)),
):
    query = service.filtered_query(
        db,
        window=window,
        status_filter=status_filter,
        category_id=category_id,
        user_id=user_id,
    )
    total = query.order_by(None).count()
    expenses = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "expenses": [service.serialize_expense(e) for e in expenses],
        "total": total,
        "page": page,
        "per_page": per_page,
        "total_pages": math.ceil(total / per_page) if total else 0,
    }


@router.get("/export")
def export_expenses(
    user_id: Optional[int] = Query(None, alias="userId"),
    category_id: Optional[int] = None,
    status_filter: Optional[ExpenseStatus] = Query(None, alias="status"),
    window=Depends(report_window),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required(FINANCE_ROLES)),
):
    expenses = service.filtered_query(
        db,
        window=window,
        status_filter=status_filter,
        category_id=category_id,
        user_id=user_id,
    ).all()

    filename = export.export_filename("expenses", "csv")
    return Response(
        content=export.to_csv_bytes(expenses),
        media_type=export.CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/stats/monthly")
def monthly_stats(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    owner_ids = None if has_any_role(current_user, FINANCE_ROLES) else [current_user.id]
    return dashboard_service.monthly_comparison(db, owner_ids=owner_ids)


# =========================
# Upload / invoice submit
# =========================
@router.post("/upload")
def upload_files(
    request: Request,
    files: Optional[List[UploadFile]] = File(None),
    token: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    """Store invoice files and prefill fields from the image when possible.

    Desktop sessions use the session cookie; the phone side of the QR
    hand-off sends the upload token instead, which is used up by one
    successful request.
    """
    email, upload_token = service.upload_identity(db, request.session.get(SESSION_USER_KEY), token)
    return service.process_uploads(db, email, files or [], upload_token=upload_token)


@router.post("/submit")
def submit_invoice(
    payload: schemas.SubmitInvoiceSchema,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return service.submit_invoice(db, current_user, payload)


@router.post("/upload-token")
def issue_upload_token(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return service.issue_upload_token(db, current_user)


@router.post("/verify-token")
def verify_upload_token(payload: schemas.VerifyTokenSchema, db: Session = Depends(get_db)):
    return {"email": service.verify_upload_token(db, payload.token)}


# =========================
# Single expense
# =========================
@router.get("/{expense_id}", response_model=schemas.ExpenseOut)
def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return service.get_expense(db, current_user, expense_id)


@router.post("/{expense_id}/approve", response_model=schemas.ExpenseOut)
def approve_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required(REVIEWER_ROLES)),
):
    return service.review_expense(db, current_user, expense_id, ExpenseStatus.APPROVED)


@router.post("/{expense_id}/reject", response_model=schemas.ExpenseOut)
def reject_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required(REVIEWER_ROLES)),
):
    return service.review_expense(db, current_user, expense_id, ExpenseStatus.REJECTED)


@router.delete("/{expense_id}")
def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return service.delete_expense(db, current_user, expense_id)
