from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from fastapi import HTTPException, UploadFile, status
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from cashflow.categories.models import Category
from cashflow.config import settings
from cashflow.dashboard.periods import Window, apply_window
from cashflow.expenses import models, schemas
from cashflow.expenses.models import ExpenseStatus
from cashflow.security.passwords import generate_token
from cashflow.services.invoice_extractor import InvoiceExtractionError, extract_invoice_data
from cashflow.uploads import storage
from cashflow.users import crud as user_crud
from cashflow.users.models import User
from cashflow.users.permissions import has_any_role, FINANCE_ROLES, REVIEWER_ROLES
from cashflow.users.schemas import CurrentUser


# =========================
# Helper: serialize expense
# =========================
def serialize_expense(expense: models.Expense) -> dict:
    return {
        "id": expense.id,
        "title": expense.title,
        "description": expense.description,
        "amount": expense.amount,
        "currency": expense.currency,
        "status": expense.status,
        "billing_type": expense.billing_type,
        "category_id": expense.category_id,
        "category_name": expense.category.name if expense.category else None,
        "submitted_by_id": expense.submitted_by_id,
        "submitted_by_name": expense.submitted_by.name if expense.submitted_by else None,
        "reviewed_by_id": expense.reviewed_by_id,
        "reviewed_at": expense.reviewed_at,
        "created_at": expense.created_at,
        "submitted_at": expense.created_at,
        "attachments": [
            {
                "id": a.id,
                "filename": a.filename,
                "url": a.url,
                "file_size": a.file_size,
                "file_type": a.file_type,
            }
            for a in expense.attachments
        ],
    }


def expense_query(db: Session):
    return db.query(models.Expense).options(
        joinedload(models.Expense.category),
        joinedload(models.Expense.submitted_by),
        joinedload(models.Expense.attachments),
    )


# =========================
# Helper: who may see what
# =========================
def managed_user_ids(db: Session, manager_id: int) -> List[int]:
    return [row.id for row in db.query(User.id).filter(User.manager_id == manager_id).all()]


def visible_owner_ids(db: Session, current_user: CurrentUser) -> Optional[List[int]]:
    """None means every owner; managers see their direct reports and themselves."""
    if has_any_role(current_user, FINANCE_ROLES):
        return None
    return managed_user_ids(db, current_user.id) + [current_user.id]


def _ensure_can_review(db: Session, current_user: CurrentUser, expense: models.Expense):
    if not has_any_role(current_user, REVIEWER_ROLES):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")

    if has_any_role(current_user, FINANCE_ROLES):
        return

    if expense.submitted_by_id not in managed_user_ids(db, current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only review expenses of your direct reports"
        )


def _get_or_404(db: Session, expense_id: int) -> models.Expense:
    expense = expense_query(db).filter(models.Expense.id == expense_id).first()
    if not expense:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expense not found")
    return expense


# =========================
# List / get
# =========================
def filtered_query(
    db: Session,
    window: Window = (None, None),
    status_filter: Optional[ExpenseStatus] = None,
    category_id: Optional[int] = None,
    user_id: Optional[int] = None,
    owner_ids: Optional[List[int]] = None,
):
    query = expense_query(db)
    query = apply_window(query, models.Expense.created_at, window)

    if status_filter:
        query = query.filter(models.Expense.status == status_filter)
    if category_id:
        query = query.filter(models.Expense.category_id == category_id)
    if user_id:
        query = query.filter(models.Expense.submitted_by_id == user_id)
    if owner_ids is not None:
        query = query.filter(models.Expense.submitted_by_id.in_(owner_ids))

    return query.order_by(models.Expense.created_at.desc(), models.Expense.id.desc())


def list_expenses(
    db: Session,
    current_user: CurrentUser,
    scope: str = "mine",
    window: Window = (None, None),
    status_filter: Optional[ExpenseStatus] = None,
    category_id: Optional[int] = None,
):
    if scope == "all":
        if not has_any_role(current_user, REVIEWER_ROLES):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        owner_ids = visible_owner_ids(db, current_user)
    elif scope == "mine":
        owner_ids = [current_user.id]
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="scope must be 'mine' or 'all'")

    expenses = filtered_query(
        db,
        window=window,
        status_filter=status_filter,
        category_id=category_id,
        owner_ids=owner_ids,
    ).all()

    return {
        "total_amount": sum(e.amount for e in expenses),
        "expenses": [serialize_expense(e) for e in expenses],
    }


def get_expense(db: Session, current_user: CurrentUser, expense_id: int):
    expense = _get_or_404(db, expense_id)

    if expense.submitted_by_id == current_user.id:
        return serialize_expense(expense)

    if not has_any_role(current_user, REVIEWER_ROLES):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expense not found")

    owners = visible_owner_ids(db, current_user)
    if owners is not None and expense.submitted_by_id not in owners:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expense not found")

    return serialize_expense(expense)


def list_pending(db: Session, current_user: CurrentUser):
    owners = None
    if not has_any_role(current_user, FINANCE_ROLES):
        # Managers only review their direct reports
        owners = managed_user_ids(db, current_user.id)
    expenses = filtered_query(db, status_filter=ExpenseStatus.PENDING, owner_ids=owners).all()
    return [serialize_expense(e) for e in expenses]


# =========================
# Create
# =========================
def _attachment_from_url(url: str, email: str) -> models.Attachment:
    if not storage.belongs_to(url, email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Attachments must be uploaded by the submitting user"
        )
    relative = storage.relative_url(url)
    path = storage.resolve_stored_path(relative)
    size = path.stat().st_size if path.is_file() else 0
    return models.Attachment(
        filename=relative.split("/")[-1],
        url=relative,
        file_size=size,
        file_type=storage.content_type_for(relative),
    )


def create_expense(db: Session, current_user: CurrentUser, payload: schemas.ExpenseCreate):
    category = db.query(Category).filter(Category.id == payload.category_id).first()
    if not category:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category not found")

    attachments = [_attachment_from_url(u, current_user.email) for u in payload.attachment_urls]

    expense = models.Expense(
        title=payload.title.strip(),
        description=payload.description,
        amount=payload.amount,
        currency=payload.currency,
        status=ExpenseStatus.PENDING,
        billing_type=payload.billing_type,
        submitted_by_id=current_user.id,
        category_id=category.id,
        attachments=attachments,
    )

    try:
        db.add(expense)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Expense could not be saved")

    logger.info(f"Expense {expense.id} submitted by user {current_user.id}")
    return serialize_expense(_get_or_404(db, expense.id))


def submit_invoice(db: Session, current_user: CurrentUser, payload: schemas.SubmitInvoiceSchema):
    invoice = payload.invoice_data

    category = db.query(Category).filter(Category.name == settings.DEFAULT_CATEGORY).first()
    if not category:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Default category not found"
        )

    if not storage.is_external(payload.file_url):
        attachment = _attachment_from_url(storage.relative_url(payload.file_url), current_user.email)
    else:
        attachment = models.Attachment(
            filename=payload.file_url.rstrip("/").split("/")[-1] or "invoice",
            url=payload.file_url,
            file_size=0,
            file_type=storage.content_type_for(payload.file_url),
        )

    expense = models.Expense(
        title=f"Invoice {invoice.invoice_id.value}",
        description=f"Invoice from {invoice.company_name.value}",
        amount=invoice.total_amount.amount,
        currency=invoice.total_amount_curr.value.strip().upper(),
        status=ExpenseStatus.PENDING,
        billing_type=models.BillingType.INTERNAL,
        submitted_by_id=current_user.id,
        category_id=category.id,
        attachments=[attachment],
    )

    try:
        db.add(expense)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="A record with this data already exists"
        )

    logger.info(f"Invoice expense {expense.id} submitted by user {current_user.id}")
    return {
        "message": "Invoice submitted successfully",
        "expense": serialize_expense(_get_or_404(db, expense.id)),
    }


# =========================
# Review
# =========================
def review_expense(db: Session, current_user: CurrentUser, expense_id: int, new_status: ExpenseStatus):
    expense = _get_or_404(db, expense_id)
    _ensure_can_review(db, current_user, expense)

    # APPROVED and REJECTED are terminal
    if expense.status != ExpenseStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Expense is already {expense.status.value}"
        )

    expense.status = new_status
    expense.reviewed_by_id = current_user.id
    expense.reviewed_at = datetime.utcnow()
    db.commit()

    logger.info(f"Expense {expense_id} set to {new_status.value} by user {current_user.id}")
    return serialize_expense(_get_or_404(db, expense_id))


# =========================
# Delete
# =========================
def delete_expense(db: Session, current_user: CurrentUser, expense_id: int):
    expense = (
        expense_query(db)
        .filter(
            models.Expense.id == expense_id,
            models.Expense.submitted_by_id == current_user.id,
            models.Expense.status == ExpenseStatus.PENDING,
        )
        .first()
    )

    if not expense:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Expense not found or cannot be deleted"
        )

    # External links are never unlinked; local files only from the owner's directory
    urls = [a.url for a in expense.attachments if storage.belongs_to(a.url, current_user.email)]

    db.delete(expense)
    db.commit()

    for url in urls:
        storage.delete_stored_file(url)

    logger.info(f"Expense {expense_id} deleted by user {current_user.id}")
    return {"message": "Expense deleted successfully"}


# =========================
# Upload + extraction
# =========================
def process_uploads(
    db: Session,
    email: str,
    files: List[UploadFile],
    upload_token: Optional[models.UploadToken] = None,
):
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files provided")

    saved = []
    for file in files:
        info = storage.save_upload(email, file)
        path = info.pop("path")

        extracted = None
        try:
            extracted = extract_invoice_data(path).model_dump()
        except InvoiceExtractionError as e:
            logger.error(f"Failed to extract entities from {info['filename']}: {e}")

        info["extracted"] = extracted
        saved.append(info)

    # A QR hand-off token covers one upload request
    if upload_token is not None:
        db.delete(upload_token)
        db.commit()
        logger.info(f"Upload token consumed after {len(saved)} file(s)")

    return {"message": "Files uploaded successfully", "files": saved}


# =========================
# Upload tokens (QR hand-off)
# =========================
def issue_upload_token(db: Session, current_user: CurrentUser):
    token = generate_token()
    now = datetime.utcnow()
    expires_at = now + timedelta(minutes=settings.UPLOAD_TOKEN_EXPIRE_MINUTES)

    purged = (
        db.query(models.UploadToken)
        .filter(models.UploadToken.expires_at < now)
        .delete(synchronize_session=False)
    )
    db.add(models.UploadToken(token=token, email=current_user.email, expires_at=expires_at))
    db.commit()

    logger.info(f"Upload token issued for user {current_user.id} ({purged} expired purged)")
    return {"token": token, "expires_at": expires_at}


def _valid_upload_token(db: Session, token: Optional[str]) -> models.UploadToken:
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Token is required")

    upload_token = db.query(models.UploadToken).filter(models.UploadToken.token == token).first()
    if not upload_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    if upload_token.expires_at < datetime.utcnow():
        db.delete(upload_token)
        db.commit()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")

    return upload_token


def verify_upload_token(db: Session, token: Optional[str]) -> str:
    """Return the email bound to token or raise."""
    return _valid_upload_token(db, token).email


def upload_identity(
    db: Session,
    session_user_id: Optional[int],
    token: Optional[str],
) -> Tuple[str, Optional[models.UploadToken]]:
    """Email whose upload directory receives the files, and the token to consume if one was used."""
    if session_user_id is not None:
        user = user_crud.get_user(db, session_user_id)
        if user and user.enabled:
            return user.email, None
    if token:
        upload_token = _valid_upload_token(db, token)
        user = user_crud.get_user_by_email(db, upload_token.email)
        if user and user.enabled:
            return user.email, upload_token
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
