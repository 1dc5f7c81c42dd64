from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from cashflow.database import get_db
from cashflow.categories import schemas, service
from cashflow.users.auth import get_current_user
from cashflow.users.permissions import role_required, ADMIN
from cashflow.users.schemas import CurrentUser


router = APIRouter()
admin_router = APIRouter()


# ================= SIMPLE LIST =================
@router.get("/", response_model=List[schemas.CategorySimple])
def list_categories(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Categories for expense entry dropdowns."""
    return service.list_categories(db)


# ================= ADMIN =================
@admin_router.get("/", response_model=List[schemas.CategoryOut])
def admin_list_categories(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required([ADMIN])),
):
    return service.list_categories_with_employees(db)


@admin_router.post("/", response_model=schemas.CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(
    category: schemas.CategoryWrite,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required([ADMIN])),
):
    return service.create_category(db, category)


@admin_router.get("/{category_id}", response_model=schemas.CategoryOut)
def get_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required([ADMIN])),
):
    return service.get_category(db, category_id)


@admin_router.put("/{category_id}", response_model=schemas.CategoryOut)
def update_category(
    category_id: int,
    category: schemas.CategoryWrite,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required([ADMIN])),
):
    return service.update_category(db, category_id, category)


@admin_router.delete("/{category_id}")
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(role_required([ADMIN])),
):
    return service.delete_category(db, category_id)
