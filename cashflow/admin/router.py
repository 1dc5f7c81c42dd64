from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from cashflow.admin import schemas, service
from cashflow.database import get_db
from cashflow.users.permissions import role_required, ADMIN
from cashflow.users.schemas import CurrentUser


router = APIRouter()

admin_only = role_required([ADMIN])


# ---------------- USERS ----------------
@router.get("/users")
def list_users(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(admin_only),
):
    return service.list_users(db)


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(
    payload: schemas.AdminUserCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(admin_only),
):
    return service.create_user(db, payload)


@router.get("/users/{user_id}")
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(admin_only),
):
    return service.get_user(db, user_id)


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    payload: schemas.AdminUserUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(admin_only),
):
    return service.update_user(db, user_id, payload)


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(admin_only),
):
    return service.delete_user(db, user_id, current_user)


@router.put("/users/{user_id}/roles")
def replace_user_roles(
    user_id: int,
    payload: schemas.RoleAssignment,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(admin_only),
):
    return service.replace_roles(db, user_id, payload)


@router.put("/users/{user_id}/toggle-enabled")
def toggle_user_enabled(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(admin_only),
):
    return service.toggle_enabled(db, user_id, current_user)


# ---------------- ROLES ----------------
@router.get("/roles", response_model=List[schemas.RoleOut])
def list_roles(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(admin_only),
):
    return service.list_roles(db)


@router.post("/roles", response_model=schemas.RoleOut, status_code=status.HTTP_201_CREATED)
def create_role(
    payload: schemas.RoleCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(admin_only),
):
    return service.create_role(db, payload)


@router.delete("/roles/{role_id}")
def delete_role(
    role_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(admin_only),
):
    return service.delete_role(db, role_id)
