from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, joinedload

from cashflow.database import get_db
from cashflow.users import crud as user_crud
from cashflow.users.auth import get_current_user
from cashflow.users.models import User, UserRole
from cashflow.users.schemas import CurrentUser


router = APIRouter()


@router.get("/employees")
def list_my_employees(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Direct reports of the caller."""
    employees = (
        db.query(User)
        .options(joinedload(User.roles).joinedload(UserRole.role))
        .filter(User.manager_id == current_user.id)
        .order_by(User.name)
        .all()
    )

    if not employees:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No employees assigned")

    return [user_crud.serialize_user(u) for u in employees]
