from typing import List, Optional, Set

from fastapi import HTTPException, status
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cashflow.admin import schemas
from cashflow.expenses.models import Expense
from cashflow.security.passwords import hash_password
from cashflow.users import crud as user_crud
from cashflow.users.models import Role, User
from cashflow.users.permissions import normalize_role
from cashflow.users.schemas import CurrentUser


def _user_or_404(db: Session, user_id: int) -> User:
    user = user_crud.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _check_role_ids(db: Session, role_ids: List[int]) -> List[int]:
    wanted = list(dict.fromkeys(r for r in role_ids if r is not None))
    if not wanted:
        return []
    found = {row.id for row in db.query(Role.id).filter(Role.id.in_(wanted)).all()}
    missing = [r for r in wanted if r not in found]
    if missing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown role ids: {missing}")
    return wanted


def _report_ids(db: Session, user_id: int) -> Set[int]:
    """Direct and indirect reports of user_id."""
    found: Set[int] = set()
    frontier = [user_id]
    while frontier:
        rows = db.query(User.id).filter(User.manager_id.in_(frontier)).all()
        frontier = [row.id for row in rows if row.id not in found and row.id != user_id]
        found.update(frontier)
    return found


def _managers_above(db: Session, manager_id: Optional[int]) -> Set[int]:
    """manager_id and every manager above it."""
    chain: Set[int] = set()
    while manager_id is not None and manager_id not in chain:
        chain.add(manager_id)
        row = db.query(User.manager_id).filter(User.id == manager_id).first()
        manager_id = row.manager_id if row else None
    return chain


def user_detail(user: User) -> dict:
    data = user_crud.serialize_user(user)
    data["managed_users"] = [
        {"id": u.id, "name": u.name, "email": u.email, "roles": u.role_names}
        for u in user.managed_users
    ]
    return data


# ---------------- USERS ----------------
def list_users(db: Session):
    return [user_crud.serialize_user(u) for u in user_crud.get_all_users(db)]


def get_user(db: Session, user_id: int):
    return user_detail(_user_or_404(db, user_id))


def create_user(db: Session, payload: schemas.AdminUserCreate):
    if user_crud.get_user_by_email(db, payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")

    role_ids = _check_role_ids(db, payload.role_ids)
    if payload.manager_id is not None:
        _user_or_404(db, payload.manager_id)

    try:
        user = user_crud.build_user(
            db,
            name=payload.name,
            email=payload.email,
            hashed_password=hash_password(payload.password),
            role_ids=role_ids,
        )
        user.manager_id = payload.manager_id
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")

    logger.info(f"User {user.id} created by admin")
    return user_detail(_user_or_404(db, user.id))


def update_user(db: Session, user_id: int, payload: schemas.AdminUserUpdate):
    user = _user_or_404(db, user_id)
    data = payload.model_dump(exclude_unset=True)

    if data.get("email"):
        email = user_crud.normalize_email(data["email"])
        other = user_crud.get_user_by_email(db, email)
        if other and other.id != user_id:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")
        user.email = email

    if data.get("name"):
        user.name = data["name"].strip()

    if data.get("password"):
        user.hashed_password = hash_password(data["password"])

    if "manager_id" in data:
        manager_id = data["manager_id"]
        if manager_id == user_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A user cannot manage themselves")
        if manager_id is not None:
            _user_or_404(db, manager_id)
            if manager_id in _report_ids(db, user_id):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Manager already reports to this user"
                )
        user.manager_id = manager_id

    if data.get("managed_user_ids") is not None:
        ids = [i for i in data["managed_user_ids"] if i != user_id]
        above = _managers_above(db, user.manager_id)
        if above.intersection(ids):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A manager of this user cannot become their report"
            )
        # Managed set is replaced, not merged
        db.query(User).filter(User.manager_id == user_id, User.id.notin_(ids)).update(
            {User.manager_id: None}, synchronize_session=False
        )
        if ids:
            db.query(User).filter(User.id.in_(ids)).update(
                {User.manager_id: user_id}, synchronize_session=False
            )

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User could not be updated")

    db.expire_all()
    logger.info(f"User {user_id} updated")
    return user_detail(_user_or_404(db, user_id))


def replace_roles(db: Session, user_id: int, payload: schemas.RoleAssignment):
    user = _user_or_404(db, user_id)
    role_ids = _check_role_ids(db, payload.role_ids)

    try:
        user_crud.replace_user_roles(db, user, role_ids)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Roles could not be assigned")

    logger.info(f"Roles of user {user_id} replaced with {role_ids}")
    return user_crud.serialize_user(_user_or_404(db, user_id))


def toggle_enabled(db: Session, user_id: int, current_user: CurrentUser):
    user = _user_or_404(db, user_id)
    if user.id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot disable yourself.")

    user.enabled = not user.enabled
    db.commit()
    logger.info(f"User {user_id} enabled={user.enabled}")
    return user_crud.serialize_user(user)


def delete_user(db: Session, user_id: int, current_user: CurrentUser):
    if user_id == current_user.id:
        logger.warning(f"Admin {current_user.id} attempted to delete themselves.")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete yourself.")

    user = _user_or_404(db, user_id)

    has_expenses = db.query(Expense.id).filter(Expense.submitted_by_id == user_id).first()
    if has_expenses:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User has submitted expenses; disable the account instead"
        )

    db.delete(user)
    db.commit()
    logger.info(f"User {user_id} deleted")
    return {"message": "User deleted successfully"}


# ---------------- ROLES ----------------
def list_roles(db: Session):
    return db.query(Role).order_by(Role.name).all()


def create_role(db: Session, payload: schemas.RoleCreate):
    name = normalize_role(payload.name)
    if user_crud.get_role_by_name(db, name):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Role already exists")

    role = Role(name=name, description=payload.description)
    db.add(role)
    db.commit()
    db.refresh(role)
    logger.info(f"Role {name} created")
    return role


def delete_role(db: Session, role_id: int):
    role = db.query(Role).filter(Role.id == role_id).first()
    if not role:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")

    db.delete(role)
    db.commit()
    logger.info(f"Role {role_id} deleted")
    return {"message": "Role deleted successfully"}
