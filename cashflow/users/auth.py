from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session, joinedload

from cashflow.database import get_db
from cashflow.security.passwords import verify_password
from cashflow.users import crud as user_crud
from cashflow.users import models as user_models
from cashflow.users import schemas as user_schemas


SESSION_USER_KEY = "user_id"


def authenticate_user(db: Session, email: str, password: str):
    user = user_crud.get_user_by_email(db, email)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def to_current_user(user: user_models.User) -> user_schemas.CurrentUser:
    return user_schemas.CurrentUser(
        id=user.id,
        name=user.name,
        email=user.email,
        manager_id=user.manager_id,
        roles=user.role_names,
    )


def login_session(request: Request, user: user_models.User):
    request.session.clear()
    request.session[SESSION_USER_KEY] = user.id


def logout_session(request: Request):
    request.session.clear()


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> user_schemas.CurrentUser:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
    )

    user_id = request.session.get(SESSION_USER_KEY)
    if user_id is None:
        raise credentials_exception

    user = (
        db.query(user_models.User)
        .options(joinedload(user_models.User.roles).joinedload(user_models.UserRole.role))
        .filter(user_models.User.id == user_id)
        .first()
    )

    # Deleted or disabled after login
    if not user or not user.enabled:
        request.session.clear()
        raise credentials_exception

    return to_current_user(user)
