from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cashflow.database import get_db
from cashflow.security.passwords import hash_password
from cashflow.users import crud as user_crud, schemas, password_reset
from cashflow.users.auth import authenticate_user, get_current_user, login_session, logout_session
from cashflow.users.permissions import EMPLOYEE


router = APIRouter()
directory_router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: schemas.RegisterSchema, db: Session = Depends(get_db)):
    email = user_crud.normalize_email(payload.email)

    if user_crud.get_user_by_email(db, email):
        raise HTTPException(status_code=409, detail="User already exists")

    try:
        role = user_crud.get_or_create_role(db, EMPLOYEE, "Regular employee access")
        user = user_crud.build_user(
            db,
            name=payload.name,
            email=email,
            hashed_password=hash_password(payload.password),
            role_ids=[role.id],
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="User already exists")

    logger.info(f"User {user.id} registered")
    return user_crud.serialize_user(user_crud.get_user(db, user.id))


@router.post("/login")
def login(payload: schemas.LoginSchema, request: Request, db: Session = Depends(get_db)):
    user = authenticate_user(db, payload.email, payload.password)
    if not user:
        logger.warning("Authentication denied: bad credentials")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not user.enabled:
        logger.warning(f"Authentication denied: user {user.id} is disabled")
        raise HTTPException(status_code=401, detail="Account disabled")

    login_session(request, user)
    logger.info(f"User authenticated: {user.id}")

    return user_crud.serialize_user(user)


@router.post("/logout")
def logout(request: Request):
    logout_session(request)
    return {"message": "Logged out"}


@router.get("/me", response_model=schemas.CurrentUser)
def me(current_user: schemas.CurrentUser = Depends(get_current_user)):
    return current_user


@router.post("/forgot-password")
def forgot_password(payload: schemas.ForgotPasswordSchema, db: Session = Depends(get_db)):
    return password_reset.request_password_reset(db, payload.email)


@router.get("/reset-password")
def check_reset_token(token: Optional[str] = None, db: Session = Depends(get_db)):
    return password_reset.validate_reset_token(db, token)


@router.post("/reset-password")
def reset_password(payload: schemas.ResetPasswordSchema, db: Session = Depends(get_db)):
    return password_reset.reset_password(db, payload.token, payload.password)


# ---------------- USER LOOKUP ----------------

@directory_router.get("/", response_model=List[schemas.UserBrief])
def list_users(
    search: str = "",
    db: Session = Depends(get_db),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    users = user_crud.search_users_by_name(db, search)
    return [schemas.UserBrief(id=u.id, name=u.name) for u in users]


@directory_router.get("/search", response_model=List[schemas.UserBrief])
def search_users(
    query: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    if not query:
        return []
    return user_crud.search_users_by_name(db, query)
