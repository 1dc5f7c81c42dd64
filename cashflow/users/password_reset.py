from datetime import datetime, timedelta

from fastapi import HTTPException, status
from loguru import logger
from sqlalchemy.orm import Session

from cashflow.config import settings
from cashflow.security.passwords import generate_token, hash_password
from cashflow.services import mailer
from cashflow.users import crud as user_crud
from cashflow.users.models import PasswordResetToken


GENERIC_RESET_MESSAGE = "If an account with that email exists, a password reset link will be sent."


def request_password_reset(db: Session, email: str) -> dict:
    if not email or not email.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")

    email = user_crud.normalize_email(email)
    user = user_crud.get_user_by_email(db, email)

    # Same answer whether or not the account exists
    if not user:
        logger.info("Password reset requested for unknown email")
        return {"message": GENERIC_RESET_MESSAGE}

    token = generate_token()
    expires_at = datetime.utcnow() + timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES)

    db.query(PasswordResetToken).filter(PasswordResetToken.email == email).delete(synchronize_session=False)
    db.add(PasswordResetToken(email=email, token=token, expires_at=expires_at))
    db.commit()

    try:
        mailer.send_password_reset_email(email, token)
    except Exception as e:
        logger.error(f"Could not send password reset email to user {user.id}: {e}")

    return {"message": GENERIC_RESET_MESSAGE}


def _get_valid_token(db: Session, token: str) -> PasswordResetToken:
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Token is required")

    reset_token = db.query(PasswordResetToken).filter(PasswordResetToken.token == token).first()
    if not reset_token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid token")

    if reset_token.expires_at < datetime.utcnow():
        db.delete(reset_token)
        db.commit()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Token has expired")

    return reset_token


def validate_reset_token(db: Session, token: str) -> dict:
    _get_valid_token(db, token)
    return {"message": "Token is valid"}


def reset_password(db: Session, token: str, password: str) -> dict:
    if not token or not password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Token and new password are required"
        )

    reset_token = _get_valid_token(db, token)

    user = user_crud.get_user_by_email(db, reset_token.email)
    if not user:
        db.delete(reset_token)
        db.commit()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    # Password change and token removal commit together
    try:
        user.hashed_password = hash_password(password)
        db.delete(reset_token)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Password reset completed for user {user.id}")
    return {"message": "Password reset successfully"}
