import secrets

from passlib.context import CryptContext


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """Return a bcrypt hash for plain_password."""
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, stored_hash: str) -> bool:
    """Verify a candidate password against a stored hash."""
    if not stored_hash:
        return False
    try:
        return pwd_context.verify(plain_password, stored_hash)
    except ValueError:
        # Malformed or unknown hash format
        return False


def generate_token(nbytes: int = 32) -> str:
    """Random hex token used for password reset links and upload hand-off."""
    return secrets.token_hex(nbytes)
