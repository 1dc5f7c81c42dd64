from typing import Iterable, List, Set

from fastapi import Depends, HTTPException, status
from loguru import logger

from cashflow.users.auth import get_current_user
from cashflow.users import schemas as user_schemas


ADMIN = "ADMIN"
ACCOUNTING = "ACCOUNTING"
MANAGER = "MANAGER"
EMPLOYEE = "EMPLOYEE"

CANONICAL_ROLES = (ADMIN, ACCOUNTING, MANAGER, EMPLOYEE)

REVIEWER_ROLES = [ADMIN, ACCOUNTING, MANAGER]
FINANCE_ROLES = [ADMIN, ACCOUNTING]

# Spellings found in older data
ROLE_ALIASES = {
    "ACCOUNTANT": ACCOUNTING,
    "ADMINISTRATOR": ADMIN,
}


def normalize_role(name: str) -> str:
    key = (name or "").strip().upper()
    return ROLE_ALIASES.get(key, key)


def normalize_roles(names: Iterable[str]) -> Set[str]:
    return {normalize_role(n) for n in (names or []) if n and n.strip()}


def has_any_role(user: user_schemas.CurrentUser, allowed_roles: Iterable[str]) -> bool:
    user_roles = normalize_roles(user.roles)

    # Admin bypass
    if ADMIN in user_roles:
        return True

    return bool(user_roles.intersection(normalize_roles(allowed_roles)))


def role_required(allowed_roles: List[str]):
    allowed_set: Set[str] = normalize_roles(allowed_roles)

    def wrapper(current_user: user_schemas.CurrentUser = Depends(get_current_user)):
        if not has_any_role(current_user, allowed_set):
            logger.warning(
                f"Forbidden: user {current_user.id} with roles {current_user.roles} "
                f"needs one of {sorted(allowed_set)}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )

        return current_user

    return wrapper
