#!/usr/bin/env python3
"""Create the canonical roles and the default category, optionally an admin.

    python -m cashflow.seed
    python -m cashflow.seed --admin-email jane@example.com
    python -m cashflow.seed --create-admin --admin-email root@example.com --name Root
"""
import argparse
import getpass
import sys

from loguru import logger

from cashflow.config import settings
from cashflow.database import Base, SessionLocal, engine
from cashflow import models  # noqa: F401
from cashflow.categories.models import Category
from cashflow.security.passwords import hash_password
from cashflow.users import crud as user_crud
from cashflow.users.models import UserRole
from cashflow.users.permissions import ADMIN, ACCOUNTING, MANAGER, EMPLOYEE


ROLE_DESCRIPTIONS = {
    ADMIN: "Administrator with full access",
    ACCOUNTING: "Can manage financial records",
    MANAGER: "Reviews expenses of direct reports",
    EMPLOYEE: "Regular employee access",
}


def seed_roles(db):
    roles = {}
    for name, description in ROLE_DESCRIPTIONS.items():
        roles[name] = user_crud.get_or_create_role(db, name, description)
    return roles


def seed_default_category(db):
    category = db.query(Category).filter(Category.name == settings.DEFAULT_CATEGORY).first()
    if not category:
        category = Category(name=settings.DEFAULT_CATEGORY, description="Uncategorised expenses")
        db.add(category)
        db.flush()
    return category


def grant_role(db, user, role):
    exists = (
        db.query(UserRole)
        .filter(UserRole.user_id == user.id, UserRole.role_id == role.id)
        .first()
    )
    if not exists:
        db.add(UserRole(user_id=user.id, role_id=role.id))


def prompt_hidden(prompt_text: str) -> str:
    return getpass.getpass(prompt_text)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed roles, the default category and admin access.")
    parser.add_argument("--admin-email", help="Grant ADMIN to this user")
    parser.add_argument("--create-admin", action="store_true", help="Create the admin user if missing")
    parser.add_argument("--name", default="Administrator", help="Name for --create-admin")
    parser.add_argument("--password", help="Password for --create-admin (prompted when omitted)")
    args = parser.parse_args(argv)

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        roles = seed_roles(db)
        seed_default_category(db)

        if args.admin_email:
            user = user_crud.get_user_by_email(db, args.admin_email)
            if not user and args.create_admin:
                password = args.password or prompt_hidden("Password for the new admin (hidden): ").strip()
                if not password:
                    print("No password entered. Exiting.")
                    return 1
                user = user_crud.build_user(db, args.name, args.admin_email, hash_password(password))
            if not user:
                print(f"[ERROR] No user with email {args.admin_email}. Use --create-admin to create one.")
                db.rollback()
                return 2
            grant_role(db, user, roles[ADMIN])

        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    logger.info("Database has been seeded.")
    print("[OK] Database has been seeded.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
