from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from cashflow.users.models import User, Role, UserRole


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _with_roles(db: Session):
    return db.query(User).options(joinedload(User.roles).joinedload(UserRole.role))


def get_user(db: Session, user_id: int) -> Optional[User]:
    return _with_roles(db).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return _with_roles(db).filter(User.email == normalize_email(email)).first()


def get_all_users(db: Session, skip: int = 0, limit: int = 200) -> List[User]:
    return _with_roles(db).order_by(User.name).offset(skip).limit(limit).all()


def search_users_by_name(db: Session, text: str, limit: int = 10) -> List[User]:
    query = db.query(User)
    if text:
        query = query.filter(User.name.ilike(f"%{text.strip()}%"))
    return query.order_by(User.name).limit(limit).all()


def get_role_by_name(db: Session, name: str) -> Optional[Role]:
    return db.query(Role).filter(Role.name == name).first()


def get_or_create_role(db: Session, name: str, description: str = None) -> Role:
    role = get_role_by_name(db, name)
    if role:
        return role
    role = Role(name=name, description=description)
    db.add(role)
    db.flush()
    return role


def build_user(db: Session, name: str, email: str, hashed_password: str, role_ids: List[int] = None) -> User:
    """Adds a user and its role links to the session without committing."""
    new_user = User(
        name=name.strip(),
        email=normalize_email(email),
        hashed_password=hashed_password,
        enabled=True,
    )
    db.add(new_user)
    db.flush()

    for role_id in role_ids or []:
        db.add(UserRole(user_id=new_user.id, role_id=role_id))

    return new_user


def replace_user_roles(db: Session, user: User, role_ids: List[int]):
    """Drops every role link of the user, then inserts the selected ones."""
    db.query(UserRole).filter(UserRole.user_id == user.id).delete(synchronize_session=False)
    for role_id in dict.fromkeys(role_ids):
        db.add(UserRole(user_id=user.id, role_id=role_id))
    db.flush()
    db.expire(user, ["roles"])


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "enabled": user.enabled,
        "manager_id": user.manager_id,
        "roles": user.role_names,
        "created_at": user.created_at,
    }
