from typing import List

from fastapi import HTTPException, status
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from cashflow.categories import models, schemas
from cashflow.expenses.models import Expense
from cashflow.users.models import User


# ================= HELPERS =================
def serialize_category(category: models.Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "created_at": category.created_at,
        "employees": [
            {"id": link.user.id, "name": link.user.name, "email": link.user.email}
            for link in category.category_employees
            if link.user
        ],
    }


def _load(db: Session, category_id: int) -> models.Category:
    category = (
        db.query(models.Category)
        .options(joinedload(models.Category.category_employees).joinedload(models.CategoryEmployee.user))
        .filter(models.Category.id == category_id)
        .first()
    )
    if not category:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found"
        )
    return category


def _check_employees(db: Session, employee_ids: List[int]) -> List[int]:
    wanted = list(dict.fromkeys(employee_ids or []))
    if not wanted:
        return []
    found = {row.id for row in db.query(User.id).filter(User.id.in_(wanted)).all()}
    missing = [i for i in wanted if i not in found]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown employee ids: {missing}"
        )
    return wanted


def _assign_employees(db: Session, category_id: int, employee_ids: List[int]):
    for user_id in employee_ids:
        db.add(models.CategoryEmployee(category_id=category_id, user_id=user_id))


# ================= LIST =================
def list_categories(db: Session):
    return db.query(models.Category).order_by(models.Category.name).all()


def list_categories_with_employees(db: Session):
    categories = (
        db.query(models.Category)
        .options(joinedload(models.Category.category_employees).joinedload(models.CategoryEmployee.user))
        .order_by(models.Category.name)
        .all()
    )
    return [serialize_category(c) for c in categories]


def get_category(db: Session, category_id: int):
    return serialize_category(_load(db, category_id))


# ================= CREATE =================
def create_category(db: Session, category: schemas.CategoryWrite):
    name = category.name.strip()

    existing = db.query(models.Category).filter(models.Category.name == name).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Category '{name}' already exists"
        )

    employee_ids = _check_employees(db, category.employee_ids)

    try:
        db_category = models.Category(name=name, description=category.description)
        db.add(db_category)
        db.flush()
        _assign_employees(db, db_category.id, employee_ids)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Category '{name}' already exists"
        )

    logger.info(f"Category {db_category.id} created with {len(employee_ids)} employees")
    return get_category(db, db_category.id)


# ================= UPDATE =================
def update_category(db: Session, category_id: int, category: schemas.CategoryWrite):
    db_category = _load(db, category_id)
    name = category.name.strip()

    name_exists = (
        db.query(models.Category)
        .filter(models.Category.name == name)
        .filter(models.Category.id != category_id)
        .first()
    )
    if name_exists:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Another category with this name already exists"
        )

    employee_ids = _check_employees(db, category.employee_ids)

    # Assignments are replaced wholesale on every save
    try:
        db_category.name = name
        db_category.description = category.description
        db.query(models.CategoryEmployee).filter(
            models.CategoryEmployee.category_id == category_id
        ).delete(synchronize_session=False)
        _assign_employees(db, category_id, employee_ids)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category could not be saved")

    db.expire_all()
    logger.info(f"Category {category_id} updated")
    return get_category(db, category_id)


# ================= DELETE =================
def delete_category(db: Session, category_id: int):
    db_category = _load(db, category_id)

    in_use = db.query(Expense.id).filter(Expense.category_id == category_id).first()
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category is used by existing expenses"
        )

    db.delete(db_category)
    db.commit()
    logger.info(f"Category {category_id} deleted")
    return {"message": "Category deleted successfully"}
