import pytest

from conftest import TestingSessionLocal, engine
from cashflow import seed
from cashflow.categories.models import Category
from cashflow.users import crud as user_crud
from cashflow.users.models import Role


@pytest.fixture(autouse=True)
def seeded_engine(db, monkeypatch):
    monkeypatch.setattr(seed, "engine", engine)
    monkeypatch.setattr(seed, "SessionLocal", TestingSessionLocal)


def test_seed_roles_and_default_category(db):
    assert seed.main([]) == 0
    assert seed.main([]) == 0

    assert sorted(r.name for r in db.query(Role).all()) == ["ACCOUNTING", "ADMIN", "EMPLOYEE", "MANAGER"]
    assert db.query(Category).filter(Category.name == "Other").count() == 1


def test_seed_grants_admin_to_existing_user(db, employee):
    assert seed.main(["--admin-email", employee.email]) == 0
    db.expire_all()
    assert set(user_crud.get_user(db, employee.id).role_names) == {"EMPLOYEE", "ADMIN"}


def test_seed_unknown_admin(db):
    assert seed.main(["--admin-email", "nobody@example.com"]) == 2


def test_seed_creates_admin(db):
    code = seed.main([
        "--admin-email", "root@example.com", "--create-admin", "--name", "Root", "--password", "pw123456",
    ])
    assert code == 0
    user = user_crud.get_user_by_email(db, "root@example.com")
    assert user.name == "Root"
    assert user.role_names == ["ADMIN"]
