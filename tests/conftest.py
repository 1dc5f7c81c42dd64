import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_FILE"] = ""

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from cashflow.config import settings  # noqa: E402
from cashflow.database import Base, get_db  # noqa: E402
from cashflow.main import app  # noqa: E402
from cashflow.categories.models import Category  # noqa: E402
from cashflow.expenses.models import Expense, ExpenseStatus  # noqa: E402
from cashflow.security.passwords import hash_password  # noqa: E402
from cashflow.users import crud as user_crud  # noqa: E402
from cashflow.users.models import User, UserRole  # noqa: E402


PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    path.mkdir()
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(path))
    return path


@pytest.fixture
def new_client(db, upload_dir):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield lambda: TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def client(new_client):
    return new_client()


@pytest.fixture
def make_user(db):
    def _make_user(name, email, roles=(), manager=None, enabled=True):
        user = User(
            name=name,
            email=email,
            hashed_password=PASSWORD_HASH,
            enabled=enabled,
            manager_id=manager.id if manager else None,
        )
        db.add(user)
        db.flush()
        for role_name in roles:
            role = user_crud.get_or_create_role(db, role_name)
            db.add(UserRole(user_id=user.id, role_id=role.id))
        db.commit()
        return user
    return _make_user


@pytest.fixture
def login(new_client):
    def _login(user):
        c = new_client()
        response = c.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 200, response.text
        return c
    return _login


@pytest.fixture
def category(db):
    other = Category(name="Other", description="Default")
    db.add(other)
    db.commit()
    return other


@pytest.fixture
def make_category(db):
    def _make_category(name):
        cat = Category(name=name)
        db.add(cat)
        db.commit()
        return cat
    return _make_category


@pytest.fixture
def make_expense(db):
    def _make_expense(user, category, amount, status=ExpenseStatus.PENDING, created_at=None, title="Taxi"):
        expense = Expense(
            title=title,
            amount=amount,
            currency="EUR",
            status=status,
            submitted_by_id=user.id,
            category_id=category.id,
            created_at=created_at or datetime.utcnow(),
        )
        db.add(expense)
        db.commit()
        return expense
    return _make_expense


@pytest.fixture
def employee(make_user):
    return make_user("Erin Employee", "erin@example.com", roles=["EMPLOYEE"])


@pytest.fixture
def admin(make_user):
    return make_user("Ada Admin", "ada@example.com", roles=["ADMIN"])


@pytest.fixture
def accountant(make_user):
    return make_user("Carl Counter", "carl@example.com", roles=["ACCOUNTING"])
