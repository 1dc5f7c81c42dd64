import os
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from dotenv import load_dotenv
from loguru import logger

# Find .env before settings are read
POSSIBLE_ENV_PATHS = [
    Path(__file__).resolve().parent.parent / ".env",        # project root
    Path.cwd() / ".env",                                   # runtime cwd
]

for env_path in POSSIBLE_ENV_PATHS:
    if env_path.exists():
        load_dotenv(env_path, override=False)
        break
else:
    logger.warning(".env file not found, using environment and defaults")

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from starlette.middleware.sessions import SessionMiddleware  # noqa: E402

from cashflow.config import settings  # noqa: E402
from cashflow.database import engine, Base  # noqa: E402
from cashflow import models  # noqa: E402,F401
from cashflow.users.routers import router as auth_router, directory_router  # noqa: E402
from cashflow.admin.router import router as admin_router  # noqa: E402
from cashflow.categories.router import router as category_router, admin_router as admin_category_router  # noqa: E402
from cashflow.expenses.router import router as expenses_router  # noqa: E402
from cashflow.dashboard.router import router as dashboard_router  # noqa: E402
from cashflow.uploads.router import router as uploads_router  # noqa: E402
from cashflow.manage.router import router as manage_router  # noqa: E402
from cashflow.todos.router import router as todos_router  # noqa: E402


if settings.LOG_FILE:
    logger.add(settings.LOG_FILE, rotation="500 MB", level=settings.LOG_LEVEL)


# Database startup
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup")
    Base.metadata.create_all(bind=engine)
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    yield
    logger.info("Application shutdown")


# Create app
app = FastAPI(
    title="CASHFLOW TUESDAY",
    description="Expense claims, approvals, reporting and administration.",
    version="1.0.0",
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # For production, change to specific domains
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Signed session cookie
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY,
    session_cookie=settings.SESSION_COOKIE,
    max_age=settings.SESSION_MAX_AGE,
    same_site="lax",
)


# Routers
app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
app.include_router(directory_router, prefix="/api/users", tags=["Users"])
app.include_router(admin_router, prefix="/api/admin", tags=["Admin"])
app.include_router(admin_category_router, prefix="/api/admin/categories", tags=["Admin - Categories"])
app.include_router(category_router, prefix="/api/categories", tags=["Categories"])
app.include_router(expenses_router, prefix="/api/expenses", tags=["Expenses"])
app.include_router(dashboard_router, prefix="/api/dashboard", tags=["Dashboard"])
app.include_router(uploads_router, prefix="/api/uploads", tags=["Uploads"])
app.include_router(manage_router, prefix="/api/manage", tags=["Manage"])
app.include_router(todos_router, prefix="/api/todos", tags=["Todos"])


@app.get("/health")
def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run("cashflow.main:app", host=os.getenv("SERVER_IP", "127.0.0.1"), port=8000)
