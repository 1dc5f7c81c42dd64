from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: Optional[str] = None
    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: str = "5432"
    DATABASE_USER: str = "postgres"
    DATABASE_PASSWORD: str = "postgres"
    DATABASE_NAME: str = "cashflow_db"

    # Session cookie
    SECRET_KEY: str = "supersecretkey_change_this"
    SESSION_COOKIE: str = "cashflow_session"
    SESSION_MAX_AGE: int = 60 * 60 * 24 * 7

    # Files
    UPLOAD_DIR: str = "public/uploads"
    MAX_UPLOAD_SIZE_MB: int = 10
    UPLOAD_TOKEN_EXPIRE_MINUTES: int = 15
    RESET_TOKEN_EXPIRE_MINUTES: int = 60

    # Invoice extraction
    AZURE_OPENAI_ENDPOINT: Optional[str] = None
    AZURE_OPENAI_API_KEY: Optional[str] = None
    AZURE_OPENAI_DEPLOYMENT: Optional[str] = None
    AZURE_OPENAI_API_VERSION: str = "2024-06-01"

    # Mail
    EMAIL_SERVER_HOST: Optional[str] = None
    EMAIL_SERVER_PORT: int = 587
    EMAIL_SERVER_USER: Optional[str] = None
    EMAIL_SERVER_PASSWORD: Optional[str] = None
    EMAIL_FROM: str = "noreply@cashflow.local"
    APP_URL: str = "http://localhost:3000"

    DEFAULT_CATEGORY: str = "Other"

    LOG_FILE: str = "app.log"
    LOG_LEVEL: str = "DEBUG"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}"
            f"@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"
        )


settings = Settings()
