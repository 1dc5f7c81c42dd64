from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


# -------- AUTH --------
class LoginSchema(BaseModel):
    email: EmailStr
    password: str


class RegisterSchema(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class ForgotPasswordSchema(BaseModel):
    email: Optional[str] = None


class ResetPasswordSchema(BaseModel):
    token: Optional[str] = None
    password: Optional[str] = None


# -------- USERS --------
class CurrentUser(BaseModel):
    id: int
    name: str
    email: str
    manager_id: Optional[int] = None
    roles: List[str] = []

    @field_validator("roles", mode="before")
    @classmethod
    def ensure_roles_list(cls, v):
        # None -> [], "a,b" -> ["a","b"], list -> stripped strings
        if v is None:
            return []
        if isinstance(v, str):
            return [r.strip() for r in v.split(",") if r.strip()]
        return [str(x).strip() for x in v if str(x).strip()]


class UserDisplaySchema(BaseModel):
    id: int
    name: str
    email: str
    enabled: bool
    manager_id: Optional[int] = None
    roles: List[str] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserBrief(BaseModel):
    id: int
    name: str
    email: Optional[str] = None

    class Config:
        from_attributes = True
