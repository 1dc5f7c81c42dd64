from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


# -------- USERS --------
class AdminUserCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role_ids: List[int] = Field(..., min_length=1)
    manager_id: Optional[int] = None


class AdminUserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    manager_id: Optional[int] = None
    managed_user_ids: Optional[List[int]] = None


class RoleAssignment(BaseModel):
    role_ids: List[Optional[int]]


# -------- ROLES --------
class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class RoleOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True
