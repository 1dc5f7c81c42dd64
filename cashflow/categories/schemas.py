from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime

from cashflow.users.schemas import UserBrief


# ================= CREATE / UPDATE =================
class CategoryWrite(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    employee_ids: List[int] = []

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Category name must not be blank")
        return v


# ================= RESPONSE =================
class CategorySimple(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class CategoryOut(CategorySimple):
    created_at: Optional[datetime] = None
    employees: List[UserBrief] = []
