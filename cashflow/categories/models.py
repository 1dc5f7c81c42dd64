from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from cashflow.database import Base


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    category_employees = relationship(
        "CategoryEmployee",
        back_populates="category",
        cascade="all, delete-orphan"
    )
    expenses = relationship("Expense", back_populates="category")


class CategoryEmployee(Base):
    __tablename__ = "category_employees"
    __table_args__ = (UniqueConstraint("category_id", "user_id", name="uq_category_employee"),)

    id = Column(Integer, primary_key=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    category = relationship("Category", back_populates="category_employees")
    user = relationship("User", back_populates="category_links")
