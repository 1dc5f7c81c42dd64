import enum
from datetime import datetime

from sqlalchemy import Column, Integer, Float, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship

from cashflow.database import Base


class ExpenseStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class BillingType(str, enum.Enum):
    INTERNAL = "INTERNAL"
    CLIENT = "CLIENT"


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(String, nullable=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")

    status = Column(
        Enum(ExpenseStatus, native_enum=False, length=20),
        nullable=False,
        default=ExpenseStatus.PENDING,
        index=True
    )
    billing_type = Column(
        Enum(BillingType, native_enum=False, length=20),
        nullable=False,
        default=BillingType.INTERNAL
    )

    submitted_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)

    reviewed_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    submitted_by = relationship(
        "User",
        back_populates="expenses",
        foreign_keys=[submitted_by_id]
    )
    reviewed_by = relationship("User", foreign_keys=[reviewed_by_id])
    category = relationship("Category", back_populates="expenses")

    attachments = relationship(
        "Attachment",
        back_populates="expense",
        cascade="all, delete-orphan",
        passive_deletes=True
    )


class Attachment(Base):
    __tablename__ = "attachments"

    id = Column(Integer, primary_key=True, index=True)
    filename = Column(String(255), nullable=False)
    url = Column(String(500), nullable=False)
    file_size = Column(Integer, default=0)
    file_type = Column(String(100), nullable=True)
    expense_id = Column(Integer, ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    expense = relationship("Expense", back_populates="attachments")


class UploadToken(Base):
    __tablename__ = "upload_tokens"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), index=True, nullable=False)
    token = Column(String(128), unique=True, index=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
