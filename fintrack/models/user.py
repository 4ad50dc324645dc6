"""
User model, mirrored from the external identity provider.
"""
from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from fintrack.database import Base, utcnow


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    clerk_user_id = Column(String, nullable=False, unique=True, index=True)  # identity provider id
    email = Column(String, nullable=False, unique=True)
    name = Column(String)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    accounts = relationship("AccountModel", back_populates="user", cascade="all, delete-orphan")
    transactions = relationship("TransactionModel", back_populates="user", cascade="all, delete-orphan")
    budget = relationship("BudgetModel", back_populates="user", uselist=False, cascade="all, delete-orphan")
