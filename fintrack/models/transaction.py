"""
Transaction model.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship

from fintrack.database import Base, utcnow


class TransactionModel(Base):
    __tablename__ = "transactions"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    account_id = Column(String, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String, nullable=False)  # INCOME, EXPENSE
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    description = Column(Text)
    date = Column(DateTime, nullable=False, index=True)
    category = Column(String, nullable=False)
    receipt_url = Column(String)

    # Recurrence
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurring_interval = Column(String)  # DAILY, WEEKLY, MONTHLY, YEARLY
    next_recurring_date = Column(DateTime)
    last_processed = Column(DateTime)

    status = Column(String, nullable=False, default="COMPLETED")  # PENDING, COMPLETED, FAILED

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("UserModel", back_populates="transactions")
    account = relationship("AccountModel", back_populates="transactions")

    @property
    def signed_amount(self) -> float:
        """Signed effect of this transaction on its account balance."""
        return balance_change(self.type, self.amount)


def balance_change(type_: str, amount: float) -> float:
    return -float(amount) if type_ == "EXPENSE" else float(amount)
