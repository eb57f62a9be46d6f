# models/withdrawal_model.py
"""
Withdrawal models:
- WithdrawalPydantic: a user-initiated debit waiting for a manual payout
- WithdrawalORM: SQLAlchemy mapping for withdrawal_requests
"""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from pydantic import BaseModel, ConfigDict

from .base import Base, WithdrawalStatus, utc_now
from .user_model import UserPydantic


class WithdrawalPydantic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    amount: int
    status: WithdrawalStatus = WithdrawalStatus.PENDING
    requested_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    proof_file_id: Optional[str] = None
    user: Optional[UserPydantic] = None


class WithdrawalORM(Base):
    __tablename__ = "withdrawal_requests"

    id = sa.Column(sa.Integer, primary_key=True, autoincrement=True)
    user_id = sa.Column(sa.Integer, sa.ForeignKey("users.id"), index=True, nullable=False)
    amount = sa.Column(sa.Integer, nullable=False)
    status = sa.Column(sa.String(16), default=WithdrawalStatus.PENDING.value, index=True, nullable=False)
    requested_at = sa.Column(sa.DateTime(timezone=True), nullable=False, default=utc_now)
    processed_at = sa.Column(sa.DateTime(timezone=True), nullable=True)
    proof_file_id = sa.Column(sa.String(256), nullable=True)

    __table_args__ = (
        sa.CheckConstraint("amount > 0", name="ck_withdrawal_amount_positive"),
    )

    def to_pydantic(self, user: Optional[UserPydantic] = None) -> WithdrawalPydantic:
        return WithdrawalPydantic(
            id=self.id,
            user_id=self.user_id,
            amount=self.amount,
            status=WithdrawalStatus(self.status),
            requested_at=self.requested_at,
            processed_at=self.processed_at,
            proof_file_id=self.proof_file_id,
            user=user,
        )
