# models/referral_model.py
"""
Referral models:
- ReferralPydantic: a customer lead attributed to a referrer
- ReferralORM: SQLAlchemy mapping
"""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from pydantic import BaseModel, ConfigDict

from .base import Base, ReferralStatus, utc_now


class ReferralPydantic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    referrer_id: int
    new_customer_name: Optional[str] = None
    new_customer_phone: Optional[str] = None
    status: ReferralStatus = ReferralStatus.PENDING
    reward_amount: Optional[int] = None
    created_at: Optional[datetime] = None
    # filled by listing queries that join the referrer
    referrer_name: Optional[str] = None


class ReferralORM(Base):
    __tablename__ = "referrals"

    id = sa.Column(sa.Integer, primary_key=True, autoincrement=True)
    referrer_id = sa.Column(sa.Integer, sa.ForeignKey("users.id"), index=True, nullable=False)
    new_customer_name = sa.Column(sa.String(128), nullable=True)
    new_customer_phone = sa.Column(sa.String(32), nullable=True)
    status = sa.Column(sa.String(16), default=ReferralStatus.PENDING.value, index=True, nullable=False)
    reward_amount = sa.Column(sa.Integer, nullable=True)
    created_at = sa.Column(sa.DateTime(timezone=True), nullable=False, default=utc_now)

    def to_pydantic(self, referrer_name: Optional[str] = None) -> ReferralPydantic:
        return ReferralPydantic(
            id=self.id,
            referrer_id=self.referrer_id,
            new_customer_name=self.new_customer_name,
            new_customer_phone=self.new_customer_phone,
            status=ReferralStatus(self.status),
            reward_amount=self.reward_amount,
            created_at=self.created_at,
            referrer_name=referrer_name,
        )
