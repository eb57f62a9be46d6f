# models/user_model.py
"""
User models:
- UserPydantic: service-layer view of a registered user
- UserORM: SQLAlchemy mapping for the users table
"""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from pydantic import BaseModel, ConfigDict

from .base import Base, utc_now


class UserPydantic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    telegram_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    referral_code: str
    balance: int = 0
    payment_method: Optional[str] = None
    payment_account_name: Optional[str] = None
    payment_account_number: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def has_payment_method(self) -> bool:
        return bool(self.payment_method and self.payment_account_number)

    @property
    def display_name(self) -> str:
        return self.first_name or (f"@{self.username}" if self.username else str(self.telegram_id))


class UserORM(Base):
    __tablename__ = "users"

    id = sa.Column(sa.Integer, primary_key=True, autoincrement=True)
    telegram_id = sa.Column(sa.BigInteger, unique=True, index=True, nullable=False)
    first_name = sa.Column(sa.String(128), nullable=True)
    last_name = sa.Column(sa.String(128), nullable=True)
    username = sa.Column(sa.String(64), nullable=True)
    referral_code = sa.Column(sa.String(16), unique=True, index=True, nullable=False)
    balance = sa.Column(sa.Integer, default=0, nullable=False)
    payment_method = sa.Column(sa.String(64), nullable=True)
    payment_account_name = sa.Column(sa.String(128), nullable=True)
    payment_account_number = sa.Column(sa.String(64), nullable=True)
    created_at = sa.Column(sa.DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        sa.CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),
    )

    def to_pydantic(self) -> UserPydantic:
        return UserPydantic.model_validate(self)
