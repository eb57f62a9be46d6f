# models/base.py
"""Shared declarative base and enums for all tables."""

import enum
from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReferralStatus(str, enum.Enum):
    PENDING = "Pending"
    DONE = "Done"
    REJECTED = "Rejected"


class WithdrawalStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
