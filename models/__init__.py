"""
Export commonly used models for easy import.
Usage:
    from models import UserPydantic, ReferralPydantic, WithdrawalPydantic
"""

from .base import Base, ReferralStatus, WithdrawalStatus, utc_now
from .user_model import UserPydantic, UserORM
from .referral_model import ReferralPydantic, ReferralORM
from .withdrawal_model import WithdrawalPydantic, WithdrawalORM

__all__ = [
    "Base", "ReferralStatus", "WithdrawalStatus", "utc_now",
    "UserPydantic", "UserORM",
    "ReferralPydantic", "ReferralORM",
    "WithdrawalPydantic", "WithdrawalORM",
]
