# keyboards/admin_menu.py
from aiogram.types import KeyboardButton, ReplyKeyboardMarkup

from core.constants import (
    BTN_CANCEL,
    BTN_NEW_REFERRAL,
    BTN_PAYOUT,
    BTN_UPDATE_STATUS,
    BTN_VIEW_REFERRALS,
    BTN_VIEW_USERS,
)
from models import ReferralStatus


def admin_menu_kb():
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=BTN_NEW_REFERRAL)],
            [KeyboardButton(text=BTN_VIEW_REFERRALS), KeyboardButton(text=BTN_UPDATE_STATUS)],
            [KeyboardButton(text=BTN_PAYOUT), KeyboardButton(text=BTN_VIEW_USERS)],
        ],
        resize_keyboard=True,
    )


def status_choice_kb():
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=ReferralStatus.DONE.value), KeyboardButton(text=ReferralStatus.REJECTED.value)],
            [KeyboardButton(text=ReferralStatus.PENDING.value)],
            [KeyboardButton(text=BTN_CANCEL)],
        ],
        resize_keyboard=True,
        one_time_keyboard=True,
    )
