# keyboards/common.py
from aiogram.types import KeyboardButton, ReplyKeyboardMarkup

from core.constants import BTN_CANCEL


def cancel_kb():
    return ReplyKeyboardMarkup(
        keyboard=[[KeyboardButton(text=BTN_CANCEL)]],
        resize_keyboard=True,
        one_time_keyboard=True,
    )
