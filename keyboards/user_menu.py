# keyboards/user_menu.py
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup, KeyboardButton, ReplyKeyboardMarkup

from core.constants import (
    BTN_CANCEL,
    BTN_HOW_IT_WORKS,
    BTN_MY_ACCOUNT,
    BTN_UPDATE,
    BTN_WITHDRAW,
    CB_ADD_PAYMENT_METHOD,
    PAYMENT_METHODS,
)


def user_menu_kb():
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=BTN_MY_ACCOUNT), KeyboardButton(text=BTN_UPDATE)],
            [KeyboardButton(text=BTN_HOW_IT_WORKS), KeyboardButton(text=BTN_WITHDRAW)],
        ],
        resize_keyboard=True,
    )


def account_inline_kb():
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="💳 Add Payment Method", callback_data=CB_ADD_PAYMENT_METHOD)],
    ])


def payment_method_kb():
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=code) for code in PAYMENT_METHODS],
            [KeyboardButton(text=BTN_CANCEL)],
        ],
        resize_keyboard=True,
        one_time_keyboard=True,
    )
