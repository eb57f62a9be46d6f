from .common import cancel_kb
from .user_menu import account_inline_kb, payment_method_kb, user_menu_kb
from .admin_menu import admin_menu_kb, status_choice_kb

__all__ = [
    "cancel_kb",
    "user_menu_kb",
    "account_inline_kb",
    "payment_method_kb",
    "admin_menu_kb",
    "status_choice_kb",
]
