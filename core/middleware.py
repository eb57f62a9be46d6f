# core/middleware.py
"""
Dispatcher middlewares.

- ExceptionMiddleware: catches anything a handler lets escape, logs it,
  tells the chat something went wrong and pings the admin (best-effort).

The conversation engines clean up their own state before an exception
reaches this point.
"""

from typing import Any, Callable
import logging

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message

from core.constants import t

logger = logging.getLogger("refbot.middleware")


class ExceptionMiddleware(BaseMiddleware):
    async def __call__(self, handler: Callable, event: Any, data: dict):
        try:
            return await handler(event, data)
        except Exception as e:
            logger.exception("Unhandled exception in handler: %s", e)

            bot = data.get("bot")
            admin_id = data.get("admin_id")
            user = getattr(event, "from_user", None)
            if bot and admin_id and (user is None or user.id != admin_id):
                try:
                    await bot.send_message(admin_id, f"⚠️ Exception in handler\nUser: {user.id if user else 'n/a'}\nError: {e!r}"[:4096], parse_mode=None)
                except Exception:
                    logger.debug("Failed to notify admin about exception.")

            try:
                if isinstance(event, CallbackQuery):
                    await event.answer(t("error_generic"), show_alert=False)
                elif isinstance(event, Message):
                    await event.answer(t("error_generic"))
            except Exception:
                logger.debug("Failed sending error message to user after exception.")
            return None


def register_middlewares(dp):
    """
    Call this from bot startup to attach middlewares to the dispatcher.
    """
    exception_middleware = ExceptionMiddleware()
    dp.message.middleware(exception_middleware)
    dp.callback_query.middleware(exception_middleware)
