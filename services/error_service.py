# services/error_service.py
"""
Centralized error handling helper used by the conversation engines.

- Persistence failures and code-generation exhaustion are logged with context
- The chat's conversation is closed so nobody is stuck in a broken dialogue
- The chat gets a generic failure message with its main menu

Anything else propagates to the dispatcher's ExceptionMiddleware.
"""

import functools
import logging

from core.constants import t
from core.errors import GenerationExhausted, PersistenceError

logger = logging.getLogger("refbot.error_service")

CAPTURED = (PersistenceError, GenerationExhausted)


def with_error_capture(source: str):
    """
    Decorator for engine methods shaped `async def m(self, inbound, ...)`.
    Example:
        @with_error_capture("user.withdraw")
        async def _on_withdrawal_amount(self, inbound, conversation): ...
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(engine, inbound, *args, **kwargs):
            try:
                return await func(engine, inbound, *args, **kwargs)
            except CAPTURED as e:
                logger.error("%s failed for chat %s: %s", source, inbound.chat_id, e)
                engine.store.close(inbound.chat_id)
                await engine.reply(inbound.chat_id, t("error_generic"), reply_markup=engine.menu_markup())
                return None
        return wrapper
    return decorator
