# services/notification_service.py
"""
Best-effort notifications.

Group announcements and messages to third-party chats (referrers, requesters,
the admin) must never break the flow that triggered them: every failure is
logged and reported as False.
"""

import logging
from typing import Optional

logger = logging.getLogger("refbot.notifications")


class Notifier:
    def __init__(self, bot, group_id: Optional[int]):
        self.bot = bot
        self.group_id = group_id

    async def notify_chat(self, chat_id: int, text: str, reply_markup=None) -> bool:
        try:
            await self.bot.send_message(chat_id, text, reply_markup=reply_markup)
            return True
        except Exception as e:
            logger.warning("Failed to notify chat %s: %s", chat_id, e)
            return False

    async def send_chat_photo(self, chat_id: int, photo: str, caption: str) -> bool:
        try:
            await self.bot.send_photo(chat_id, photo, caption=caption)
            return True
        except Exception as e:
            logger.warning("Failed to send photo to chat %s: %s", chat_id, e)
            return False

    async def notify_group(self, text: str) -> bool:
        if self.group_id is None:
            logger.debug("No group configured; skipping group notification.")
            return False
        try:
            await self.bot.send_message(self.group_id, text)
            return True
        except Exception as e:
            logger.error("Failed to send group notification: %s", e)
            return False

    async def notify_group_photo(self, photo: str, caption: str) -> bool:
        if self.group_id is None:
            logger.debug("No group configured; skipping group photo notification.")
            return False
        try:
            await self.bot.send_photo(self.group_id, photo, caption=caption)
            return True
        except Exception as e:
            logger.error("Failed to send group photo notification: %s", e)
            return False
