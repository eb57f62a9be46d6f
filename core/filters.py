# core/filters.py
"""
Message classification for the routers:
- IsAdmin: the message comes from the configured admin chat
- HasConversation: the chat has an open dialogue in the conversation store

Both read their dependencies (admin_id, conversation_store) from the
dispatcher's workflow data.
"""

from aiogram.filters import BaseFilter
from aiogram.types import Message

from core.conversation import ConversationStore


class IsAdmin(BaseFilter):
    async def __call__(self, message: Message, admin_id: int) -> bool:
        return message.chat.id == admin_id


class HasConversation(BaseFilter):
    async def __call__(self, message: Message, conversation_store: ConversationStore) -> bool:
        return message.chat.id in conversation_store
