# core/conversation.py
"""
Conversation state for multi-step dialogues.

- ConversationStore: chat id -> Conversation(step, data); one open dialogue per chat
- Inbound: transport-neutral view of one incoming message or callback
- ConversationEngine: base for the user and admin engines. Subclasses declare
  a Step enum and a step -> handler-name table; a missing entry is a TypeError
  at class creation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Type
import logging

from aiogram import types

from core.errors import ConversationBusy

logger = logging.getLogger("refbot.conversation")


@dataclass
class Conversation:
    step: Enum
    data: Dict[str, Any] = field(default_factory=dict)


class ConversationStore:
    """
    In-memory, process-wide. Process restart is the only implicit timeout.
    """

    def __init__(self):
        self._items: Dict[int, Conversation] = {}

    def get(self, chat_id: int) -> Optional[Conversation]:
        return self._items.get(chat_id)

    def open(self, chat_id: int, step: Enum, **data) -> Conversation:
        if chat_id in self._items:
            raise ConversationBusy(f"Chat {chat_id} already has an open conversation")
        conversation = Conversation(step=step, data=dict(data))
        self._items[chat_id] = conversation
        logger.debug("Conversation opened for %s at %s", chat_id, step.value)
        return conversation

    def advance(self, chat_id: int, step: Enum, **data) -> Conversation:
        conversation = self._items[chat_id]
        conversation.step = step
        conversation.data.update(data)
        logger.debug("Conversation for %s advanced to %s", chat_id, step.value)
        return conversation

    def close(self, chat_id: int) -> Optional[Conversation]:
        conversation = self._items.pop(chat_id, None)
        if conversation is not None:
            logger.debug("Conversation for %s closed at %s", chat_id, conversation.step.value)
        return conversation

    def __contains__(self, chat_id: int) -> bool:
        return chat_id in self._items

    def __len__(self) -> int:
        return len(self._items)


@dataclass
class Inbound:
    chat_id: int
    user: Optional[types.User] = None
    text: Optional[str] = None
    photo: Optional[str] = None  # file_id of the largest size

    @property
    def sender_id(self) -> Optional[int]:
        return self.user.id if self.user else None

    @property
    def clean_text(self) -> str:
        return (self.text or "").strip()

    @classmethod
    def from_message(cls, message: types.Message) -> "Inbound":
        return cls(
            chat_id=message.chat.id,
            user=message.from_user,
            text=message.text,
            photo=message.photo[-1].file_id if message.photo else None,
        )

    @classmethod
    def from_callback(cls, callback: types.CallbackQuery) -> "Inbound":
        return cls(chat_id=callback.message.chat.id, user=callback.from_user)


class ConversationEngine:
    steps: Type[Enum] = None
    step_handlers: Dict[Enum, str] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        missing = cls.unhandled_steps()
        if missing:
            raise TypeError(f"{cls.__name__} has no handler for steps: {', '.join(s.value for s in missing)}")

    @classmethod
    def unhandled_steps(cls):
        if cls.steps is None:
            return []
        return [s for s in cls.steps if not hasattr(cls, cls.step_handlers.get(s, "-"))]

    def __init__(self, bot, store: ConversationStore):
        self.bot = bot
        self.store = store

    async def reply(self, chat_id: int, text: str, reply_markup=None):
        await self.bot.send_message(chat_id, text, reply_markup=reply_markup)

    def owns(self, conversation: Optional[Conversation]) -> bool:
        return conversation is not None and conversation.step in self.step_handlers

    async def handle(self, inbound: Inbound) -> bool:
        """
        Route a message to the handler of the chat's current step.
        Returns False when the chat has no conversation owned by this engine.
        """
        conversation = self.store.get(inbound.chat_id)
        if not self.owns(conversation):
            return False
        handler = getattr(self, self.step_handlers[conversation.step])
        try:
            await handler(inbound, conversation)
        except Exception:
            self.store.close(inbound.chat_id)
            raise
        return True
