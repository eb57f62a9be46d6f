from enum import Enum

import pytest

from core.conversation import ConversationEngine, ConversationStore
from core.errors import ConversationBusy
from services.admin_engine import AdminEngine, AdminStep
from services.user_engine import UserEngine, UserStep

from conftest import inbound


class Step(str, Enum):
    ONE = "one"
    TWO = "two"


def test_store_open_advance_close():
    store = ConversationStore()
    conv = store.open(1, Step.ONE, a=1)
    assert 1 in store and len(store) == 1
    assert conv.step is Step.ONE and conv.data == {"a": 1}

    store.advance(1, Step.TWO, b=2)
    assert store.get(1).step is Step.TWO
    assert store.get(1).data == {"a": 1, "b": 2}

    closed = store.close(1)
    assert closed is conv
    assert store.get(1) is None
    assert store.close(1) is None
    assert len(store) == 0


def test_store_refuses_second_open():
    store = ConversationStore()
    store.open(1, Step.ONE)
    with pytest.raises(ConversationBusy):
        store.open(1, Step.TWO)
    assert store.get(1).step is Step.ONE
    # other chats are independent
    store.open(2, Step.TWO)
    assert len(store) == 2


def test_engines_handle_every_step():
    assert UserEngine.unhandled_steps() == []
    assert AdminEngine.unhandled_steps() == []
    assert set(UserEngine.step_handlers) == set(UserStep)
    assert set(AdminEngine.step_handlers) == set(AdminStep)


def test_engine_missing_handler_is_rejected_at_class_creation():
    with pytest.raises(TypeError, match="two"):
        class Broken(ConversationEngine):
            steps = Step
            step_handlers = {Step.ONE: "_on_one"}

            async def _on_one(self, inbound, conversation):
                pass


class Echo(ConversationEngine):
    steps = Step
    step_handlers = {Step.ONE: "_on_one", Step.TWO: "_on_two"}

    async def _on_one(self, inbound, conversation):
        self.store.advance(inbound.chat_id, Step.TWO, first=inbound.text)
        await self.reply(inbound.chat_id, "next")

    async def _on_two(self, inbound, conversation):
        raise RuntimeError("boom")


async def test_handle_routes_by_step(bot, store):
    engine = Echo(bot, store)
    assert await engine.handle(inbound(5, "hi")) is False

    store.open(5, Step.ONE)
    assert await engine.handle(inbound(5, "hi")) is True
    assert store.get(5).step is Step.TWO
    assert store.get(5).data["first"] == "hi"
    assert bot.last_text(5) == "next"


async def test_handle_closes_conversation_on_unexpected_error(bot, store):
    engine = Echo(bot, store)
    store.open(5, Step.TWO)
    with pytest.raises(RuntimeError):
        await engine.handle(inbound(5, "x"))
    assert 5 not in store


async def test_engine_ignores_foreign_steps(bot, store, user_engine):
    store.open(5, AdminStep.AWAITING_REFERRAL_CODE)
    assert await user_engine.handle(inbound(5, "AB-123")) is False
    assert store.get(5).step is AdminStep.AWAITING_REFERRAL_CODE
