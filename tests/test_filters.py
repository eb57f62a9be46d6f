from datetime import datetime

from aiogram import types

from core.conversation import ConversationStore, Inbound
from core.filters import HasConversation, IsAdmin
from keyboards import admin_menu_kb, payment_method_kb, status_choice_kb, user_menu_kb
from services.user_engine import UserStep

from conftest import ADMIN_ID, tg_user


def make_message(chat_id, text=None, photo=None):
    return types.Message(
        message_id=1,
        date=datetime(2024, 1, 1),
        chat=types.Chat(id=chat_id, type="private"),
        from_user=tg_user(chat_id),
        text=text,
        photo=photo,
    )


def photo_size(file_id, width):
    return types.PhotoSize(file_id=file_id, file_unique_id=f"u-{file_id}", width=width, height=width)


def test_inbound_from_text_message():
    inbound = Inbound.from_message(make_message(42, " hello "))
    assert inbound.chat_id == 42 and inbound.sender_id == 42
    assert inbound.clean_text == "hello"
    assert inbound.photo is None


def test_inbound_takes_largest_photo():
    message = make_message(42, photo=[photo_size("small", 90), photo_size("large", 1280)])
    inbound = Inbound.from_message(message)
    assert inbound.photo == "large"
    assert inbound.clean_text == ""


async def test_is_admin():
    assert await IsAdmin()(make_message(ADMIN_ID, "hi"), admin_id=ADMIN_ID) is True
    assert await IsAdmin()(make_message(42, "hi"), admin_id=ADMIN_ID) is False


async def test_has_conversation():
    store = ConversationStore()
    message = make_message(42, "hi")
    assert await HasConversation()(message, conversation_store=store) is False
    store.open(42, UserStep.WITHDRAWAL_AMOUNT)
    assert await HasConversation()(message, conversation_store=store) is True


def test_menus_carry_expected_buttons():
    def labels(markup):
        return [button.text for row in markup.keyboard for button in row]

    assert "👤 My Account" in labels(user_menu_kb())
    assert "💸 Payout" in labels(admin_menu_kb())
    assert {"Done", "Rejected", "Pending"} <= set(labels(status_choice_kb()))
    assert {"TE", "CB"} <= set(labels(payment_method_kb()))
