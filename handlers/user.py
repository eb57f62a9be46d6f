# handlers/user.py
import logging

from aiogram import F, Router
from aiogram.enums import ChatType
from aiogram.filters import Command, CommandStart
from aiogram.types import CallbackQuery, Message

from core.constants import BTN_CANCEL, BTN_HOW_IT_WORKS, BTN_MY_ACCOUNT, BTN_UPDATE, BTN_WITHDRAW, CB_ADD_PAYMENT_METHOD
from core.conversation import Inbound
from core.filters import HasConversation, IsAdmin
from services.user_engine import UserEngine

logger = logging.getLogger("refbot.handlers.user")
router = Router(name="user")
# conversations are keyed by chat, so only private chats may drive them
router.message.filter(~IsAdmin(), F.chat.type == ChatType.PRIVATE)
router.callback_query.filter(F.message.chat.type == ChatType.PRIVATE)


@router.message(CommandStart())
async def cmd_start(message: Message, user_engine: UserEngine):
    await user_engine.start(Inbound.from_message(message))


@router.message(Command("cancel"))
@router.message(F.text == BTN_CANCEL)
async def on_cancel(message: Message, user_engine: UserEngine):
    await user_engine.cancel(Inbound.from_message(message))


@router.message(HasConversation())
async def on_conversation_step(message: Message, user_engine: UserEngine):
    await user_engine.handle(Inbound.from_message(message))


@router.message(F.text == BTN_MY_ACCOUNT)
async def on_my_account(message: Message, user_engine: UserEngine):
    await user_engine.show_account(Inbound.from_message(message))


@router.message(F.text == BTN_HOW_IT_WORKS)
async def on_how_it_works(message: Message, user_engine: UserEngine):
    await user_engine.how_it_works(Inbound.from_message(message))


@router.message(F.text == BTN_UPDATE)
async def on_update(message: Message, user_engine: UserEngine):
    await user_engine.refresh_profile(Inbound.from_message(message))


@router.message(F.text == BTN_WITHDRAW)
async def on_withdraw(message: Message, user_engine: UserEngine):
    await user_engine.begin_withdrawal(Inbound.from_message(message))


@router.callback_query(F.data == CB_ADD_PAYMENT_METHOD)
async def cb_add_payment_method(callback: CallbackQuery, user_engine: UserEngine):
    await callback.answer()
    await user_engine.begin_payment_method(Inbound.from_callback(callback))


def register(dp):
    dp.include_router(router)
