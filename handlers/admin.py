# handlers/admin.py
import logging

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from core.constants import BTN_CANCEL, BTN_NEW_REFERRAL, BTN_PAYOUT, BTN_UPDATE_STATUS, BTN_VIEW_REFERRALS, BTN_VIEW_USERS
from core.conversation import Inbound
from core.filters import HasConversation, IsAdmin
from services.admin_engine import AdminEngine

logger = logging.getLogger("refbot.handlers.admin")
router = Router(name="admin")
router.message.filter(IsAdmin())


@router.message(CommandStart())
async def cmd_start(message: Message, admin_engine: AdminEngine):
    await admin_engine.welcome(Inbound.from_message(message))


@router.message(Command("cancel"))
@router.message(F.text == BTN_CANCEL)
async def on_cancel(message: Message, admin_engine: AdminEngine):
    await admin_engine.cancel(Inbound.from_message(message))


@router.message(HasConversation())
async def on_conversation_step(message: Message, admin_engine: AdminEngine):
    await admin_engine.handle(Inbound.from_message(message))


@router.message(F.text == BTN_NEW_REFERRAL)
async def on_new_referral(message: Message, admin_engine: AdminEngine):
    await admin_engine.begin_new_referral(Inbound.from_message(message))


@router.message(F.text == BTN_VIEW_REFERRALS)
async def on_view_referrals(message: Message, admin_engine: AdminEngine):
    await admin_engine.list_referrals(Inbound.from_message(message))


@router.message(F.text == BTN_VIEW_USERS)
async def on_view_users(message: Message, admin_engine: AdminEngine):
    await admin_engine.list_users(Inbound.from_message(message))


@router.message(F.text == BTN_UPDATE_STATUS)
async def on_update_status(message: Message, admin_engine: AdminEngine):
    await admin_engine.begin_status_update(Inbound.from_message(message))


@router.message(F.text == BTN_PAYOUT)
async def on_payout(message: Message, admin_engine: AdminEngine):
    await admin_engine.begin_payout(Inbound.from_message(message))


def register(dp):
    dp.include_router(router)
