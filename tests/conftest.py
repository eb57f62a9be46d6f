import os

# config.py refuses to import without these
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:TEST-TOKEN")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ADMIN_TELEGRAM_ID", "1000")
os.environ.setdefault("TELEGRAM_GROUP_ID", "-2000")

import random
from datetime import datetime
from types import SimpleNamespace

import pytest
from aiogram import Bot, types
from sqlalchemy import update
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from core import database
from core.conversation import ConversationStore, Inbound
from models import UserORM, WithdrawalStatus
from services.admin_engine import AdminEngine
from services.notification_service import Notifier
from services.referral_codes import ReferralCodeGenerator
from services.user_engine import UserEngine

ADMIN_ID = 1000
GROUP_ID = -2000
MIN_WITHDRAWAL = 50


class FakeBot:
    """Records everything the engines send; chats in fail_chats raise."""

    def __init__(self):
        self.sent = []
        self.photos = []
        self.fail_chats = set()

    async def send_message(self, chat_id, text, reply_markup=None, **kwargs):
        if chat_id in self.fail_chats:
            raise RuntimeError(f"chat {chat_id} unreachable")
        self.sent.append(SimpleNamespace(chat_id=chat_id, text=text, reply_markup=reply_markup))

    async def send_photo(self, chat_id, photo, caption=None, **kwargs):
        if chat_id in self.fail_chats:
            raise RuntimeError(f"chat {chat_id} unreachable")
        self.photos.append(SimpleNamespace(chat_id=chat_id, photo=photo, caption=caption))

    def texts(self, chat_id):
        return [m.text for m in self.sent if m.chat_id == chat_id]

    def last_text(self, chat_id):
        texts = self.texts(chat_id)
        return texts[-1] if texts else None


def tg_user(telegram_id, first_name="Abebe", last_name="Kebede", username="abebe"):
    return types.User(id=telegram_id, is_bot=False, first_name=first_name, last_name=last_name, username=username)


def inbound(chat_id, text=None, photo=None, user=None):
    return Inbound(chat_id=chat_id, user=user or tg_user(chat_id), text=text, photo=photo)


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await database.create_tables(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def gateway(engine):
    return database.Gateway(async_sessionmaker(engine, expire_on_commit=False))


@pytest.fixture
def bot():
    return FakeBot()


@pytest.fixture
def store():
    return ConversationStore()


@pytest.fixture
def notifier(bot):
    return Notifier(bot, GROUP_ID)


@pytest.fixture
def user_engine(bot, store, gateway, notifier):
    generator = ReferralCodeGenerator(gateway.referral_code_exists, max_attempts=50, rng=random.Random(7))
    return UserEngine(bot, store, gateway, notifier, generator, admin_id=ADMIN_ID, min_withdrawal=MIN_WITHDRAWAL)


@pytest.fixture
def admin_engine(bot, store, gateway, notifier):
    return AdminEngine(bot, store, gateway, notifier)


@pytest.fixture
def make_user(gateway, engine):
    async def _make(telegram_id, code=None, first_name="Abebe", balance=0, payment=False, username="abebe"):
        user = await gateway.create_user(
            telegram_id=telegram_id,
            referral_code=code or f"TS-{telegram_id % 1000:03d}",
            first_name=first_name,
            username=username,
        )
        if payment:
            await gateway.set_payment_method(user.id, "Telebirr", first_name, "0911000000")
        if balance:
            async with engine.begin() as conn:
                await conn.execute(update(UserORM).where(UserORM.id == user.id).values(balance=balance))
        return await gateway.get_user_by_telegram_id(telegram_id)
    return _make


@pytest.fixture
def snapshot(gateway):
    """Everything persisted, in a comparable form."""
    async def _snapshot():
        users = [u.model_dump() for u in await gateway.list_users()]
        referrals = [r.model_dump() for r in await gateway.list_referrals()]
        withdrawals = [w.model_dump() for w in await gateway.list_withdrawals()]
        return users, referrals, withdrawals
    return _snapshot


@pytest.fixture
def pending_withdrawals(gateway):
    async def _pending():
        return await gateway.list_withdrawals(status=WithdrawalStatus.PENDING)
    return _pending


def text_update(chat_id, text, chat_type="private", sender_id=None, update_id=1):
    """A Telegram update carrying one text message, as the dispatcher receives it."""
    return types.Update(
        update_id=update_id,
        message=types.Message(
            message_id=update_id,
            date=datetime(2024, 1, 1),
            chat=types.Chat(id=chat_id, type=chat_type),
            from_user=tg_user(sender_id or chat_id),
            text=text,
        ),
    )


@pytest.fixture
async def tg_bot():
    b = Bot(token=os.environ["TELEGRAM_BOT_TOKEN"])
    yield b
    await b.session.close()


@pytest.fixture
def dispatcher(bot, gateway):
    """The production dispatcher, sending through the recording bot."""
    import bot as app
    import handlers

    dp = app.build_dispatcher(bot, gateway)
    yield dp
    # routers are module-level; release them for the next dispatcher
    for module in handlers.HANDLER_MODULES:
        module.router._parent_router = None
