import asyncio
import logging
from typing import Optional

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.client.session.aiohttp import AiohttpSession
from aiogram.enums import ParseMode
from aiogram.types import BotCommand

import config
import handlers
from core import database
from core.conversation import ConversationStore
from core.middleware import register_middlewares
from logging_config import setup_logging
from services.admin_engine import AdminEngine
from services.notification_service import Notifier
from services.referral_codes import ReferralCodeGenerator
from services.user_engine import UserEngine

logger = logging.getLogger("refbot")


async def set_default_commands(b: Bot):
    commands = [
        BotCommand(command="start", description="Join the referral program / show your code"),
        BotCommand(command="cancel", description="Cancel the current action"),
    ]
    try:
        await b.set_my_commands(commands)
        logger.debug("Default commands set.")
    except Exception as e:
        logger.warning("Failed to set default commands: %s", e)


def build_bot() -> Bot:
    session: Optional[AiohttpSession] = None
    if config.USE_PROXY:
        session = AiohttpSession(proxy=config.PROXY_URL)
        logger.info("Using proxy %s", config.PROXY_URL)
    return Bot(
        token=config.BOT_TOKEN,
        session=session,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )


def build_dispatcher(bot: Bot, gateway: database.Gateway) -> Dispatcher:
    """
    Wire engines, store and notifier into the dispatcher's workflow data so
    handlers and filters receive them as keyword arguments.
    """
    store = ConversationStore()
    notifier = Notifier(bot, config.TELEGRAM_GROUP_ID)
    code_generator = ReferralCodeGenerator(
        gateway.referral_code_exists, max_attempts=config.REFERRAL_CODE_MAX_ATTEMPTS
    )
    user_engine = UserEngine(
        bot,
        store,
        gateway,
        notifier,
        code_generator,
        admin_id=config.ADMIN_TELEGRAM_ID,
        min_withdrawal=config.MIN_WITHDRAWAL_AMOUNT,
        currency=config.CURRENCY,
        support_contact=config.SUPPORT_CONTACT,
    )
    admin_engine = AdminEngine(
        bot,
        store,
        gateway,
        notifier,
        currency=config.CURRENCY,
        support_contact=config.SUPPORT_CONTACT,
    )

    dp = Dispatcher(
        conversation_store=store,
        user_engine=user_engine,
        admin_engine=admin_engine,
        admin_id=config.ADMIN_TELEGRAM_ID,
    )
    register_middlewares(dp)
    handlers.register_all(dp)
    return dp


async def on_startup(bot: Bot):
    try:
        await set_default_commands(bot)
    except Exception:
        logger.exception("Failed to set default commands.")

    try:
        await bot.send_message(config.ADMIN_TELEGRAM_ID, "Referral bot started ✅")
    except Exception:
        logger.debug("Could not notify admin on startup (it's optional).")


async def start_polling():
    """
    Connect the database, build the dispatcher and poll until stopped.
    """
    logger.info("Starting referral bot...")
    await database.connect(
        config.DATABASE_URL, retries=config.DB_CONNECT_RETRIES, retry_delay=config.DB_CONNECT_RETRY_DELAY
    )
    await database.create_tables()
    gateway = database.Gateway(database.get_session_factory())

    bot = build_bot()
    dp = build_dispatcher(bot, gateway)
    dp.startup.register(on_startup)

    logger.info("Starting polling...")
    try:
        await dp.start_polling(bot)
    finally:
        logger.info("Shutting down referral bot...")
        await database.disconnect()
        await bot.session.close()


def main():
    setup_logging(config.LOG_LEVEL, config.LOG_DIR, config.SENTRY_DSN)
    try:
        asyncio.run(start_polling())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (KeyboardInterrupt).")


if __name__ == "__main__":
    main()
