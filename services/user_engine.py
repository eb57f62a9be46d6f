# services/user_engine.py
"""
End-user flows: registration, account view, profile refresh, payment method
setup and withdrawal requests.

Dialogues:
    payment_method_choice -> account_name -> payment_number -> (saved)
    withdrawal_amount -> (request created, balance debited)
"""

from enum import Enum
from typing import Optional
import logging

from aiogram.utils.markdown import hbold, hcode
from aiogram.utils.text_decorations import html_decoration

from core.constants import BTN_CANCEL, EMOJI, PAYMENT_METHODS, t
from core.conversation import Conversation, ConversationEngine, ConversationStore, Inbound
from core.database import Gateway
from core.errors import NotFoundError, ValidationError
from core.helpers import parse_int
from keyboards import account_inline_kb, cancel_kb, payment_method_kb, user_menu_kb
from models import ReferralStatus
from services.error_service import with_error_capture
from services.notification_service import Notifier
from services.referral_codes import ReferralCodeGenerator

logger = logging.getLogger("refbot.user_engine")

quote = html_decoration.quote


class UserStep(str, Enum):
    PAYMENT_METHOD_CHOICE = "payment_method_choice"
    ACCOUNT_NAME = "account_name"
    PAYMENT_NUMBER = "payment_number"
    WITHDRAWAL_AMOUNT = "withdrawal_amount"


def resolve_payment_method(text: str) -> Optional[str]:
    """Map a typed code (TE/CB) or rail name to the rail name, case-insensitively."""
    value = text.strip().upper()
    if value in PAYMENT_METHODS:
        return PAYMENT_METHODS[value]
    for name in PAYMENT_METHODS.values():
        if value == name.upper():
            return name
    return None


class UserEngine(ConversationEngine):
    steps = UserStep
    step_handlers = {
        UserStep.PAYMENT_METHOD_CHOICE: "_on_payment_method_choice",
        UserStep.ACCOUNT_NAME: "_on_account_name",
        UserStep.PAYMENT_NUMBER: "_on_payment_number",
        UserStep.WITHDRAWAL_AMOUNT: "_on_withdrawal_amount",
    }

    def __init__(
        self,
        bot,
        store: ConversationStore,
        gateway: Gateway,
        notifier: Notifier,
        code_generator: ReferralCodeGenerator,
        admin_id: int,
        min_withdrawal: int = 50,
        currency: str = "birr",
        support_contact: str = "",
    ):
        super().__init__(bot, store)
        self.gateway = gateway
        self.notifier = notifier
        self.code_generator = code_generator
        self.admin_id = admin_id
        self.min_withdrawal = min_withdrawal
        self.currency = currency
        self.support_contact = support_contact

    def menu_markup(self):
        return user_menu_kb()

    def money(self, amount: int) -> str:
        return f"{amount} {self.currency}"

    async def _busy(self, inbound: Inbound) -> bool:
        if inbound.chat_id in self.store:
            await self.reply(inbound.chat_id, t("busy"))
            return True
        return False

    # ---------- commands ----------
    @with_error_capture("user.start")
    async def start(self, inbound: Inbound):
        """Register on first contact, otherwise re-display the existing code."""
        sender = inbound.user
        if self.store.close(inbound.chat_id):
            logger.info("Open conversation of chat %s reset by /start", inbound.chat_id)

        user = await self.gateway.get_user_by_telegram_id(sender.id)
        name = quote(sender.first_name or "there")
        if user is None:
            code = await self.code_generator.generate(sender.first_name, sender.last_name)
            user = await self.gateway.create_user(
                telegram_id=sender.id,
                referral_code=code,
                first_name=sender.first_name,
                last_name=sender.last_name,
                username=sender.username,
            )
            logger.info("New user registered: %s (telegram_id=%s, code=%s)", user.first_name, sender.id, code)
            text = (
                f"{EMOJI['party']} Welcome, {name}!\n\n"
                "You are now part of the referral program.\n\n"
                f"Your unique referral code is:\n\n{hcode(user.referral_code)}\n\n"
                "Share this code with your friends!"
            )
        else:
            logger.info("Existing user returned: %s (telegram_id=%s)", user.first_name, sender.id)
            text = f"👋 Welcome back, {name}!\n\nYour referral code is: {hcode(user.referral_code)}"
        await self.reply(inbound.chat_id, text, reply_markup=user_menu_kb())

    @with_error_capture("user.account")
    async def show_account(self, inbound: Inbound):
        user = await self.gateway.get_user_by_telegram_id(inbound.sender_id)
        if user is None:
            await self.reply(inbound.chat_id, t("not_registered"))
            return
        counts = await self.gateway.referral_counts(user.id)
        completed = counts[ReferralStatus.DONE]
        pending = counts[ReferralStatus.PENDING]
        rejected = counts[ReferralStatus.REJECTED]
        total = completed + pending + rejected

        if user.has_payment_method:
            payment = (
                f"{quote(user.payment_method)} | {quote(user.payment_account_name or '')} | "
                f"{hcode(user.payment_account_number)}"
            )
        else:
            payment = "Not set"

        text = (
            f"{EMOJI['account']} {hbold('My Account Summary')}\n\n"
            f"Referral Code: {hcode(user.referral_code)}\n"
            f"Balance: {hbold(self.money(user.balance))}\n"
            f"Total Referrals: {total} ({completed} completed, {pending} pending, {rejected} rejected)\n"
            f"Payment Method: {payment}"
        )
        await self.reply(inbound.chat_id, text, reply_markup=account_inline_kb())

    async def how_it_works(self, inbound: Inbound):
        text = (
            f"💡 {hbold('How Referral Works')}\n"
            "Share our number and your unique referral code with a friend.\n"
            "When they call for an installation, make sure they give us your code.\n"
            "After the work is completed, a reward is credited to your balance.\n"
            f"Once your balance reaches {self.money(self.min_withdrawal)} you can request a withdrawal."
        )
        if self.support_contact:
            text += f"\n\nQuestions? Contact {quote(self.support_contact)}."
        await self.reply(inbound.chat_id, text)

    @with_error_capture("user.update")
    async def refresh_profile(self, inbound: Inbound):
        """Re-sync name and handle from Telegram."""
        sender = inbound.user
        try:
            user = await self.gateway.update_profile(sender.id, sender.first_name, sender.last_name, sender.username)
        except NotFoundError:
            await self.reply(inbound.chat_id, t("not_registered"))
            return
        handle = f"@{user.username}" if user.username else "N/A"
        full_name = " ".join(part for part in (user.first_name, user.last_name) if part)
        await self.reply(
            inbound.chat_id,
            f"🔄 Your account information was updated.\n\nName: {quote(full_name or 'N/A')}\nUsername: {quote(handle)}",
            reply_markup=user_menu_kb(),
        )

    async def cancel(self, inbound: Inbound) -> bool:
        if self.store.close(inbound.chat_id) is None:
            return False
        await self.reply(inbound.chat_id, t("user_cancelled"), reply_markup=user_menu_kb())
        await self.show_account(inbound)
        return True

    # ---------- payment method dialogue ----------
    @with_error_capture("user.payment_method")
    async def begin_payment_method(self, inbound: Inbound):
        if await self._busy(inbound):
            return
        user = await self.gateway.get_user_by_telegram_id(inbound.sender_id)
        if user is None:
            await self.reply(inbound.chat_id, t("not_registered"))
            return
        self.store.open(inbound.chat_id, UserStep.PAYMENT_METHOD_CHOICE, user_id=user.id)
        await self.reply(inbound.chat_id, self._method_prompt(), reply_markup=payment_method_kb())

    def _method_prompt(self) -> str:
        options = "\n".join(f"{hbold(code)} - {quote(name)}" for code, name in PAYMENT_METHODS.items())
        return f"Choose your payment method:\n\n{options}"

    async def _on_payment_method_choice(self, inbound: Inbound, conversation: Conversation):
        method = resolve_payment_method(inbound.clean_text)
        if method is None:
            await self.reply(
                inbound.chat_id,
                f"{EMOJI['warning']} Invalid choice. {self._method_prompt()}",
                reply_markup=payment_method_kb(),
            )
            return
        self.store.advance(inbound.chat_id, UserStep.ACCOUNT_NAME, payment_method=method)
        await self.reply(inbound.chat_id, f"{quote(method)} selected. Enter the account holder's name:", reply_markup=cancel_kb())

    async def _on_account_name(self, inbound: Inbound, conversation: Conversation):
        name = inbound.clean_text
        if not name:
            await self.reply(inbound.chat_id, "Please type the account holder's name.")
            return
        self.store.advance(inbound.chat_id, UserStep.PAYMENT_NUMBER, account_name=name)
        await self.reply(inbound.chat_id, "Enter the account or phone number for payments:")

    @with_error_capture("user.payment_method")
    async def _on_payment_number(self, inbound: Inbound, conversation: Conversation):
        number = inbound.clean_text
        if not number:
            await self.reply(inbound.chat_id, "Please type the account number.")
            return
        data = conversation.data
        await self.gateway.set_payment_method(data["user_id"], data["payment_method"], data["account_name"], number)
        self.store.close(inbound.chat_id)
        logger.info("Payment method saved for user %s (%s)", data["user_id"], data["payment_method"])
        await self.reply(
            inbound.chat_id,
            f"{EMOJI['success']} Payment method saved: {quote(data['payment_method'])} | "
            f"{quote(data['account_name'])} | {hcode(number)}",
            reply_markup=user_menu_kb(),
        )

    # ---------- withdrawal dialogue ----------
    @with_error_capture("user.withdraw")
    async def begin_withdrawal(self, inbound: Inbound):
        """Preconditions are checked before any conversation state exists."""
        if await self._busy(inbound):
            return
        user = await self.gateway.get_user_by_telegram_id(inbound.sender_id)
        if user is None:
            await self.reply(inbound.chat_id, t("not_registered"))
            return
        if not user.has_payment_method:
            await self.reply(
                inbound.chat_id,
                f"{EMOJI['warning']} Please add a payment method before requesting a withdrawal.",
                reply_markup=account_inline_kb(),
            )
            return
        if user.balance < self.min_withdrawal:
            await self.reply(
                inbound.chat_id,
                f"{EMOJI['warning']} The minimum withdrawal is {hbold(self.money(self.min_withdrawal))}. "
                f"Your balance is {hbold(self.money(user.balance))}.",
            )
            return
        self.store.open(inbound.chat_id, UserStep.WITHDRAWAL_AMOUNT, user_id=user.id)
        await self.reply(
            inbound.chat_id,
            f"Your balance is {hbold(self.money(user.balance))}.\n"
            f"Enter the amount to withdraw (minimum {self.money(self.min_withdrawal)}), or press {BTN_CANCEL}.",
            reply_markup=cancel_kb(),
        )

    async def _exceeds_balance(self, inbound: Inbound, balance: int):
        await self.reply(
            inbound.chat_id,
            f"{EMOJI['error']} The amount exceeds your balance of {self.money(balance)}. Enter a smaller amount.",
        )

    @with_error_capture("user.withdraw")
    async def _on_withdrawal_amount(self, inbound: Inbound, conversation: Conversation):
        amount = parse_int(inbound.text)
        if amount is None or amount <= 0:
            await self.reply(inbound.chat_id, f"{EMOJI['error']} Please enter a valid positive number.")
            return
        if amount < self.min_withdrawal:
            await self.reply(
                inbound.chat_id,
                f"{EMOJI['error']} The minimum withdrawal is {self.money(self.min_withdrawal)}.",
            )
            return

        user = await self.gateway.get_user_by_telegram_id(inbound.sender_id)
        if user is None or amount > user.balance:
            await self._exceeds_balance(inbound, user.balance if user else 0)
            return
        try:
            request, user = await self.gateway.create_withdrawal(conversation.data["user_id"], amount)
        except ValidationError:
            # balance moved between the check and the debit
            current = await self.gateway.get_user_by_telegram_id(inbound.sender_id)
            await self._exceeds_balance(inbound, current.balance if current else 0)
            return

        self.store.close(inbound.chat_id)
        await self.reply(
            inbound.chat_id,
            f"{EMOJI['success']} Your withdrawal request #{request.id} for {hbold(self.money(amount))} was received.\n"
            f"Remaining balance: {hbold(self.money(user.balance))}.\n"
            "You will be notified once it is paid.",
            reply_markup=user_menu_kb(),
        )
        handle = f"@{user.username}" if user.username else "N/A"
        await self.notifier.notify_chat(
            self.admin_id,
            f"{EMOJI['money']} {hbold('New Withdrawal Request')}\n\n"
            f"ID: {request.id}\n"
            f"User: {quote(user.display_name)} ({quote(handle)})\n"
            f"Amount: {hbold(self.money(amount))}\n"
            f"Method: {quote(user.payment_method or 'N/A')} | {quote(user.payment_account_name or 'N/A')} | "
            f"{hcode(user.payment_account_number or 'N/A')}",
        )
        await self.notifier.notify_group(
            f"{EMOJI['money']} {hbold(user.display_name)} requested a withdrawal of {hbold(self.money(amount))}."
        )
