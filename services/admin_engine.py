# services/admin_engine.py
"""
Admin flows, all driven from the admin chat's reply keyboard.

Dialogues:
    awaiting_referral_code -> awaiting_customer_name -> awaiting_customer_phone
        -> referral inserted as Pending, referrer notified
    awaiting_referral_id_for_update -> awaiting_new_status [-> awaiting_reward_amount]
        -> status set; Done also credits the referrer
    awaiting_withdrawal_id_for_payout -> awaiting_payout_screenshot
        -> request marked paid, proof forwarded to the requester and the group

Listings are read-only: all referrals and all users newest-first, the
pending queues oldest-first so they get worked through in arrival order.
"""

from enum import Enum
from typing import List, Optional
import logging

from aiogram.utils.markdown import hbold, hcode
from aiogram.utils.text_decorations import html_decoration

from core.constants import EMOJI, SKIP_KEYWORD, t
from core.conversation import Conversation, ConversationEngine, ConversationStore, Inbound
from core.database import Gateway
from core.errors import NotFoundError, StatusConflict
from core.helpers import format_date, in_db_range, parse_int, split_message
from keyboards import admin_menu_kb, cancel_kb, status_choice_kb
from models import ReferralPydantic, ReferralStatus, UserPydantic, WithdrawalPydantic, WithdrawalStatus
from services.error_service import with_error_capture
from services.notification_service import Notifier

logger = logging.getLogger("refbot.admin_engine")

quote = html_decoration.quote
SEPARATOR = "\n---\n\n"


class AdminStep(str, Enum):
    AWAITING_REFERRAL_CODE = "awaiting_referral_code"
    AWAITING_CUSTOMER_NAME = "awaiting_customer_name"
    AWAITING_CUSTOMER_PHONE = "awaiting_customer_phone"
    AWAITING_REFERRAL_ID_FOR_UPDATE = "awaiting_referral_id_for_update"
    AWAITING_NEW_STATUS = "awaiting_new_status"
    AWAITING_REWARD_AMOUNT = "awaiting_reward_amount"
    AWAITING_WITHDRAWAL_ID_FOR_PAYOUT = "awaiting_withdrawal_id_for_payout"
    AWAITING_PAYOUT_SCREENSHOT = "awaiting_payout_screenshot"


def parse_status(text: str) -> Optional[ReferralStatus]:
    value = text.strip().lower()
    for status in ReferralStatus:
        if status.value.lower() == value:
            return status
    return None


def optional_answer(text: str) -> Optional[str]:
    """None for the skip keyword, the trimmed text otherwise."""
    value = text.strip()
    return None if value.lower() == SKIP_KEYWORD else value


class AdminEngine(ConversationEngine):
    steps = AdminStep
    step_handlers = {
        AdminStep.AWAITING_REFERRAL_CODE: "_on_referral_code",
        AdminStep.AWAITING_CUSTOMER_NAME: "_on_customer_name",
        AdminStep.AWAITING_CUSTOMER_PHONE: "_on_customer_phone",
        AdminStep.AWAITING_REFERRAL_ID_FOR_UPDATE: "_on_referral_id_for_update",
        AdminStep.AWAITING_NEW_STATUS: "_on_new_status",
        AdminStep.AWAITING_REWARD_AMOUNT: "_on_reward_amount",
        AdminStep.AWAITING_WITHDRAWAL_ID_FOR_PAYOUT: "_on_withdrawal_id_for_payout",
        AdminStep.AWAITING_PAYOUT_SCREENSHOT: "_on_payout_screenshot",
    }

    def __init__(
        self,
        bot,
        store: ConversationStore,
        gateway: Gateway,
        notifier: Notifier,
        currency: str = "birr",
        support_contact: str = "",
    ):
        super().__init__(bot, store)
        self.gateway = gateway
        self.notifier = notifier
        self.currency = currency
        self.support_contact = support_contact

    def menu_markup(self):
        return admin_menu_kb()

    def money(self, amount: int) -> str:
        return f"{amount} {self.currency}"

    async def _finish(self, inbound: Inbound, text: str):
        """Close the dialogue and hand the admin back the main menu."""
        self.store.close(inbound.chat_id)
        await self.reply(inbound.chat_id, text, reply_markup=admin_menu_kb())

    async def _busy(self, inbound: Inbound) -> bool:
        if inbound.chat_id in self.store:
            await self.reply(inbound.chat_id, t("busy"))
            return True
        return False

    async def _send_chunks(self, chat_id: int, chunks: List[str], reply_markup=None):
        for i, chunk in enumerate(chunks):
            last = i == len(chunks) - 1
            await self.reply(chat_id, chunk, reply_markup=reply_markup if last else None)

    async def welcome(self, inbound: Inbound):
        if self.store.close(inbound.chat_id):
            logger.info("Open admin conversation reset by /start")
        name = quote(inbound.user.first_name if inbound.user and inbound.user.first_name else "Admin")
        await self.reply(inbound.chat_id, f"Welcome back, Admin {name}!", reply_markup=admin_menu_kb())

    async def cancel(self, inbound: Inbound) -> bool:
        if self.store.close(inbound.chat_id) is None:
            return False
        await self.reply(inbound.chat_id, t("admin_cancelled"), reply_markup=admin_menu_kb())
        return True

    # ---------- new referral ----------
    async def begin_new_referral(self, inbound: Inbound):
        if await self._busy(inbound):
            return
        self.store.open(inbound.chat_id, AdminStep.AWAITING_REFERRAL_CODE)
        await self.reply(inbound.chat_id, "Please enter the referrer's referral code:", reply_markup=cancel_kb())

    @with_error_capture("admin.new_referral")
    async def _on_referral_code(self, inbound: Inbound, conversation: Conversation):
        code = inbound.clean_text.upper()
        referrer = await self.gateway.get_user_by_referral_code(code) if code else None
        if referrer is None:
            await self.reply(
                inbound.chat_id,
                f"{EMOJI['warning']} Invalid referral code. Please check the code and try again, or press Cancel.",
            )
            return
        self.store.advance(
            inbound.chat_id,
            AdminStep.AWAITING_CUSTOMER_NAME,
            referrer_id=referrer.id,
            referrer_chat_id=referrer.telegram_id,
            referrer_name=referrer.display_name,
        )
        await self.reply(
            inbound.chat_id,
            f"{EMOJI['success']} Referral code accepted for user: {hbold(referrer.display_name)}.\n\n"
            f"Enter the new customer's name (optional, type '{SKIP_KEYWORD}' to omit).",
        )

    async def _on_customer_name(self, inbound: Inbound, conversation: Conversation):
        if not inbound.clean_text:
            await self.reply(inbound.chat_id, f"Please type the customer's name or '{SKIP_KEYWORD}'.")
            return
        self.store.advance(
            inbound.chat_id, AdminStep.AWAITING_CUSTOMER_PHONE, new_customer_name=optional_answer(inbound.text)
        )
        await self.reply(
            inbound.chat_id, f"Enter the customer's phone number (optional, type '{SKIP_KEYWORD}' to omit)."
        )

    @with_error_capture("admin.new_referral")
    async def _on_customer_phone(self, inbound: Inbound, conversation: Conversation):
        if not inbound.clean_text:
            await self.reply(inbound.chat_id, f"Please type the customer's phone number or '{SKIP_KEYWORD}'.")
            return
        data = conversation.data
        phone = optional_answer(inbound.text)
        referral = await self.gateway.create_referral(data["referrer_id"], data.get("new_customer_name"), phone)
        logger.info("Referral %s created for referrer %s", referral.id, data["referrer_id"])

        customer = referral.new_customer_name or "Not Provided"
        await self._finish(
            inbound,
            f"{EMOJI['success']} {hbold('New Referral Created Successfully')}\n\n"
            f"{hbold('ID:')} {referral.id}\n"
            f"{hbold('Referrer:')} {quote(data['referrer_name'])}\n"
            f"{hbold('New Customer Name:')} {quote(customer)}\n"
            f"{hbold('New Customer Phone:')} {quote(referral.new_customer_phone or 'Not Provided')}\n\n"
            f"The status has been set to '{ReferralStatus.PENDING.value}'.",
        )
        await self.notifier.notify_chat(
            data["referrer_chat_id"],
            f"{EMOJI['party']} {hbold('A new customer was registered with your code!')}\n\n"
            f"• Customer: {quote(customer)}\n"
            f"• Status: {ReferralStatus.PENDING.value}\n\n"
            "Your reward is credited as soon as the work is completed.",
        )

    # ---------- listings ----------
    def _referral_block(self, ref: ReferralPydantic) -> str:
        block = (
            f"{hbold(f'ID: {ref.id}')} | {hcode(ref.status.value)}\n"
            f"{hbold('Referrer:')} {quote(ref.referrer_name or 'Unknown')}\n"
            f"{hbold('New Customer:')} {quote(ref.new_customer_name or 'N/A')}\n"
        )
        if ref.reward_amount:
            block += f"{hbold('Reward:')} {self.money(ref.reward_amount)}\n"
        return block + f"{hbold('Date:')} {format_date(ref.created_at)}\n" + SEPARATOR

    def _user_block(self, user: UserPydantic) -> str:
        handle = f"@{user.username}" if user.username else "N/A"
        return (
            f"{hbold('Name:')} {quote(user.display_name)}\n"
            f"{hbold('Username:')} {quote(handle)}\n"
            f"{hbold('Referral Code:')} {hcode(user.referral_code)}\n"
            f"{hbold('Balance:')} {self.money(user.balance)}\n"
            f"{hbold('Joined:')} {format_date(user.created_at)}\n" + SEPARATOR
        )

    def _withdrawal_block(self, req: WithdrawalPydantic) -> str:
        user = req.user
        handle = f"@{user.username}" if user and user.username else "N/A"
        return (
            f"{hbold(f'ID: {req.id}')} | {hbold(self.money(req.amount))}\n"
            f"{hbold('User:')} {quote(user.display_name if user else 'Unknown')}\n"
            f"{hbold('User Name:')} {quote(handle)}\n"
            f"{hbold('Payment Method:')} {quote((user.payment_method if user else None) or 'Not Set')}\n"
            f"{hbold('Payment Account Name:')} {quote((user.payment_account_name if user else None) or 'Unknown')}\n"
            f"{hbold('Payment Account Number:')} {hcode((user.payment_account_number if user else None) or 'Unknown')}\n"
            f"{hbold('Requested On:')} {format_date(req.requested_at)}\n" + SEPARATOR
        )

    @with_error_capture("admin.list_referrals")
    async def list_referrals(self, inbound: Inbound):
        referrals = await self.gateway.list_referrals(newest_first=True)
        if not referrals:
            await self.reply(inbound.chat_id, "There are currently no referrals in the system.")
            return
        chunks = split_message(
            (self._referral_block(r) for r in referrals), header=f"{EMOJI['list']} {hbold('All Referrals')}\n\n"
        )
        await self._send_chunks(inbound.chat_id, chunks)

    @with_error_capture("admin.list_users")
    async def list_users(self, inbound: Inbound):
        users = await self.gateway.list_users()
        if not users:
            await self.reply(inbound.chat_id, "There are no users registered in the system.")
            return
        chunks = split_message(
            (self._user_block(u) for u in users),
            header=f"{EMOJI['users']} {hbold('All Registered Users')} ({len(users)})\n\n",
        )
        await self._send_chunks(inbound.chat_id, chunks)

    # ---------- status update ----------
    @with_error_capture("admin.status_update")
    async def begin_status_update(self, inbound: Inbound):
        if await self._busy(inbound):
            return
        pending = await self.gateway.list_referrals(status=ReferralStatus.PENDING, newest_first=False)
        if not pending:
            await self.reply(inbound.chat_id, "There are no pending referrals to update.", reply_markup=admin_menu_kb())
            return
        chunks = split_message(
            (self._referral_block(r) for r in pending),
            header=f"📝 {hbold('Pending Referrals')}\n\n",
            footer="Please reply with the ID of the referral you want to update.",
        )
        self.store.open(inbound.chat_id, AdminStep.AWAITING_REFERRAL_ID_FOR_UPDATE)
        await self._send_chunks(inbound.chat_id, chunks, reply_markup=cancel_kb())

    @with_error_capture("admin.status_update")
    async def _on_referral_id_for_update(self, inbound: Inbound, conversation: Conversation):
        referral_id = parse_int(inbound.text)
        if not in_db_range(referral_id):
            await self.reply(inbound.chat_id, "That's not a valid number. Please send only the numeric ID.")
            return
        referral = await self.gateway.get_referral(referral_id)
        if referral is None:
            await self._finish(inbound, f"{EMOJI['error']} No referral found with ID {hbold(referral_id)}.")
            return
        if referral.status != ReferralStatus.PENDING:
            await self._finish(
                inbound,
                f"This referral (ID: {referral_id}) has already been processed. "
                f"Its status is '{referral.status.value}'.",
            )
            return
        self.store.advance(inbound.chat_id, AdminStep.AWAITING_NEW_STATUS, referral_id=referral_id)
        await self.reply(
            inbound.chat_id,
            f"You selected referral ID {hbold(referral_id)}.\n\nWhich status do you want to set?",
            reply_markup=status_choice_kb(),
        )

    @with_error_capture("admin.status_update")
    async def _on_new_status(self, inbound: Inbound, conversation: Conversation):
        status = parse_status(inbound.clean_text)
        if status is None:
            await self.reply(inbound.chat_id, "Invalid status. Please choose from the keyboard.", reply_markup=status_choice_kb())
            return
        referral_id = conversation.data["referral_id"]

        if status == ReferralStatus.DONE:
            self.store.advance(inbound.chat_id, AdminStep.AWAITING_REWARD_AMOUNT, new_status=status.value)
            await self.reply(
                inbound.chat_id, "Please enter the reward amount (e.g., 50) for this referral.", reply_markup=cancel_kb()
            )
            return

        if status == ReferralStatus.PENDING:
            referral = await self.gateway.get_referral(referral_id)
            if referral is None:
                await self._finish(inbound, f"{EMOJI['error']} No referral found with ID {hbold(referral_id)}.")
            elif referral.status == ReferralStatus.PENDING:
                await self._finish(inbound, f"Referral {referral_id} is already set to '{status.value}'.")
            else:
                await self._finish(
                    inbound,
                    f"Referral {referral_id} has already been processed. Its status is '{referral.status.value}'.",
                )
            return

        try:
            referral, referrer = await self.gateway.reject_referral(referral_id)
        except (NotFoundError, StatusConflict) as e:
            await self._finish(inbound, f"{EMOJI['error']} {quote(str(e))}.")
            return
        logger.info("Referral %s rejected", referral_id)
        await self._finish(inbound, f"{EMOJI['success']} Success! Referral ID {referral_id} is now '{status.value}'.")
        message = (
            f"{EMOJI['error']} Your referral for {hbold(referral.new_customer_name or 'your customer')} "
            "has been rejected."
        )
        if self.support_contact:
            message += f"\n\nIf you have any questions, contact {quote(self.support_contact)}."
        await self.notifier.notify_chat(referrer.telegram_id, message)

    @with_error_capture("admin.status_update")
    async def _on_reward_amount(self, inbound: Inbound, conversation: Conversation):
        amount = parse_int(inbound.text)
        if not in_db_range(amount):
            await self.reply(
                inbound.chat_id, f"{EMOJI['error']} Invalid amount. Please enter a whole number greater than zero."
            )
            return
        referral_id = conversation.data["referral_id"]
        try:
            referral, referrer = await self.gateway.complete_referral(referral_id, amount)
        except StatusConflict as e:
            await self._finish(inbound, f"Referral {referral_id} is already marked as '{e.current_status}'.")
            return
        except NotFoundError:
            await self._finish(inbound, f"{EMOJI['error']} No referral found with ID {hbold(referral_id)}.")
            return

        await self._finish(
            inbound,
            f"{EMOJI['success']} Success! Referral ID {referral_id} is now '{referral.status.value}'.\n"
            f"User {hbold(referrer.display_name)} has been credited with {hbold(self.money(amount))}.",
        )
        await self.notifier.notify_chat(
            referrer.telegram_id,
            f"{EMOJI['party']} Your referral for {hbold(referral.new_customer_name or 'your customer')} "
            f"was completed successfully!\n\n{hbold(self.money(amount))} has been credited to your balance. "
            f"Your balance is now {hbold(self.money(referrer.balance))}.",
        )

    # ---------- payout ----------
    @with_error_capture("admin.payout")
    async def begin_payout(self, inbound: Inbound):
        if await self._busy(inbound):
            return
        requests = await self.gateway.list_withdrawals(status=WithdrawalStatus.PENDING)
        if not requests:
            await self.reply(inbound.chat_id, "There are no pending payout requests.", reply_markup=admin_menu_kb())
            return
        chunks = split_message(
            (self._withdrawal_block(r) for r in requests),
            header=f"{EMOJI['payout']} {hbold('Pending Payout Requests')}\n\n",
            footer="Please reply with the ID of the request you have paid.",
        )
        self.store.open(inbound.chat_id, AdminStep.AWAITING_WITHDRAWAL_ID_FOR_PAYOUT)
        await self._send_chunks(inbound.chat_id, chunks, reply_markup=cancel_kb())

    @with_error_capture("admin.payout")
    async def _on_withdrawal_id_for_payout(self, inbound: Inbound, conversation: Conversation):
        request_id = parse_int(inbound.text)
        if not in_db_range(request_id):
            await self.reply(inbound.chat_id, "Invalid ID. Please reply with the numeric ID.")
            return
        request = await self.gateway.get_withdrawal(request_id)
        if request is None or request.status != WithdrawalStatus.PENDING:
            await self._finish(inbound, f"{EMOJI['error']} No pending request found with ID {hbold(request_id)}.")
            return
        self.store.advance(inbound.chat_id, AdminStep.AWAITING_PAYOUT_SCREENSHOT, payout_id=request_id)
        await self.reply(
            inbound.chat_id,
            f"{EMOJI['success']} Request ID {request_id} is valid. Please upload the payment screenshot now.",
            reply_markup=cancel_kb(),
        )

    @with_error_capture("admin.payout")
    async def _on_payout_screenshot(self, inbound: Inbound, conversation: Conversation):
        if not inbound.photo:
            await self.reply(inbound.chat_id, "Please upload an image file as proof.")
            return
        request_id = conversation.data["payout_id"]
        try:
            request = await self.gateway.mark_withdrawal_paid(request_id, inbound.photo)
        except (NotFoundError, StatusConflict) as e:
            await self._finish(inbound, f"{EMOJI['error']} {quote(str(e))}.")
            return

        await self._finish(inbound, f"{EMOJI['success']} Success! Payout ID {request_id} is marked as 'paid'.")
        user = request.user
        await self.notifier.send_chat_photo(
            user.telegram_id,
            inbound.photo,
            caption=f"{EMOJI['party']} Your payment of {hbold(self.money(request.amount))} has been sent!\n"
                    "Please check your account.",
        )
        await self.notifier.notify_group_photo(
            inbound.photo,
            caption=f"{EMOJI['payout']} {hbold('Payment sent!')}\n\n"
                    f"{hbold(self.money(request.amount))} was paid to {hbold(user.display_name)}.",
        )
