# core/database.py
"""
DB connector and persistence gateway for the referral bot.

Features:
- Async connect() / disconnect() for lifecycle management (SQLAlchemy async engine)
- create_tables() for first boot
- Gateway: every read/write the conversation engines need against
  users, referrals and withdrawal_requests
- Balance-affecting writes are single transactions with conditional updates

Usage:
    await connect(url)
    gateway = Gateway(get_session_factory())
    await disconnect()
"""

from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Tuple
import asyncio
import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from core.errors import NotFoundError, PersistenceError, StatusConflict, ValidationError
from models import (
    Base,
    ReferralORM,
    ReferralPydantic,
    ReferralStatus,
    UserORM,
    UserPydantic,
    WithdrawalORM,
    WithdrawalPydantic,
    WithdrawalStatus,
    utc_now,
)

logger = logging.getLogger("refbot.database")

_async_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker] = None


# -------------------------
# CONNECT / DISCONNECT
# -------------------------
async def connect(url: str, retries: int = 5, retry_delay: float = 2.0, **engine_kwargs) -> None:
    """
    Create the async engine and session factory.
    Idempotent: multiple calls won't recreate the engine.
    """
    global _async_engine, _async_session_factory
    if _async_engine:
        logger.debug("Async engine already initialized.")
        return

    attempt = 0
    while attempt < retries:
        try:
            logger.info("Connecting to database (attempt %d)...", attempt + 1)
            engine = create_async_engine(url, echo=False, **engine_kwargs)
            # quick test connection
            async with engine.begin() as conn:
                await conn.run_sync(lambda sync_conn: None)
            _async_engine = engine
            _async_session_factory = async_sessionmaker(engine, expire_on_commit=False)
            logger.info("Connected to database: %s", engine.url.render_as_string(hide_password=True))
            return
        except (SQLAlchemyError, OSError) as e:
            attempt += 1
            logger.warning("Database connect failed (attempt %d): %s", attempt, e)
            await asyncio.sleep(retry_delay * attempt)
    raise RuntimeError("Could not connect to database after retries.")


async def disconnect() -> None:
    global _async_engine, _async_session_factory
    if _async_engine:
        try:
            await _async_engine.dispose()
            logger.info("Database engine disposed.")
        finally:
            _async_engine = None
            _async_session_factory = None


def get_session_factory() -> async_sessionmaker:
    """Returns async_sessionmaker for use with 'async with session_factory()' blocks."""
    if not _async_session_factory:
        raise RuntimeError("Database not connected. Call connect() first.")
    return _async_session_factory


async def create_tables(engine: Optional[AsyncEngine] = None) -> None:
    """Create missing tables. Existing tables are left untouched."""
    engine = engine or _async_engine
    if engine is None:
        raise RuntimeError("Database not connected. Call connect() first.")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables created/ensured.")


# -------------------------
# GATEWAY
# -------------------------
class Gateway:
    """
    Row-level access to the three tables.

    Returns pydantic models, never live ORM objects. Any SQLAlchemy failure
    surfaces as PersistenceError; domain failures (missing rows, wrong status,
    insufficient balance) surface as NotFoundError / StatusConflict /
    ValidationError and roll the transaction back.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._sessions = session_factory

    @asynccontextmanager
    async def _transaction(self):
        try:
            async with self._sessions() as session:
                async with session.begin():
                    yield session
        except (SQLAlchemyError, OverflowError) as e:
            # sqlite3 raises OverflowError for integers wider than 64 bits
            logger.error("Database operation failed: %s", e)
            raise PersistenceError(str(e)) from e

    # ---- users ----
    async def get_user_by_telegram_id(self, telegram_id: int) -> Optional[UserPydantic]:
        async with self._transaction() as session:
            res = await session.execute(select(UserORM).where(UserORM.telegram_id == int(telegram_id)))
            user = res.scalar_one_or_none()
            return user.to_pydantic() if user else None

    async def get_user_by_referral_code(self, code: str) -> Optional[UserPydantic]:
        async with self._transaction() as session:
            res = await session.execute(select(UserORM).where(UserORM.referral_code == code))
            user = res.scalar_one_or_none()
            return user.to_pydantic() if user else None

    async def referral_code_exists(self, code: str) -> bool:
        async with self._transaction() as session:
            res = await session.execute(select(UserORM.id).where(UserORM.referral_code == code))
            return res.first() is not None

    async def create_user(
        self,
        telegram_id: int,
        referral_code: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> UserPydantic:
        async with self._transaction() as session:
            user = UserORM(
                telegram_id=int(telegram_id),
                referral_code=referral_code,
                first_name=first_name,
                last_name=last_name,
                username=username,
                balance=0,
            )
            session.add(user)
            await session.flush()
            return user.to_pydantic()

    async def update_profile(
        self,
        telegram_id: int,
        first_name: Optional[str],
        last_name: Optional[str],
        username: Optional[str],
    ) -> UserPydantic:
        """Refresh name/handle from Telegram. The referral code is never touched."""
        async with self._transaction() as session:
            res = await session.execute(select(UserORM).where(UserORM.telegram_id == int(telegram_id)))
            user = res.scalar_one_or_none()
            if user is None:
                raise NotFoundError(f"No user with telegram id {telegram_id}")
            user.first_name = first_name
            user.last_name = last_name
            user.username = username
            await session.flush()
            return user.to_pydantic()

    async def set_payment_method(
        self, user_id: int, method: str, account_name: str, account_number: str
    ) -> UserPydantic:
        async with self._transaction() as session:
            user = await session.get(UserORM, user_id)
            if user is None:
                raise NotFoundError(f"No user with id {user_id}")
            user.payment_method = method
            user.payment_account_name = account_name
            user.payment_account_number = account_number
            await session.flush()
            return user.to_pydantic()

    async def list_users(self) -> List[UserPydantic]:
        """All users, newest first."""
        async with self._transaction() as session:
            res = await session.execute(
                select(UserORM).order_by(UserORM.created_at.desc(), UserORM.id.desc())
            )
            return [u.to_pydantic() for u in res.scalars()]

    # ---- referrals ----
    async def referral_counts(self, referrer_id: int) -> Dict[ReferralStatus, int]:
        """Referral count per status; statuses with no rows are reported as 0."""
        async with self._transaction() as session:
            res = await session.execute(
                select(ReferralORM.status, func.count(ReferralORM.id))
                .where(ReferralORM.referrer_id == referrer_id)
                .group_by(ReferralORM.status)
            )
            counts = {status: 0 for status in ReferralStatus}
            for status, count in res.all():
                counts[ReferralStatus(status)] = count
            return counts

    async def create_referral(
        self,
        referrer_id: int,
        new_customer_name: Optional[str] = None,
        new_customer_phone: Optional[str] = None,
    ) -> ReferralPydantic:
        async with self._transaction() as session:
            referral = ReferralORM(
                referrer_id=referrer_id,
                new_customer_name=new_customer_name,
                new_customer_phone=new_customer_phone,
                status=ReferralStatus.PENDING.value,
            )
            session.add(referral)
            await session.flush()
            return referral.to_pydantic()

    async def get_referral(self, referral_id: int) -> Optional[ReferralPydantic]:
        async with self._transaction() as session:
            res = await session.execute(
                select(ReferralORM, UserORM.first_name)
                .outerjoin(UserORM, ReferralORM.referrer_id == UserORM.id)
                .where(ReferralORM.id == referral_id)
            )
            row = res.first()
            return row[0].to_pydantic(referrer_name=row[1]) if row else None

    async def list_referrals(
        self, status: Optional[ReferralStatus] = None, newest_first: bool = True
    ) -> List[ReferralPydantic]:
        """
        Referrals joined with the referrer's first name.
        The full listing is newest-first; the pending queue is read oldest-first.
        """
        q = select(ReferralORM, UserORM.first_name).outerjoin(
            UserORM, ReferralORM.referrer_id == UserORM.id
        )
        if status is not None:
            q = q.where(ReferralORM.status == status.value)
        if newest_first:
            q = q.order_by(ReferralORM.created_at.desc(), ReferralORM.id.desc())
        else:
            q = q.order_by(ReferralORM.created_at.asc(), ReferralORM.id.asc())
        async with self._transaction() as session:
            res = await session.execute(q)
            return [ref.to_pydantic(referrer_name=name) for ref, name in res.all()]

    async def _transition_referral(self, session, referral_id: int, values: dict) -> ReferralORM:
        res = await session.execute(
            update(ReferralORM)
            .where(ReferralORM.id == referral_id, ReferralORM.status == ReferralStatus.PENDING.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        referral = await session.get(ReferralORM, referral_id, populate_existing=True)
        if res.rowcount != 1:
            if referral is None:
                raise NotFoundError(f"No referral with id {referral_id}")
            raise StatusConflict(
                f"Referral {referral_id} is already '{referral.status}'", current_status=referral.status
            )
        return referral

    async def reject_referral(self, referral_id: int) -> Tuple[ReferralPydantic, UserPydantic]:
        """Pending -> Rejected. No balance effect."""
        async with self._transaction() as session:
            referral = await self._transition_referral(
                session, referral_id, {"status": ReferralStatus.REJECTED.value}
            )
            referrer = await session.get(UserORM, referral.referrer_id)
            return referral.to_pydantic(referrer_name=referrer.first_name), referrer.to_pydantic()

    async def complete_referral(self, referral_id: int, reward: int) -> Tuple[ReferralPydantic, UserPydantic]:
        """
        Pending -> Done with a reward, crediting the referrer in the same transaction.
        A referral that is no longer Pending raises StatusConflict, so a reward is
        issued at most once.
        """
        if reward <= 0:
            raise ValidationError("Reward must be positive")
        async with self._transaction() as session:
            referral = await self._transition_referral(
                session, referral_id, {"status": ReferralStatus.DONE.value, "reward_amount": reward}
            )
            await session.execute(
                update(UserORM)
                .where(UserORM.id == referral.referrer_id)
                .values(balance=UserORM.balance + reward)
                .execution_options(synchronize_session=False)
            )
            referrer = await session.get(UserORM, referral.referrer_id, populate_existing=True)
            logger.info(
                "Referral %s completed: user %s credited %s (balance=%s)",
                referral_id, referrer.id, reward, referrer.balance,
            )
            return referral.to_pydantic(referrer_name=referrer.first_name), referrer.to_pydantic()

    # ---- withdrawals ----
    async def create_withdrawal(self, user_id: int, amount: int) -> Tuple[WithdrawalPydantic, UserPydantic]:
        """
        Insert a pending request and debit the balance in one transaction.
        The debit is conditional on balance >= amount; otherwise nothing is written.
        """
        if amount <= 0:
            raise ValidationError("Amount must be positive")
        async with self._transaction() as session:
            res = await session.execute(
                update(UserORM)
                .where(UserORM.id == user_id, UserORM.balance >= amount)
                .values(balance=UserORM.balance - amount)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                if await session.get(UserORM, user_id) is None:
                    raise NotFoundError(f"No user with id {user_id}")
                raise ValidationError("Insufficient balance")
            request = WithdrawalORM(user_id=user_id, amount=amount, status=WithdrawalStatus.PENDING.value)
            session.add(request)
            await session.flush()
            user = await session.get(UserORM, user_id, populate_existing=True)
            logger.info("Withdrawal %s created: user %s debited %s (balance=%s)", request.id, user_id, amount, user.balance)
            return request.to_pydantic(), user.to_pydantic()

    async def get_withdrawal(self, request_id: int) -> Optional[WithdrawalPydantic]:
        async with self._transaction() as session:
            res = await session.execute(
                select(WithdrawalORM, UserORM)
                .join(UserORM, WithdrawalORM.user_id == UserORM.id)
                .where(WithdrawalORM.id == request_id)
            )
            row = res.first()
            return row[0].to_pydantic(user=row[1].to_pydantic()) if row else None

    async def list_withdrawals(self, status: Optional[WithdrawalStatus] = None) -> List[WithdrawalPydantic]:
        """Requests with their users, oldest first."""
        q = select(WithdrawalORM, UserORM).join(UserORM, WithdrawalORM.user_id == UserORM.id)
        if status is not None:
            q = q.where(WithdrawalORM.status == status.value)
        q = q.order_by(WithdrawalORM.requested_at.asc(), WithdrawalORM.id.asc())
        async with self._transaction() as session:
            res = await session.execute(q)
            return [req.to_pydantic(user=user.to_pydantic()) for req, user in res.all()]

    async def mark_withdrawal_paid(self, request_id: int, proof_file_id: str) -> WithdrawalPydantic:
        """pending -> paid, recording the proof photo and the processing time."""
        if not proof_file_id:
            raise ValidationError("A payout needs a proof reference")
        async with self._transaction() as session:
            res = await session.execute(
                update(WithdrawalORM)
                .where(WithdrawalORM.id == request_id, WithdrawalORM.status == WithdrawalStatus.PENDING.value)
                .values(status=WithdrawalStatus.PAID.value, processed_at=utc_now(), proof_file_id=proof_file_id)
                .execution_options(synchronize_session=False)
            )
            request = await session.get(WithdrawalORM, request_id, populate_existing=True)
            if res.rowcount != 1:
                if request is None:
                    raise NotFoundError(f"No withdrawal request with id {request_id}")
                raise StatusConflict(
                    f"Withdrawal request {request_id} is already '{request.status}'", current_status=request.status
                )
            user = await session.get(UserORM, request.user_id)
            logger.info("Withdrawal %s paid to user %s (proof=%s)", request_id, user.id, proof_file_id)
            return request.to_pydantic(user=user.to_pydantic())


__all__ = [
    "connect",
    "disconnect",
    "get_session_factory",
    "create_tables",
    "Gateway",
]
