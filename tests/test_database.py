import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from core import database
from core.errors import NotFoundError, PersistenceError, StatusConflict, ValidationError
from models import ReferralStatus, WithdrawalStatus


async def test_create_and_lookup_user(gateway):
    user = await gateway.create_user(42, "AK-042", first_name="Abebe", last_name="Kebede", username="abe")
    assert user.id and user.balance == 0
    assert not user.has_payment_method

    assert (await gateway.get_user_by_telegram_id(42)).referral_code == "AK-042"
    assert (await gateway.get_user_by_referral_code("AK-042")).telegram_id == 42
    assert await gateway.get_user_by_telegram_id(43) is None
    assert await gateway.referral_code_exists("AK-042")
    assert not await gateway.referral_code_exists("AK-043")


async def test_duplicate_telegram_id_or_code_is_a_persistence_error(gateway):
    await gateway.create_user(42, "AK-042")
    with pytest.raises(PersistenceError):
        await gateway.create_user(42, "AK-043")
    with pytest.raises(PersistenceError):
        await gateway.create_user(43, "AK-042")


async def test_update_profile_keeps_code(gateway, make_user):
    await make_user(42, code="AK-042")
    updated = await gateway.update_profile(42, "Almaz", None, "almaz")
    assert updated.first_name == "Almaz" and updated.username == "almaz"
    assert updated.referral_code == "AK-042"
    with pytest.raises(NotFoundError):
        await gateway.update_profile(99, "X", None, None)


async def test_set_payment_method(gateway, make_user):
    user = await make_user(42)
    saved = await gateway.set_payment_method(user.id, "Telebirr", "Abebe K", "0911")
    assert saved.has_payment_method
    assert saved.payment_account_number == "0911"


async def test_referral_counts_default_to_zero(gateway, make_user):
    user = await make_user(42)
    counts = await gateway.referral_counts(user.id)
    assert counts == {ReferralStatus.PENDING: 0, ReferralStatus.DONE: 0, ReferralStatus.REJECTED: 0}

    first = await gateway.create_referral(user.id, "Customer 1", None)
    await gateway.create_referral(user.id, None, "0911")
    await gateway.complete_referral(first.id, 30)
    counts = await gateway.referral_counts(user.id)
    assert counts[ReferralStatus.PENDING] == 1
    assert counts[ReferralStatus.DONE] == 1


async def test_complete_referral_credits_exactly_once(gateway, make_user):
    user = await make_user(42, balance=10)
    ref = await gateway.create_referral(user.id, "C", None)
    assert ref.status is ReferralStatus.PENDING and ref.reward_amount is None

    done, referrer = await gateway.complete_referral(ref.id, 50)
    assert done.status is ReferralStatus.DONE and done.reward_amount == 50
    assert referrer.balance == 60

    with pytest.raises(StatusConflict) as exc:
        await gateway.complete_referral(ref.id, 50)
    assert exc.value.current_status == "Done"
    assert (await gateway.get_user_by_telegram_id(42)).balance == 60

    with pytest.raises(StatusConflict):
        await gateway.reject_referral(ref.id)


async def test_complete_referral_validates_reward_and_id(gateway, make_user):
    user = await make_user(42)
    ref = await gateway.create_referral(user.id)
    with pytest.raises(ValidationError):
        await gateway.complete_referral(ref.id, 0)
    with pytest.raises(NotFoundError):
        await gateway.complete_referral(999, 10)
    assert (await gateway.get_referral(ref.id)).status is ReferralStatus.PENDING


async def test_reject_referral_has_no_balance_effect(gateway, make_user):
    user = await make_user(42, balance=5)
    ref = await gateway.create_referral(user.id)
    rejected, referrer = await gateway.reject_referral(ref.id)
    assert rejected.status is ReferralStatus.REJECTED
    assert rejected.reward_amount is None
    assert referrer.balance == 5


async def test_list_referrals_order_and_filter(gateway, make_user):
    user = await make_user(42, first_name="Abebe")
    ids = [(await gateway.create_referral(user.id, f"C{i}")).id for i in range(3)]
    await gateway.reject_referral(ids[1])

    newest = await gateway.list_referrals()
    assert [r.id for r in newest] == list(reversed(ids))
    assert all(r.referrer_name == "Abebe" for r in newest)

    pending = await gateway.list_referrals(status=ReferralStatus.PENDING, newest_first=False)
    assert [r.id for r in pending] == [ids[0], ids[2]]


async def test_create_withdrawal_debits_atomically(gateway, make_user):
    user = await make_user(42, balance=120, payment=True)
    request, updated = await gateway.create_withdrawal(user.id, 70)
    assert request.status is WithdrawalStatus.PENDING
    assert request.amount == 70
    assert updated.balance == 50

    with pytest.raises(ValidationError):
        await gateway.create_withdrawal(user.id, 51)
    assert (await gateway.get_user_by_telegram_id(42)).balance == 50
    assert len(await gateway.list_withdrawals()) == 1

    with pytest.raises(NotFoundError):
        await gateway.create_withdrawal(999, 10)
    with pytest.raises(ValidationError):
        await gateway.create_withdrawal(user.id, 0)


async def test_mark_withdrawal_paid_once(gateway, make_user):
    user = await make_user(42, balance=100, payment=True)
    request, _ = await gateway.create_withdrawal(user.id, 60)

    paid = await gateway.mark_withdrawal_paid(request.id, "photo-file-id")
    assert paid.status is WithdrawalStatus.PAID
    assert paid.processed_at is not None
    assert paid.proof_file_id == "photo-file-id"
    assert paid.user.telegram_id == 42

    with pytest.raises(StatusConflict):
        await gateway.mark_withdrawal_paid(request.id, "again")
    with pytest.raises(NotFoundError):
        await gateway.mark_withdrawal_paid(999, "x")
    assert await gateway.list_withdrawals(status=WithdrawalStatus.PENDING) == []
    # paying out never touches the balance again
    assert (await gateway.get_user_by_telegram_id(42)).balance == 40


async def test_missing_tables_surface_as_persistence_error():
    eng = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    try:
        gateway = database.Gateway(async_sessionmaker(eng, expire_on_commit=False))
        with pytest.raises(PersistenceError):
            await gateway.get_user_by_telegram_id(1)
    finally:
        await eng.dispose()


def test_session_factory_requires_connect():
    with pytest.raises(RuntimeError):
        database.get_session_factory()


async def test_oversized_integers_surface_as_persistence_error(gateway, make_user):
    user = await make_user(42, balance=100)
    with pytest.raises(PersistenceError):
        await gateway.get_referral(10**20)
    with pytest.raises(PersistenceError):
        await gateway.create_withdrawal(user.id, 10**20)
    assert (await gateway.get_user_by_telegram_id(42)).balance == 100
