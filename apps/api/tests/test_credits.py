import pytest
from sqlalchemy.future import select

from models.account import Account
from models.credit_ledger import CreditLedger
from services.credits import (
    add_credits,
    check_sufficient_credits,
    deduct_credits,
    get_credit_balance,
    get_credit_summary,
)
from services.errors import AccountNotFoundError, InsufficientCreditsError


async def _seed_account(session_maker, account_id: str = "ledger-user", credits: int = 50) -> str:
    async with session_maker() as db:
        db.add(Account(id=account_id, email=f"{account_id}@example.com", credits=credits))
        await db.commit()
    return account_id


@pytest.mark.asyncio
async def test_check_sufficient_credits_compares_balance_to_cost(session_maker):
    account_id = await _seed_account(session_maker, credits=15)
    async with session_maker() as db:
        assert await check_sufficient_credits(account_id, db, cost=10) is True
        assert await check_sufficient_credits(account_id, db, cost=15) is True
        assert await check_sufficient_credits(account_id, db, cost=20) is False


@pytest.mark.asyncio
async def test_deduct_lowers_balance_and_journals_debit(session_maker):
    account_id = await _seed_account(session_maker, credits=50)
    async with session_maker() as db:
        balance = await deduct_credits(
            account_id,
            db,
            cost=10,
            reason="text_to_thumbnail generation",
            reference_type="generation",
            reference_id="gen-1",
        )
        assert balance == 40

    async with session_maker() as db:
        assert await get_credit_balance(account_id, db) == 40
        entries = (await db.execute(select(CreditLedger))).scalars().all()
        assert len(entries) == 1
        assert entries[0].entry_type == "debit"
        assert entries[0].delta_credits == -10
        assert entries[0].balance_after == 40
        assert entries[0].reference_id == "gen-1"


@pytest.mark.asyncio
async def test_deduct_rejects_when_balance_is_short(session_maker):
    account_id = await _seed_account(session_maker, credits=5)
    async with session_maker() as db:
        with pytest.raises(InsufficientCreditsError) as exc_info:
            await deduct_credits(account_id, db, cost=10, reason="test")
        assert exc_info.value.required == 10
        assert exc_info.value.available == 5

    async with session_maker() as db:
        assert await get_credit_balance(account_id, db) == 5


@pytest.mark.asyncio
async def test_missing_account_raises_account_not_found(session_maker):
    async with session_maker() as db:
        with pytest.raises(AccountNotFoundError):
            await check_sufficient_credits("ghost", db, cost=10)
        with pytest.raises(AccountNotFoundError):
            await deduct_credits("ghost", db, cost=10, reason="test")
        with pytest.raises(AccountNotFoundError):
            await add_credits("ghost", db, amount=10)


@pytest.mark.asyncio
async def test_repeated_deductions_never_overdraw(session_maker):
    account_id = await _seed_account(session_maker, credits=20)

    async with session_maker() as db:
        assert await deduct_credits(account_id, db, cost=15, reason="first") == 5

    async with session_maker() as db:
        with pytest.raises(InsufficientCreditsError):
            await deduct_credits(account_id, db, cost=15, reason="second")

    async with session_maker() as db:
        assert await get_credit_balance(account_id, db) == 5
        debits = (await db.execute(select(CreditLedger))).scalars().all()
        assert [entry.reason for entry in debits] == ["first"]


@pytest.mark.asyncio
async def test_add_credits_has_no_upper_bound_and_rejects_non_positive(session_maker):
    account_id = await _seed_account(session_maker, credits=0)
    async with session_maker() as db:
        assert await add_credits(account_id, db, amount=12000, entry_type="purchase") == 12000
        with pytest.raises(ValueError):
            await add_credits(account_id, db, amount=0)


@pytest.mark.asyncio
async def test_credit_summary_lists_costs_and_entries(session_maker):
    account_id = await _seed_account(session_maker, credits=0)
    async with session_maker() as db:
        await add_credits(account_id, db, amount=50, entry_type="signup_bonus", reason="Welcome credits")
        summary = await get_credit_summary(account_id, db)

    assert summary["balance"] == 50
    assert summary["costs"] == {
        "text_to_thumbnail": 10,
        "image_to_thumbnail": 20,
        "youtube_to_thumbnail": 20,
    }
    assert summary["recent_entries"][0]["entry_type"] == "signup_bonus"
