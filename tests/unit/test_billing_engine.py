"""Unit tests for the billing engine.

Covers the calendar helpers, the rent schedule generator, contract and rent
resolution, and the admin reports.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from src.models.billing import Contract, ContractStatus, Rent, RentStatus
from src.models.business import ApplicationStatus
from src.services.billing_engine import (
    BillingEngine,
    add_months,
    add_one_year,
    generate_rent_schedule,
    period_label,
)
from src.services.errors import (
    AlreadyPaidError,
    AuthorizationError,
    ConflictError,
    ContractRequiredError,
    NotFoundError,
)


@pytest.fixture
def business_repo():
    return AsyncMock()


@pytest.fixture
def contract_repo():
    return AsyncMock()


@pytest.fixture
def rent_repo():
    return AsyncMock()


@pytest.fixture
def engine(business_repo, contract_repo, rent_repo):
    return BillingEngine(business_repo, contract_repo, rent_repo)


def make_contract(business, status=ContractStatus.PENDING, payment_date=None, expiry=None):
    return Contract(
        business_id=business.id,
        owner_id=business.owner_id,
        amount=business.contract_fee,
        status=status,
        payment_date=payment_date,
        expiry=expiry,
    )


def make_rent(business, month, status=RentStatus.PENDING):
    return Rent(
        business_id=business.id,
        owner_id=business.owner_id,
        amount=business.rent_fee,
        month=month,
        status=status,
    )


@pytest.mark.parametrize(
    "moment, expected",
    [
        (date(2024, 3, 10), date(2025, 3, 10)),
        (date(2024, 2, 29), date(2025, 2, 28)),
        (datetime(2023, 12, 31, 8, 30), datetime(2024, 12, 31, 8, 30)),
    ],
)
def test_add_one_year(moment, expected):
    assert add_one_year(moment) == expected


def test_add_months_clamps_to_month_end():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2024, 12, 1), 1) == date(2025, 1, 1)
    assert add_months(date(2024, 3, 15), -3) == date(2023, 12, 15)


def test_period_label():
    assert period_label(date(2024, 3, 1)) == "2024-03"


def test_generate_rent_schedule_yields_three_months_across_year_end():
    stored = {date(2025, 1, 1): RentStatus.PAID}

    entries = list(generate_rent_schedule(date(2024, 12, 20), Decimal("5000"), stored))

    assert [e.month for e in entries] == [date(2024, 12, 1), date(2025, 1, 1), date(2025, 2, 1)]
    assert [e.due_date for e in entries] == [
        date(2024, 12, 5),
        date(2025, 1, 5),
        date(2025, 2, 5),
    ]
    assert [e.status for e in entries] == [RentStatus.PENDING, RentStatus.PAID, RentStatus.PENDING]
    assert all(e.amount == Decimal("5000") for e in entries)


def test_generate_rent_schedule_is_repeatable():
    first = list(generate_rent_schedule(date(2024, 5, 2), Decimal("10"), {}))
    second = list(generate_rent_schedule(date(2024, 5, 2), Decimal("10"), {}))
    assert first == second


@pytest.mark.asyncio
async def test_get_or_create_contract_requires_approval(engine, approved_business, contract_repo):
    pending = approved_business.model_copy(
        update={"status": ApplicationStatus.PENDING, "rent_fee": Decimal("0")}
    )

    with pytest.raises(ConflictError):
        await engine.get_or_create_contract(pending)

    contract_repo.create.assert_not_called()


@pytest.mark.asyncio
async def test_get_or_create_contract_creates_first_contract(
    engine, approved_business, contract_repo
):
    contract_repo.get_latest_for_business.return_value = None
    created = make_contract(approved_business)
    contract_repo.create.return_value = created

    result = await engine.get_or_create_contract(approved_business)

    assert result is created
    entity = contract_repo.create.call_args.args[0]
    assert entity.amount == approved_business.contract_fee
    assert entity.owner_id == approved_business.owner_id


@pytest.mark.asyncio
async def test_get_or_create_contract_reuses_pending(engine, approved_business, contract_repo):
    pending = make_contract(approved_business)
    contract_repo.get_latest_for_business.return_value = pending

    result = await engine.get_or_create_contract(approved_business)

    assert result is pending
    contract_repo.create.assert_not_called()


@pytest.mark.asyncio
async def test_get_or_create_contract_rejects_when_paid(engine, approved_business, contract_repo):
    paid = make_contract(
        approved_business,
        status=ContractStatus.PAID,
        payment_date=datetime(2024, 3, 10),
        expiry=datetime(2025, 3, 10),
    )
    contract_repo.get_latest_for_business.return_value = paid

    with pytest.raises(AlreadyPaidError) as exc_info:
        await engine.get_or_create_contract(approved_business)

    assert exc_info.value.period == "2025-03-10"


@pytest.mark.asyncio
async def test_get_or_create_contract_renews_after_expiry(engine, approved_business, contract_repo):
    expired = make_contract(approved_business, status=ContractStatus.EXPIRED)
    contract_repo.get_latest_for_business.return_value = expired
    renewal = make_contract(approved_business)
    contract_repo.create.return_value = renewal

    result = await engine.get_or_create_contract(approved_business)

    assert result is renewal
    contract_repo.create.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_or_create_rent_requires_paid_contract(
    engine, approved_business, contract_repo, rent_repo
):
    contract_repo.get_latest_for_business.return_value = make_contract(approved_business)

    with pytest.raises(ContractRequiredError):
        await engine.get_or_create_rent(approved_business, date(2024, 4, 2))

    rent_repo.create_or_get.assert_not_called()


@pytest.mark.asyncio
async def test_get_or_create_rent_creates_current_month(
    engine, approved_business, contract_repo, rent_repo
):
    contract_repo.get_latest_for_business.return_value = make_contract(
        approved_business, status=ContractStatus.PAID
    )
    rent_repo.get_for_month.return_value = None
    rent_repo.create_or_get.return_value = make_rent(approved_business, date(2024, 4, 1))

    rent = await engine.get_or_create_rent(approved_business, date(2024, 4, 17))

    assert rent.month == date(2024, 4, 1)
    rent_repo.get_for_month.assert_awaited_once_with(approved_business.id, date(2024, 4, 1))
    entity = rent_repo.create_or_get.call_args.args[0]
    assert entity.amount == approved_business.rent_fee


@pytest.mark.asyncio
async def test_get_or_create_rent_already_paid(engine, approved_business, contract_repo, rent_repo):
    contract_repo.get_latest_for_business.return_value = make_contract(
        approved_business, status=ContractStatus.PAID
    )
    rent_repo.get_for_month.return_value = make_rent(
        approved_business, date(2024, 4, 1), status=RentStatus.PAID
    )

    with pytest.raises(AlreadyPaidError) as exc_info:
        await engine.get_or_create_rent(approved_business, date(2024, 4, 17))

    assert exc_info.value.period == "2024-04"


@pytest.mark.asyncio
async def test_active_contract_missing(engine, approved_business, contract_repo):
    contract_repo.get_latest_paid.return_value = None

    with pytest.raises(NotFoundError, match="No active contract found"):
        await engine.active_contract(approved_business)


@pytest.mark.asyncio
async def test_payment_overview_keeps_status_enums(
    engine, approved_business, contract_repo, rent_repo
):
    paid_at = datetime(2024, 3, 15, 10, 0)
    contract_repo.get_latest_for_business.return_value = make_contract(
        approved_business, status=ContractStatus.PAID, payment_date=paid_at
    )
    rent_repo.get_for_month.return_value = make_rent(
        approved_business, date(2024, 4, 1), status=RentStatus.OVERDUE
    )

    overview = await engine.payment_overview(approved_business, date(2024, 4, 17))

    assert overview.contract.status is ContractStatus.PAID
    assert overview.contract.payment_date == paid_at
    assert overview.rent.status is RentStatus.OVERDUE
    assert overview.rent_month == date(2024, 4, 1)


@pytest.mark.asyncio
async def test_revenue_summary_sums_sources(engine, admin, contract_repo, rent_repo):
    contract_repo.total_paid_amount.return_value = Decimal("150.00")
    rent_repo.total_paid_amount.side_effect = [Decimal("15000.00"), Decimal("5000.00")]
    now = datetime(2024, 5, 20, 12, 0)

    summary = await engine.revenue_summary(admin, now)

    assert summary.total_revenue == Decimal("15150.00")
    assert summary.breakdown.contract_revenue == Decimal("150.00")
    assert summary.breakdown.total_rent_revenue == Decimal("15000.00")
    assert summary.breakdown.last_month_rent_revenue == Decimal("5000.00")
    assert rent_repo.total_paid_amount.await_args_list[1].kwargs["since"] == datetime(
        2024, 4, 20, 12, 0
    )


@pytest.mark.asyncio
async def test_revenue_summary_is_admin_only(engine, owner):
    with pytest.raises(AuthorizationError):
        await engine.revenue_summary(owner, datetime(2024, 5, 20))


@pytest.mark.asyncio
async def test_unpaid_businesses_flags_contract_and_overdue_rent(
    engine, admin, approved_business, business_repo, contract_repo, rent_repo
):
    today = date(2024, 4, 10)
    settled = approved_business.model_copy(update={"id": uuid4(), "owner_id": 202})
    business_repo.list_by_status.return_value = [approved_business, settled]

    def latest_contract(business_id):
        if business_id == approved_business.id:
            return make_contract(approved_business)
        return make_contract(settled, status=ContractStatus.PAID)

    def latest_rent(business_id):
        if business_id == approved_business.id:
            return None
        return make_rent(settled, date(2024, 4, 1), status=RentStatus.PAID)

    contract_repo.get_latest_for_business.side_effect = latest_contract
    rent_repo.get_latest_for_business.side_effect = latest_rent

    report = await engine.unpaid_businesses(admin, today)

    assert len(report) == 1
    row = report[0]
    assert row.business_id == approved_business.id
    assert row.payment_issues.contract_unpaid is True
    assert row.payment_issues.rent_overdue is False
    assert row.payment_issues.contract_amount == approved_business.contract_fee


@pytest.mark.asyncio
async def test_unpaid_businesses_overdue_only_after_due_date(
    engine, admin, approved_business, business_repo, contract_repo, rent_repo
):
    business_repo.list_by_status.return_value = [approved_business]
    contract_repo.get_latest_for_business.return_value = make_contract(
        approved_business, status=ContractStatus.PAID, expiry=datetime.now() + timedelta(days=90)
    )
    rent_repo.get_latest_for_business.return_value = make_rent(approved_business, date(2024, 4, 1))

    on_due_date = await engine.unpaid_businesses(admin, date(2024, 4, 5))
    after_due_date = await engine.unpaid_businesses(admin, date(2024, 4, 6))

    assert on_due_date == []
    assert len(after_due_date) == 1
    assert after_due_date[0].payment_issues.rent_overdue is True
    assert after_due_date[0].payment_issues.last_rent_due_date == date(2024, 4, 5)
