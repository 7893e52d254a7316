"""End-to-end licensing flow on a real database session.

Application, approval, contract payment, location pairing and rent payment
run through the services and repositories; only the payment provider is
mocked.
"""

from datetime import date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from src.models.billing import ContractStatus, PaymentMethod, RentStatus
from src.models.business import ApplicationStatus
from src.models.payment import CardOrder, GatewayResult, MobilePayment, PaymentOutcome
from src.models.user import UserInput, UserRole
from src.services.application_workflow import ApplicationWorkflow
from src.services.billing_engine import BillingEngine
from src.services.ctech_gateway import CtechPaymentGateway
from src.services.errors import (
    AlreadyPaidError,
    ContractRequiredError,
    LocationUnavailableError,
)
from src.services.location_allocator import LocationAllocator
from src.services.notification_dispatcher import NotificationDispatcher
from src.services.payment_flow import PaymentFlowService
from src.storage.postgres_business_repo import PostgresBusinessRepository
from src.storage.postgres_contract_repo import PostgresContractRepository
from src.storage.postgres_location_repo import PostgresLocationRepository
from src.storage.postgres_notification_repo import PostgresNotificationRepository
from src.storage.postgres_rent_repo import PostgresRentRepository
from src.storage.postgres_user_repo import PostgresUserRepository

PAID_AT = datetime(2024, 3, 15, 10, 0)


class Market:
    """Services wired to one session."""

    def __init__(self, session):
        self.users = PostgresUserRepository(session)
        self.businesses = PostgresBusinessRepository(session)
        self.contracts = PostgresContractRepository(session)
        self.rents = PostgresRentRepository(session)
        self.locations = PostgresLocationRepository(session)
        self.gateway = AsyncMock(spec=CtechPaymentGateway)
        self.dispatcher = NotificationDispatcher(
            PostgresNotificationRepository(session), self.users
        )
        self.workflow = ApplicationWorkflow(self.businesses, self.dispatcher, Decimal("50.00"))
        self.billing = BillingEngine(self.businesses, self.contracts, self.rents)
        self.allocator = LocationAllocator(self.locations, self.businesses)
        self.payments = PaymentFlowService(
            self.businesses,
            self.contracts,
            self.rents,
            self.billing,
            self.gateway,
            self.dispatcher,
            frontend_url="https://market.example.com",
        )

    async def principal(self, username: str, role: UserRole = UserRole.USER):
        user = await self.users.create(
            UserInput(username=username, email=f"{username}@example.com", role=role)
        )
        return user.as_principal()

    async def approved_business(self, owner, admin, name: str):
        business = await self.workflow.submit(owner, name, "Selling at the central market")
        return await self.workflow.set_status(
            admin, business.id, ApplicationStatus.APPROVED, rent_fee=Decimal("5000.00")
        )


@pytest_asyncio.fixture
async def market(session):
    return Market(session)


@pytest_asyncio.fixture
async def admin(market):
    return await market.principal("admin", UserRole.ADMIN)


@pytest_asyncio.fixture
async def owner(market):
    return await market.principal("chikondi")


async def pay_contract(market, owner, business_id, transaction_id="TXN-C1"):
    market.gateway.create_mobile_payment.return_value = MobilePayment(
        transaction_id=transaction_id
    )
    market.gateway.check_mobile_payment_status.return_value = GatewayResult(
        outcome=PaymentOutcome.PAID, reference=transaction_id
    )
    await market.payments.initiate_contract_payment(
        owner, business_id, PaymentMethod.MOBILE, "0991 234 567"
    )
    return await market.payments.check_payment_status(
        owner, business_id, transaction_id, now=PAID_AT
    )


@pytest.mark.asyncio
async def test_full_licensing_flow(market, admin, owner):
    business = await market.approved_business(owner, admin, "Chikondi Grocery")
    assert business.rent_fee == Decimal("5000.00")

    result = await pay_contract(market, owner, business.id)

    assert result.newly_paid is True
    market.gateway.create_mobile_payment.assert_awaited_once_with(
        Decimal("50.00"), "+265991234567"
    )
    contract = await market.payments.active_contract(owner, business.id)
    assert contract.status == ContractStatus.PAID
    assert contract.expiry == datetime(2025, 3, 15, 10, 0)

    location = await market.allocator.create(admin, "Stall-12")
    business = await market.allocator.apply(owner, location.id)
    assert business.location == "Stall-12"
    assert await market.allocator.list_available() == []

    market.gateway.create_mobile_payment.return_value = MobilePayment(transaction_id="TXN-R1")
    market.gateway.check_mobile_payment_status.return_value = GatewayResult(
        outcome=PaymentOutcome.PAID, reference="TXN-R1"
    )
    initiation = await market.payments.initiate_rent_payment(
        owner, business.id, PaymentMethod.MOBILE, "0888000111", today=date(2024, 3, 20)
    )
    assert initiation.amount == Decimal("5000.00")

    paid_at = datetime(2024, 3, 20, 11, 0)
    result = await market.payments.check_payment_status(
        owner, business.id, "TXN-R1", now=paid_at
    )
    assert result.newly_paid is True

    rent = await market.rents.get_for_month(business.id, date(2024, 3, 1))
    assert rent.status == RentStatus.PAID
    assert rent.payment_method == PaymentMethod.MOBILE

    with pytest.raises(AlreadyPaidError):
        await market.payments.initiate_rent_payment(
            owner, business.id, PaymentMethod.MOBILE, "0888000111", today=date(2024, 3, 25)
        )

    revenue = await market.billing.revenue_summary(admin, now=paid_at)
    assert revenue.total_revenue == Decimal("5050.00")
    assert revenue.breakdown.last_month_rent_revenue == Decimal("5000.00")


@pytest.mark.asyncio
async def test_repeated_status_checks_apply_paid_once(market, admin, owner):
    business = await market.approved_business(owner, admin, "Chikondi Grocery")
    await pay_contract(market, owner, business.id)

    again = await market.payments.check_payment_status(
        owner, business.id, "TXN-C1", now=datetime(2024, 3, 16, 9, 0)
    )

    assert again.outcome == PaymentOutcome.PAID
    assert again.newly_paid is False
    assert again.gateway_checked is False
    assert market.gateway.check_mobile_payment_status.await_count == 1

    contract = await market.payments.active_contract(owner, business.id)
    assert contract.payment_date == PAID_AT

    notifications = await market.dispatcher.list_for(owner)
    paid = [n for n in notifications if n.title == "Contract Payment Successful"]
    assert len(paid) == 1


@pytest.mark.asyncio
async def test_second_business_cannot_take_occupied_location(market, admin, owner):
    first = await market.approved_business(owner, admin, "Chikondi Grocery")
    other_owner = await market.principal("thoko")
    await market.approved_business(other_owner, admin, "Thoko Tailoring")

    location = await market.allocator.create(admin, "Stall-12")
    await market.allocator.apply(owner, location.id)

    with pytest.raises(LocationUnavailableError):
        await market.allocator.apply(other_owner, location.id)

    second = await market.workflow.get_mine(other_owner)
    assert second.location is None
    assert (await market.businesses.get_by_id(first.id)).location == "Stall-12"


@pytest.mark.asyncio
async def test_pending_contract_appears_in_unpaid_report(market, admin, owner):
    business = await market.approved_business(owner, admin, "Chikondi Grocery")
    market.gateway.create_card_order.return_value = CardOrder(
        order_reference="ORD-1", payment_page_url="https://pay.example.com/ORD-1"
    )
    await market.payments.initiate_contract_payment(owner, business.id, PaymentMethod.CARD)

    report = await market.billing.unpaid_businesses(admin, today=date(2024, 3, 20))

    assert len(report) == 1
    issues = report[0].payment_issues
    assert issues.contract_unpaid is True
    assert issues.rent_overdue is False
    assert issues.contract_amount == Decimal("50.00")


@pytest.mark.asyncio
async def test_rent_requires_paid_contract(market, admin, owner):
    business = await market.approved_business(owner, admin, "Chikondi Grocery")

    overview = await market.payments.payment_overview(owner, business.id, today=date(2024, 3, 20))
    assert overview.contract is None
    assert overview.rent is None

    schedule = await market.payments.rent_schedule(owner, business.id, today=date(2024, 3, 20))
    assert [entry.month for entry in schedule] == [
        date(2024, 3, 1),
        date(2024, 4, 1),
        date(2024, 5, 1),
    ]
    assert all(entry.status == RentStatus.PENDING for entry in schedule)

    with pytest.raises(ContractRequiredError):
        await market.payments.initiate_rent_payment(
            owner, business.id, PaymentMethod.MOBILE, "0888000111", today=date(2024, 3, 20)
        )


@pytest.mark.asyncio
async def test_second_contract_payment_is_rejected(market, admin, owner):
    business = await market.approved_business(owner, admin, "Chikondi Grocery")
    await pay_contract(market, owner, business.id)

    with pytest.raises(AlreadyPaidError):
        await market.payments.initiate_contract_payment(
            owner, business.id, PaymentMethod.MOBILE, "0991234567"
        )

    contract = await market.payments.active_contract(owner, business.id)
    assert contract.amount == Decimal("50.00")
    assert contract.payment_date == PAID_AT
    assert market.gateway.create_mobile_payment.await_count == 1


@pytest.mark.asyncio
async def test_rent_initiations_in_one_month_share_a_record(market, admin, owner):
    business = await market.approved_business(owner, admin, "Chikondi Grocery")
    await pay_contract(market, owner, business.id)

    market.gateway.create_mobile_payment.return_value = MobilePayment(transaction_id="TXN-R1")
    first = await market.payments.initiate_rent_payment(
        owner, business.id, PaymentMethod.MOBILE, "0888000111", today=date(2024, 3, 20)
    )
    market.gateway.create_mobile_payment.return_value = MobilePayment(transaction_id="TXN-R2")
    second = await market.payments.initiate_rent_payment(
        owner, business.id, PaymentMethod.MOBILE, "0888000111", today=date(2024, 3, 28)
    )

    assert second.record_id == first.record_id
    assert len(await market.payments.rent_history(owner, business.id)) == 1


@pytest.mark.asyncio
async def test_repeated_checks_on_paid_rent_keep_payment_and_revenue(market, admin, owner):
    business = await market.approved_business(owner, admin, "Chikondi Grocery")
    await pay_contract(market, owner, business.id)

    market.gateway.create_mobile_payment.return_value = MobilePayment(transaction_id="TXN-R1")
    market.gateway.check_mobile_payment_status.return_value = GatewayResult(
        outcome=PaymentOutcome.PAID, reference="TXN-R1"
    )
    await market.payments.initiate_rent_payment(
        owner, business.id, PaymentMethod.MOBILE, "0888000111", today=date(2024, 3, 20)
    )
    rent_paid_at = datetime(2024, 3, 20, 11, 0)

    results = []
    for minutes in (0, 5, 10):
        results.append(
            await market.payments.check_payment_status(
                owner, business.id, "TXN-R1", now=rent_paid_at.replace(minute=minutes)
            )
        )

    assert [r.newly_paid for r in results] == [True, False, False]
    rent = await market.rents.get_for_month(business.id, date(2024, 3, 1))
    assert rent.payment_date == rent_paid_at

    revenue = await market.billing.revenue_summary(admin, now=rent_paid_at)
    assert revenue.total_revenue == Decimal("5050.00")
    assert revenue.breakdown.total_rent_revenue == Decimal("5000.00")
