"""Unit tests for payment initiation and status reconciliation."""

from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest

from src.models.billing import Contract, ContractStatus, FeeKind, PaymentMethod, Rent, RentStatus
from src.models.payment import CardOrder, GatewayResult, MobilePayment, PaymentOutcome
from src.models.user import Principal
from src.services.errors import (
    AuthorizationError,
    ConflictError,
    InvalidPhoneFormatError,
    NotFoundError,
    ValidationError,
)
from src.services.payment_flow import PaymentFlowService

FRONTEND = "http://localhost:3000"


@pytest.fixture
def repos():
    return {"business": AsyncMock(), "contract": AsyncMock(), "rent": AsyncMock()}


@pytest.fixture
def billing():
    return AsyncMock()


@pytest.fixture
def gateway():
    return AsyncMock()


@pytest.fixture
def service(repos, billing, gateway, mock_dispatcher, approved_business):
    repos["business"].get_by_id.return_value = approved_business
    return PaymentFlowService(
        business_repo=repos["business"],
        contract_repo=repos["contract"],
        rent_repo=repos["rent"],
        billing=billing,
        gateway=gateway,
        dispatcher=mock_dispatcher,
        frontend_url=FRONTEND + "/",
    )


@pytest.fixture
def pending_contract(approved_business):
    return Contract(
        business_id=approved_business.id,
        owner_id=approved_business.owner_id,
        amount=approved_business.contract_fee,
    )


@pytest.fixture
def pending_rent(approved_business):
    return Rent(
        business_id=approved_business.id,
        owner_id=approved_business.owner_id,
        amount=approved_business.rent_fee,
        month=date(2024, 4, 1),
    )


@pytest.mark.asyncio
async def test_card_contract_payment_stores_order_reference(
    service, owner, approved_business, billing, gateway, repos, pending_contract
):
    billing.get_or_create_contract.return_value = pending_contract
    gateway.create_card_order.return_value = CardOrder(
        order_reference="ORD-1", payment_page_url="https://pay/ORD-1"
    )

    initiation = await service.initiate_contract_payment(
        owner, approved_business.id, PaymentMethod.CARD
    )

    assert initiation.fee_kind == FeeKind.CONTRACT
    assert initiation.reference == "ORD-1"
    assert initiation.payment_page_url == "https://pay/ORD-1"
    assert initiation.amount == approved_business.contract_fee

    kwargs = gateway.create_card_order.call_args.kwargs
    assert kwargs["redirect_url"] == (
        f"{FRONTEND}/payment/success?business_id={approved_business.id}"
    )
    assert kwargs["cancel_url"] == f"{FRONTEND}/payment/failure"
    assert kwargs["cancel_text"] == "Cancel Contract Payment"
    repos["contract"].set_order_reference.assert_awaited_once_with(pending_contract.id, "ORD-1")


@pytest.mark.asyncio
async def test_mobile_rent_payment_stores_transaction_id(
    service, owner, approved_business, billing, gateway, repos, pending_rent
):
    billing.get_or_create_rent.return_value = pending_rent
    gateway.create_mobile_payment.return_value = MobilePayment(
        transaction_id="TX-9", message="Check your phone"
    )

    initiation = await service.initiate_rent_payment(
        owner,
        approved_business.id,
        PaymentMethod.MOBILE,
        phone_number="0991234567",
        today=date(2024, 4, 3),
    )

    assert initiation.fee_kind == FeeKind.RENT
    assert initiation.reference == "TX-9"
    assert initiation.message == "Check your phone"
    gateway.create_mobile_payment.assert_awaited_once_with(pending_rent.amount, "+265991234567")
    repos["rent"].set_transaction_id.assert_awaited_once_with(pending_rent.id, "TX-9")


@pytest.mark.asyncio
async def test_mobile_payment_requires_phone(service, owner, approved_business, billing):
    with pytest.raises(ValidationError) as exc_info:
        await service.initiate_contract_payment(owner, approved_business.id, PaymentMethod.MOBILE)

    assert exc_info.value.field == "phone_number"
    billing.get_or_create_contract.assert_not_called()


@pytest.mark.asyncio
async def test_mobile_payment_rejects_bad_phone_before_any_record(
    service, owner, approved_business, billing, gateway
):
    with pytest.raises(InvalidPhoneFormatError):
        await service.initiate_contract_payment(
            owner, approved_business.id, PaymentMethod.MOBILE, phone_number="12345"
        )

    billing.get_or_create_contract.assert_not_called()
    gateway.create_mobile_payment.assert_not_called()


@pytest.mark.asyncio
async def test_initiation_by_non_owner_is_denied(service, approved_business, billing):
    stranger = Principal(id=999)

    with pytest.raises(AuthorizationError):
        await service.initiate_contract_payment(stranger, approved_business.id, PaymentMethod.CARD)

    billing.get_or_create_contract.assert_not_called()


@pytest.mark.asyncio
async def test_initiation_guard_rejects_concurrent_start(
    repos, billing, gateway, mock_dispatcher, approved_business, owner
):
    lock_helper = Mock()

    @asynccontextmanager
    async def held_elsewhere(business_id, period):
        yield False

    lock_helper.acquire_payment_lock = held_elsewhere
    repos["business"].get_by_id.return_value = approved_business
    service = PaymentFlowService(
        repos["business"],
        repos["contract"],
        repos["rent"],
        billing,
        gateway,
        mock_dispatcher,
        FRONTEND,
        lock_helper=lock_helper,
    )

    with pytest.raises(ConflictError):
        await service.initiate_rent_payment(
            owner, approved_business.id, PaymentMethod.CARD, today=date(2024, 4, 3)
        )

    billing.get_or_create_rent.assert_not_called()


@pytest.mark.asyncio
async def test_check_status_marks_contract_paid_once_and_notifies(
    service, owner, approved_business, gateway, repos, pending_contract, mock_dispatcher
):
    pending_contract.order_reference = "ORD-1"
    repos["rent"].get_by_reference.return_value = None
    repos["contract"].get_by_reference.return_value = pending_contract
    repos["contract"].mark_paid.return_value = True
    gateway.check_order_status.return_value = GatewayResult(
        outcome=PaymentOutcome.PAID, reference="ORD-1"
    )
    now = datetime(2024, 3, 10, 9, 0)

    result = await service.check_payment_status(owner, approved_business.id, "ORD-1", now=now)

    assert result.outcome == PaymentOutcome.PAID
    assert result.newly_paid is True
    assert result.fee_kind == FeeKind.CONTRACT
    repos["contract"].mark_paid.assert_awaited_once_with(
        pending_contract.id, now, datetime(2025, 3, 10, 9, 0)
    )
    gateway.check_mobile_payment_status.assert_not_called()
    mock_dispatcher.notify.assert_awaited_once()
    assert mock_dispatcher.notify.call_args.kwargs["link"] == "/payments"


@pytest.mark.asyncio
async def test_check_status_concurrent_paid_transition_does_not_notify(
    service, owner, approved_business, gateway, repos, pending_contract, mock_dispatcher
):
    pending_contract.order_reference = "ORD-1"
    repos["rent"].get_by_reference.return_value = None
    repos["contract"].get_by_reference.return_value = pending_contract
    repos["contract"].mark_paid.return_value = False
    gateway.check_order_status.return_value = GatewayResult(
        outcome=PaymentOutcome.PAID, reference="ORD-1"
    )

    result = await service.check_payment_status(owner, approved_business.id, "ORD-1")

    assert result.newly_paid is False
    mock_dispatcher.notify.assert_not_called()


@pytest.mark.asyncio
async def test_check_status_of_paid_record_skips_gateway(
    service, owner, approved_business, gateway, repos, pending_rent
):
    paid = pending_rent.model_copy(update={"status": RentStatus.PAID, "transaction_id": "TX-9"})
    repos["rent"].get_by_reference.return_value = paid

    result = await service.check_payment_status(owner, approved_business.id, "TX-9")

    assert result.outcome == PaymentOutcome.PAID
    assert result.gateway_checked is False
    gateway.check_mobile_payment_status.assert_not_called()
    gateway.check_order_status.assert_not_called()


@pytest.mark.asyncio
async def test_check_status_mobile_failure_clears_transaction(
    service, owner, approved_business, gateway, repos, pending_rent
):
    pending_rent.transaction_id = "TX-9"
    repos["rent"].get_by_reference.return_value = pending_rent
    gateway.check_mobile_payment_status.return_value = GatewayResult(
        outcome=PaymentOutcome.FAILED, reference="TX-9", message="Declined"
    )

    result = await service.check_payment_status(owner, approved_business.id, "TX-9")

    assert result.outcome == PaymentOutcome.FAILED
    repos["rent"].set_transaction_id.assert_awaited_once_with(pending_rent.id, None)
    repos["rent"].mark_paid.assert_not_called()


@pytest.mark.asyncio
async def test_check_status_card_failure_keeps_reference(
    service, owner, approved_business, gateway, repos, pending_contract
):
    pending_contract.order_reference = "ORD-1"
    repos["rent"].get_by_reference.return_value = None
    repos["contract"].get_by_reference.return_value = pending_contract
    gateway.check_order_status.return_value = GatewayResult(
        outcome=PaymentOutcome.FAILED, reference="ORD-1"
    )

    await service.check_payment_status(owner, approved_business.id, "ORD-1")

    repos["contract"].set_transaction_id.assert_not_called()
    assert pending_contract.status == ContractStatus.PENDING


@pytest.mark.asyncio
async def test_check_status_pending_changes_nothing(
    service, owner, approved_business, gateway, repos, pending_rent, mock_dispatcher
):
    pending_rent.transaction_id = "TX-9"
    repos["rent"].get_by_reference.return_value = pending_rent
    gateway.check_mobile_payment_status.return_value = GatewayResult(
        outcome=PaymentOutcome.PENDING, reference="TX-9"
    )

    result = await service.check_payment_status(owner, approved_business.id, "TX-9")

    assert result.outcome == PaymentOutcome.PENDING
    repos["rent"].mark_paid.assert_not_called()
    repos["rent"].set_transaction_id.assert_not_called()
    mock_dispatcher.notify.assert_not_called()


@pytest.mark.asyncio
async def test_check_status_unknown_reference(service, owner, approved_business, repos):
    repos["rent"].get_by_reference.return_value = None
    repos["contract"].get_by_reference.return_value = None

    with pytest.raises(NotFoundError, match="Payment record not found"):
        await service.check_payment_status(owner, approved_business.id, "nope")
