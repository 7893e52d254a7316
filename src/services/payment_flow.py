"""Payment flow service.

Orchestrates contract and rent payments: resolves the billing record through
the billing engine, hands it to the gateway, stores the returned reference,
and reconciles status checks back onto the record.
"""

from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import AsyncIterator, Optional, Union
from uuid import UUID

from src.logging import get_logger
from src.logging.audit import AuditLogger
from src.models.billing import (
    Contract,
    FeeKind,
    PaymentMethod,
    PaymentOverview,
    Rent,
    RentScheduleEntry,
)
from src.models.business import BusinessApplication
from src.models.clock import utcnow, utctoday
from src.models.notification import NotificationType
from src.models.payment import (
    GatewayResult,
    PaymentInitiation,
    PaymentOutcome,
    PaymentStatusResult,
)
from src.models.user import Principal
from src.security.permissions import PermissionChecker
from src.services.billing_engine import BillingEngine, add_one_year, first_of_month, period_label
from src.services.ctech_gateway import CtechPaymentGateway, normalize_phone_number
from src.services.errors import ConflictError, NotFoundError, ValidationError
from src.services.notification_dispatcher import NotificationDispatcher
from src.storage.postgres_business_repo import PostgresBusinessRepository
from src.storage.postgres_contract_repo import PostgresContractRepository
from src.storage.postgres_rent_repo import PostgresRentRepository
from src.storage.redis_locks import RedisLockHelper

logger = get_logger(__name__)

BillingRecord = Union[Contract, Rent]


class PaymentFlowService:
    """Initiate and reconcile contract and rent payments."""

    def __init__(
        self,
        business_repo: PostgresBusinessRepository,
        contract_repo: PostgresContractRepository,
        rent_repo: PostgresRentRepository,
        billing: BillingEngine,
        gateway: CtechPaymentGateway,
        dispatcher: NotificationDispatcher,
        frontend_url: str,
        lock_helper: Optional[RedisLockHelper] = None,
        permissions: Optional[PermissionChecker] = None,
    ):
        """
        Initialize payment flow.

        Args:
            business_repo: Business application repository
            contract_repo: Contract repository
            rent_repo: Rent repository
            billing: Billing engine deciding which record a payment settles
            gateway: Payment provider adapter
            dispatcher: Owner notifications on confirmed payments
            frontend_url: Base URL for card redirect targets
            lock_helper: Optional Redis initiation guard
            permissions: Ownership checks
        """
        self.business_repo = business_repo
        self.contract_repo = contract_repo
        self.rent_repo = rent_repo
        self.billing = billing
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.frontend_url = frontend_url.rstrip("/")
        self.lock_helper = lock_helper
        self.permissions = permissions or PermissionChecker()

    async def _load_owned_business(
        self, principal: Principal, business_id: UUID, action: str
    ) -> BusinessApplication:
        business = await self.business_repo.get_by_id(business_id)
        if business is None:
            raise NotFoundError("business", business_id, "Business not found")
        self.permissions.require_owner(principal, business.owner_id, "business", business_id, action)
        return business

    @asynccontextmanager
    async def _initiation_guard(self, business_id: UUID, period: str) -> AsyncIterator[None]:
        # Best-effort: narrows concurrent initiation for one period, does not close it
        if self.lock_helper is None:
            yield
            return

        async with self.lock_helper.acquire_payment_lock(business_id, period) as acquired:
            if not acquired:
                logger.warning(
                    "payment_initiation_in_progress",
                    business_id=str(business_id),
                    period=period,
                )
                raise ConflictError("A payment for this period is already being started", period)
            yield

    @staticmethod
    def _validate_method(method: PaymentMethod, phone_number: Optional[str]) -> Optional[str]:
        if method == PaymentMethod.MOBILE:
            if not phone_number:
                raise ValidationError(
                    "Phone number is required for mobile payment", field="phone_number"
                )
            return normalize_phone_number(phone_number)
        return None

    async def initiate_contract_payment(
        self,
        principal: Principal,
        business_id: UUID,
        method: PaymentMethod,
        phone_number: Optional[str] = None,
    ) -> PaymentInitiation:
        """
        Start paying the contract fee.

        Args:
            principal: Caller; must own the business
            business_id: Approved business
            method: Card redirect or mobile push
            phone_number: Required for mobile payments

        Returns:
            PaymentInitiation with the reference to poll

        Raises:
            AlreadyPaidError: Contract already paid
            ValidationError: Missing or malformed phone number
            GatewayError: Provider failure
        """
        phone = self._validate_method(method, phone_number)
        business = await self._load_owned_business(principal, business_id, "pay contract")

        async with self._initiation_guard(business.id, FeeKind.CONTRACT.value):
            contract = await self.billing.get_or_create_contract(business)
            return await self._start_payment(
                principal, business, FeeKind.CONTRACT, contract, method, phone
            )

    async def initiate_rent_payment(
        self,
        principal: Principal,
        business_id: UUID,
        method: PaymentMethod,
        phone_number: Optional[str] = None,
        today: Optional[date] = None,
    ) -> PaymentInitiation:
        """
        Start paying the current month's rent.

        Raises:
            ContractRequiredError: Contract not paid yet
            AlreadyPaidError: This month's rent already paid
            ValidationError: Missing or malformed phone number
            GatewayError: Provider failure
        """
        today = today or utctoday()
        phone = self._validate_method(method, phone_number)
        business = await self._load_owned_business(principal, business_id, "pay rent")
        period = f"{FeeKind.RENT.value}:{period_label(first_of_month(today))}"

        async with self._initiation_guard(business.id, period):
            rent = await self.billing.get_or_create_rent(business, today)
            return await self._start_payment(principal, business, FeeKind.RENT, rent, method, phone)

    async def _start_payment(
        self,
        principal: Principal,
        business: BusinessApplication,
        fee_kind: FeeKind,
        record: BillingRecord,
        method: PaymentMethod,
        phone: Optional[str],
    ) -> PaymentInitiation:
        repo = self.contract_repo if fee_kind == FeeKind.CONTRACT else self.rent_repo

        if method == PaymentMethod.CARD:
            cancel_text = (
                "Cancel Contract Payment" if fee_kind == FeeKind.CONTRACT else "Cancel Rent Payment"
            )
            order = await self.gateway.create_card_order(
                record.amount,
                redirect_url=f"{self.frontend_url}/payment/success?business_id={business.id}",
                cancel_url=f"{self.frontend_url}/payment/failure",
                cancel_text=cancel_text,
            )
            await repo.set_order_reference(record.id, order.order_reference)
            initiation = PaymentInitiation(
                fee_kind=fee_kind,
                method=method,
                record_id=record.id,
                amount=record.amount,
                reference=order.order_reference,
                payment_page_url=order.payment_page_url,
            )
        else:
            payment = await self.gateway.create_mobile_payment(record.amount, phone)
            await repo.set_transaction_id(record.id, payment.transaction_id)
            initiation = PaymentInitiation(
                fee_kind=fee_kind,
                method=method,
                record_id=record.id,
                amount=record.amount,
                reference=payment.transaction_id,
                message=payment.message,
            )

        AuditLogger.log_payment_initiated(
            actor_id=principal.id,
            fee_kind=fee_kind.value,
            record_id=record.id,
            amount=record.amount,
            method=method.value,
            reference=initiation.reference,
        )
        logger.info(
            "payment_initiated",
            business_id=str(business.id),
            fee_kind=fee_kind.value,
            method=method.value,
            record_id=str(record.id),
        )

        return initiation

    async def check_payment_status(
        self,
        principal: Principal,
        business_id: UUID,
        reference: str,
        now: Optional[datetime] = None,
    ) -> PaymentStatusResult:
        """
        Reconcile a contract or rent payment by its card or mobile reference.

        A record that is already paid is returned as stored without calling
        the provider. The paid transition is applied at most once.

        Raises:
            NotFoundError: No record of this business carries the reference
            GatewayError: Provider failure
        """
        now = now or utcnow()
        business = await self._load_owned_business(principal, business_id, "check payment")

        record: Optional[BillingRecord] = await self.rent_repo.get_by_reference(
            business.id, reference
        )
        fee_kind = FeeKind.RENT
        if record is None:
            record = await self.contract_repo.get_by_reference(business.id, reference)
            fee_kind = FeeKind.CONTRACT
        if record is None:
            raise NotFoundError("payment record", reference, "Payment record not found")

        if record.is_paid:
            return PaymentStatusResult(
                fee_kind=fee_kind,
                record_id=record.id,
                reference=reference,
                outcome=PaymentOutcome.PAID,
                gateway_checked=False,
            )

        is_mobile = record.transaction_id == reference
        if is_mobile:
            result = await self.gateway.check_mobile_payment_status(reference)
        else:
            result = await self.gateway.check_order_status(reference)

        method = PaymentMethod.MOBILE if is_mobile else PaymentMethod.CARD
        newly_paid = False

        if result.outcome == PaymentOutcome.PAID:
            newly_paid = await self._apply_paid(fee_kind, record, method, now)
            if newly_paid:
                AuditLogger.log_payment_result(
                    principal.id, fee_kind.value, record.id, reference, paid=True
                )
                await self._notify_paid(business, fee_kind, record, now)
        elif result.outcome == PaymentOutcome.FAILED:
            await self._handle_failed(principal, fee_kind, record, result, is_mobile)

        logger.info(
            "payment_status_checked",
            business_id=str(business.id),
            fee_kind=fee_kind.value,
            outcome=result.outcome.value,
            newly_paid=newly_paid,
        )

        return PaymentStatusResult(
            fee_kind=fee_kind,
            record_id=record.id,
            reference=reference,
            outcome=result.outcome,
            message=result.message,
            newly_paid=newly_paid,
            raw=result.raw,
        )

    async def _apply_paid(
        self, fee_kind: FeeKind, record: BillingRecord, method: PaymentMethod, now: datetime
    ) -> bool:
        if fee_kind == FeeKind.CONTRACT:
            return await self.contract_repo.mark_paid(record.id, now, add_one_year(now))
        return await self.rent_repo.mark_paid(record.id, now, method)

    async def _handle_failed(
        self,
        principal: Principal,
        fee_kind: FeeKind,
        record: BillingRecord,
        result: GatewayResult,
        is_mobile: bool,
    ) -> None:
        # A fresh transaction id is needed for the retry
        if is_mobile:
            repo = self.contract_repo if fee_kind == FeeKind.CONTRACT else self.rent_repo
            await repo.set_transaction_id(record.id, None)

        AuditLogger.log_payment_result(
            principal.id,
            fee_kind.value,
            record.id,
            result.reference,
            paid=False,
            message=result.message,
        )

    async def _notify_paid(
        self,
        business: BusinessApplication,
        fee_kind: FeeKind,
        record: BillingRecord,
        now: datetime,
    ) -> None:
        if fee_kind == FeeKind.CONTRACT:
            title = "Contract Payment Successful"
            message = (
                f"Your contract fee for {business.name} has been paid. "
                f"It is valid until {add_one_year(now):%Y-%m-%d}."
            )
        else:
            title = "Rent Payment Successful"
            message = (
                f"Your rent of {record.amount} for {business.name} "
                f"({period_label(record.month)}) has been received."
            )

        await self.dispatcher.notify(
            recipient_id=business.owner_id,
            title=title,
            message=message,
            type=NotificationType.SUCCESS,
            link="/payments",
            metadata={"business_id": str(business.id), "fee_kind": fee_kind.value},
        )

    async def rent_schedule(
        self, principal: Principal, business_id: UUID, today: Optional[date] = None
    ) -> list[RentScheduleEntry]:
        """The owner's upcoming three rent months."""
        business = await self._load_owned_business(principal, business_id, "view rent schedule")
        return await self.billing.rent_schedule(business, today or utctoday())

    async def rent_history(self, principal: Principal, business_id: UUID) -> list[Rent]:
        """The owner's last twelve rent rows."""
        business = await self._load_owned_business(principal, business_id, "view rent history")
        return await self.billing.rent_history(business)

    async def payment_overview(
        self, principal: Principal, business_id: UUID, today: Optional[date] = None
    ) -> PaymentOverview:
        business = await self._load_owned_business(principal, business_id, "view payments")
        return await self.billing.payment_overview(business, today or utctoday())

    async def active_contract(self, principal: Principal, business_id: UUID) -> Contract:
        business = await self._load_owned_business(principal, business_id, "view contract")
        return await self.billing.active_contract(business)
