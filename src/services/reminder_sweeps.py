"""Reminder sweeps.

Daily background jobs that remind owners about contract expiry and monthly
rent. Each sweep processes items independently: one failing item is logged
and counted, the rest of the sweep still runs.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from src.logging import get_logger
from src.models.billing import Contract, ContractStatus, RentStatus
from src.models.business import ApplicationStatus, BusinessApplication
from src.models.clock import utcnow
from src.models.notification import NotificationType
from src.services.billing_engine import first_of_month, rent_due_date
from src.services.email_service import (
    EmailMessage,
    ResendEmailService,
    contract_expired_email,
    contract_expiry_email,
    rent_overdue_email,
    rent_reminder_email,
)
from src.services.notification_dispatcher import NotificationDispatcher
from src.storage.postgres_business_repo import PostgresBusinessRepository
from src.storage.postgres_contract_repo import PostgresContractRepository
from src.storage.postgres_rent_repo import PostgresRentRepository
from src.storage.postgres_user_repo import PostgresUserRepository

logger = get_logger(__name__)

CONTRACT_REMINDER_DAYS = frozenset({30, 14, 7, 3, 1})
RENT_REMINDER_DAYS = frozenset({5, 3, 1})
RENT_OVERDUE_DAYS = frozenset({1, 3, 7, 14})


class ReminderSweeps:
    """Contract expiry and rent reminder jobs."""

    def __init__(
        self,
        business_repo: PostgresBusinessRepository,
        contract_repo: PostgresContractRepository,
        rent_repo: PostgresRentRepository,
        user_repo: PostgresUserRepository,
        dispatcher: NotificationDispatcher,
        email_service: Optional[ResendEmailService] = None,
    ):
        """
        Initialize reminder sweeps.

        Args:
            business_repo: Source of approved businesses
            contract_repo: Contract queries and expiry transition
            rent_repo: Current-month rent lookups and overdue transition
            user_repo: Owner lookup for email addresses
            dispatcher: In-app and push notifications
            email_service: Optional email transport; email is skipped when None
        """
        self.business_repo = business_repo
        self.contract_repo = contract_repo
        self.rent_repo = rent_repo
        self.user_repo = user_repo
        self.dispatcher = dispatcher
        self.email_service = email_service

    async def run_contract_sweep(self, now: Optional[datetime] = None) -> dict[str, int]:
        """
        Remind owners of upcoming contract expiry and expire lapsed contracts.

        Reminders go out when the expiry is exactly 30, 14, 7, 3 or 1 days
        away. Paid contracts whose expiry has passed move to expired.

        Returns:
            Dictionary with counts: {"reminded": n, "expired": n, "failed": n}
        """
        now = now or utcnow()
        today = now.date()
        logger.info("contract_sweep_started", date=today.isoformat())

        reminded = 0
        expired = 0
        failed = 0

        for contract in await self.contract_repo.list_paid():
            if contract.expiry is None:
                continue
            days_left = (contract.expiry.date() - today).days
            if days_left not in CONTRACT_REMINDER_DAYS:
                continue

            try:
                business = await self._business_for(contract)
                await self.dispatcher.notify(
                    recipient_id=contract.owner_id,
                    title="Contract Expiry Reminder",
                    message=(
                        f"Your contract for {business.name} will expire in "
                        f"{days_left} days. Please renew it to continue operating."
                    ),
                    type=NotificationType.WARNING,
                    link="/payments",
                    metadata={"contract_id": str(contract.id), "days_left": days_left},
                )
                await self._email(contract.owner_id, contract_expiry_email(business.name, days_left))
                reminded += 1

                logger.info(
                    "contract_expiry_reminded",
                    contract_id=str(contract.id),
                    business_id=str(contract.business_id),
                    days_left=days_left,
                )

            except Exception as e:
                failed += 1
                await self._rollback()
                logger.error(
                    "contract_reminder_failed",
                    contract_id=str(contract.id),
                    error=str(e),
                    exc_info=True,
                )

        for contract in await self.contract_repo.list_lapsed(now):
            try:
                if not await self.contract_repo.mark_expired(contract.id):
                    continue
                expired += 1

                business = await self._business_for(contract)
                await self.dispatcher.notify(
                    recipient_id=contract.owner_id,
                    title="Contract Expired",
                    message=(
                        f"Your contract for {business.name} has expired. "
                        "Please pay the contract fee to renew it."
                    ),
                    type=NotificationType.ERROR,
                    link="/payments",
                    metadata={"contract_id": str(contract.id)},
                )
                await self._email(contract.owner_id, contract_expired_email(business.name))

                logger.info(
                    "contract_expired",
                    contract_id=str(contract.id),
                    business_id=str(contract.business_id),
                    expiry=contract.expiry.isoformat() if contract.expiry else None,
                )

            except Exception as e:
                failed += 1
                await self._rollback()
                logger.error(
                    "contract_expiration_failed",
                    contract_id=str(contract.id),
                    error=str(e),
                    exc_info=True,
                )

        result = {"reminded": reminded, "expired": expired, "failed": failed}
        logger.info("contract_sweep_completed", **result)
        return result

    async def run_rent_sweep(self, today: Optional[date] = None) -> dict[str, int]:
        """
        Remind owners of this month's rent and flag overdue rent.

        Only approved businesses whose latest contract is paid are billed.
        Reminders go out exactly 5, 3 or 1 days before the due date; overdue
        notices exactly 1, 3, 7 or 14 days after it. A pending rent row past
        its due date is marked overdue.

        Returns:
            Dictionary with counts:
            {"reminded": n, "overdue_notices": n, "marked_overdue": n, "failed": n}
        """
        today = today or utcnow().date()
        month = first_of_month(today)
        due = rent_due_date(month)
        logger.info("rent_sweep_started", date=today.isoformat(), month=month.isoformat())

        reminded = 0
        overdue_notices = 0
        marked_overdue = 0
        failed = 0

        for business in await self.business_repo.list_by_status(ApplicationStatus.APPROVED):
            try:
                contract = await self.contract_repo.get_latest_for_business(business.id)
                if contract is None or contract.status != ContractStatus.PAID:
                    continue

                rent = await self.rent_repo.get_for_month(business.id, month)
                if rent is not None and rent.status == RentStatus.PAID:
                    continue

                amount = rent.amount if rent is not None else business.rent_fee
                days_until_due = (due - today).days

                if days_until_due in RENT_REMINDER_DAYS:
                    await self._remind_rent(business, amount, due)
                    reminded += 1
                elif -days_until_due in RENT_OVERDUE_DAYS:
                    await self._notify_overdue(business, amount, -days_until_due)
                    overdue_notices += 1

                if (
                    rent is not None
                    and rent.status == RentStatus.PENDING
                    and today > due
                    and await self.rent_repo.mark_overdue(rent.id)
                ):
                    marked_overdue += 1
                    logger.info(
                        "rent_marked_overdue",
                        rent_id=str(rent.id),
                        business_id=str(business.id),
                    )

            except Exception as e:
                failed += 1
                await self._rollback()
                logger.error(
                    "rent_reminder_failed",
                    business_id=str(business.id),
                    error=str(e),
                    exc_info=True,
                )

        result = {
            "reminded": reminded,
            "overdue_notices": overdue_notices,
            "marked_overdue": marked_overdue,
            "failed": failed,
        }
        logger.info("rent_sweep_completed", **result)
        return result

    async def _remind_rent(
        self, business: BusinessApplication, amount: Decimal, due: date
    ) -> None:
        await self.dispatcher.notify(
            recipient_id=business.owner_id,
            title="Rent Payment Reminder",
            message=(
                f"Your rent payment of {amount} for {business.name} is due on "
                f"{due.strftime('%d/%m/%Y')}."
            ),
            type=NotificationType.WARNING,
            link="/payments",
            metadata={"business_id": str(business.id), "due_date": due.isoformat()},
        )
        await self._email(business.owner_id, rent_reminder_email(business.name, amount, due))
        logger.info("rent_reminded", business_id=str(business.id), due_date=due.isoformat())

    async def _notify_overdue(
        self, business: BusinessApplication, amount: Decimal, days_overdue: int
    ) -> None:
        await self.dispatcher.notify(
            recipient_id=business.owner_id,
            title="Rent Payment Overdue",
            message=(
                f"Your rent payment of {amount} for {business.name} is "
                f"{days_overdue} days overdue."
            ),
            type=NotificationType.ERROR,
            link="/payments",
            metadata={"business_id": str(business.id), "days_overdue": days_overdue},
        )
        await self._email(
            business.owner_id, rent_overdue_email(business.name, amount, days_overdue)
        )
        logger.info(
            "rent_overdue_notified", business_id=str(business.id), days_overdue=days_overdue
        )

    async def _rollback(self) -> None:
        # A failed statement leaves the shared session unusable until rolled back
        await self.business_repo.session.rollback()

    async def _business_for(self, contract: Contract) -> BusinessApplication:
        business = await self.business_repo.get_by_id(contract.business_id)
        if business is None:
            raise LookupError(f"Business {contract.business_id} not found")
        return business

    async def _email(self, owner_id: int, message: EmailMessage) -> None:
        """Send an email to the owner; failures are logged, not raised."""
        if self.email_service is None:
            return

        owner = await self.user_repo.get_by_id(owner_id)
        if owner is None:
            return

        try:
            await self.email_service.send(owner.email, message)
        except Exception as e:
            logger.warning("reminder_email_failed", owner_id=owner_id, error=str(e))
