"""Billing engine.

Derives contract-fee and monthly-rent obligations from an approved business
and reports on them. Nothing here talks to the payment provider; the payment
flow service drives the gateway and calls back into this module.
"""

import calendar
from datetime import date, datetime
from decimal import Decimal
from typing import Iterator, Mapping, TypeVar

from src.logging import get_logger
from src.models.billing import (
    RENT_DUE_DAY,
    Contract,
    ContractFeeStatus,
    ContractInput,
    ContractStatus,
    PaymentIssues,
    PaymentOverview,
    Rent,
    RentFeeStatus,
    RentInput,
    RentScheduleEntry,
    RentStatus,
    RevenueBreakdown,
    RevenueSummary,
    UnpaidBusiness,
)
from src.models.business import ApplicationStatus, BusinessApplication
from src.models.user import Principal
from src.security.permissions import Permission, PermissionChecker
from src.services.errors import (
    AlreadyPaidError,
    ConflictError,
    ContractRequiredError,
    NotFoundError,
)
from src.storage.postgres_business_repo import PostgresBusinessRepository
from src.storage.postgres_contract_repo import PostgresContractRepository
from src.storage.postgres_rent_repo import PostgresRentRepository

logger = get_logger(__name__)

D = TypeVar("D", date, datetime)

SCHEDULE_MONTHS = 3
HISTORY_MONTHS = 12


def add_one_year(moment: D) -> D:
    """Same month and day one year later; 29 February maps to 28 February."""
    try:
        return moment.replace(year=moment.year + 1)
    except ValueError:
        return moment.replace(year=moment.year + 1, day=28)


def add_months(moment: D, months: int) -> D:
    """Shift by whole calendar months, clamping the day to the target month."""
    index = moment.year * 12 + (moment.month - 1) + months
    year, month0 = divmod(index, 12)
    last_day = calendar.monthrange(year, month0 + 1)[1]
    return moment.replace(year=year, month=month0 + 1, day=min(moment.day, last_day))


def first_of_month(day: date) -> date:
    """Key of the rent month containing a day."""
    return date(day.year, day.month, 1)


def rent_due_date(month: date) -> date:
    return month.replace(day=RENT_DUE_DAY)


def period_label(month: date) -> str:
    """Human-readable fee period for a rent month, e.g. 2024-03."""
    return month.strftime("%Y-%m")


def generate_rent_schedule(
    today: date,
    rent_fee: Decimal,
    stored_statuses: Mapping[date, RentStatus],
    months: int = SCHEDULE_MONTHS,
) -> Iterator[RentScheduleEntry]:
    """
    Yield the upcoming rent months starting with the current one.

    A pure function of its arguments: iterating a fresh call always yields
    the same entries.

    Args:
        today: Reference date
        rent_fee: Monthly amount of the business
        stored_statuses: Status of rent rows already stored, keyed by month
        months: Number of entries

    Yields:
        RentScheduleEntry per month, pending unless a row says otherwise
    """
    start = first_of_month(today)
    for offset in range(months):
        month = add_months(start, offset)
        yield RentScheduleEntry(
            month=month,
            amount=rent_fee,
            status=stored_statuses.get(month, RentStatus.PENDING),
            due_date=rent_due_date(month),
        )


class BillingEngine:
    """Contract and rent obligations plus revenue reporting."""

    def __init__(
        self,
        business_repo: PostgresBusinessRepository,
        contract_repo: PostgresContractRepository,
        rent_repo: PostgresRentRepository,
        permissions: PermissionChecker | None = None,
    ):
        """
        Initialize billing engine.

        Args:
            business_repo: Business application repository
            contract_repo: Contract repository
            rent_repo: Rent repository
            permissions: Role checks for admin-only reports
        """
        self.business_repo = business_repo
        self.contract_repo = contract_repo
        self.rent_repo = rent_repo
        self.permissions = permissions or PermissionChecker()

    async def get_or_create_contract(self, business: BusinessApplication) -> Contract:
        """
        Return the contract a payment should settle.

        A pending contract is reused. A new one is created when the business
        has none or its latest contract has expired (renewal).

        Raises:
            ConflictError: Business is not approved
            AlreadyPaidError: Latest contract is already paid
        """
        if not business.is_approved:
            raise ConflictError("Business is not approved")

        latest = await self.contract_repo.get_latest_for_business(business.id)
        if latest is not None:
            if latest.status == ContractStatus.PAID:
                expiry = latest.expiry.date().isoformat() if latest.expiry else None
                raise AlreadyPaidError("contract", period=expiry)
            if latest.status == ContractStatus.PENDING:
                return latest

        contract = await self.contract_repo.create(
            ContractInput(
                business_id=business.id,
                owner_id=business.owner_id,
                amount=business.contract_fee,
            )
        )

        if latest is not None:
            logger.info(
                "contract_renewal_created",
                business_id=str(business.id),
                previous_contract_id=str(latest.id),
            )

        return contract

    async def get_or_create_rent(self, business: BusinessApplication, today: date) -> Rent:
        """
        Return the current month's rent row, creating it on first use.

        Raises:
            ContractRequiredError: Latest contract is not paid
            AlreadyPaidError: This month's rent is already paid
        """
        latest_contract = await self.contract_repo.get_latest_for_business(business.id)
        if latest_contract is None or latest_contract.status != ContractStatus.PAID:
            raise ContractRequiredError(business.id)

        month = first_of_month(today)
        rent = await self.rent_repo.get_for_month(business.id, month)
        if rent is None:
            rent = await self.rent_repo.create_or_get(
                RentInput(
                    business_id=business.id,
                    owner_id=business.owner_id,
                    amount=business.rent_fee,
                    month=month,
                )
            )

        if rent.status == RentStatus.PAID:
            raise AlreadyPaidError("rent", period=period_label(month))

        return rent

    async def rent_schedule(
        self, business: BusinessApplication, today: date
    ) -> list[RentScheduleEntry]:
        """The current and next two rent months with their stored status."""
        start = first_of_month(today)
        months = [add_months(start, offset) for offset in range(SCHEDULE_MONTHS)]
        stored = await self.rent_repo.list_for_months(business.id, months)
        statuses = {rent.month: rent.status for rent in stored}
        return list(generate_rent_schedule(today, business.rent_fee, statuses))

    async def rent_history(self, business: BusinessApplication) -> list[Rent]:
        """Last twelve rent rows, newest month first."""
        return await self.rent_repo.list_for_business(business.id, limit=HISTORY_MONTHS)

    async def active_contract(self, business: BusinessApplication) -> Contract:
        """
        Latest paid contract (the licence certificate source).

        Raises:
            NotFoundError: Business has no paid contract
        """
        contract = await self.contract_repo.get_latest_paid(business.id)
        if contract is None:
            raise NotFoundError("contract", business.id, "No active contract found")
        return contract

    async def payment_overview(
        self, business: BusinessApplication, today: date
    ) -> PaymentOverview:
        """Contract status plus the status of this month's rent."""
        month = first_of_month(today)
        contract = await self.contract_repo.get_latest_for_business(business.id)
        rent = await self.rent_repo.get_for_month(business.id, month)

        return PaymentOverview(
            contract=(
                ContractFeeStatus(status=contract.status, payment_date=contract.payment_date)
                if contract
                else None
            ),
            rent=(
                RentFeeStatus(status=rent.status, payment_date=rent.payment_date)
                if rent
                else None
            ),
            rent_month=month,
        )

    async def revenue_summary(self, principal: Principal, now: datetime) -> RevenueSummary:
        """
        Total revenue from paid contracts and paid rent (admin only).

        Computed on demand from the stored records, never from a counter.

        Args:
            principal: Caller; must be an admin
            now: Reference time for the last-month rent figure

        Returns:
            RevenueSummary with its breakdown
        """
        self.permissions.require(principal, Permission.VIEW_REVENUE, "revenue")

        contract_revenue = await self.contract_repo.total_paid_amount()
        total_rent = await self.rent_repo.total_paid_amount()
        last_month_rent = await self.rent_repo.total_paid_amount(since=add_months(now, -1))

        return RevenueSummary(
            total_revenue=contract_revenue + total_rent,
            breakdown=RevenueBreakdown(
                contract_revenue=contract_revenue,
                total_rent_revenue=total_rent,
                last_month_rent_revenue=last_month_rent,
            ),
        )

    async def unpaid_businesses(
        self, principal: Principal, today: date
    ) -> list[UnpaidBusiness]:
        """
        Approved businesses with an unpaid contract or an overdue rent (admin only).

        A rent is overdue when the latest rent row is not paid and its due
        date has passed.
        """
        self.permissions.require(principal, Permission.VIEW_REVENUE, "revenue")

        report: list[UnpaidBusiness] = []
        for business in await self.business_repo.list_by_status(ApplicationStatus.APPROVED):
            contract = await self.contract_repo.get_latest_for_business(business.id)
            last_rent = await self.rent_repo.get_latest_for_business(business.id)

            contract_unpaid = contract is None or contract.status != ContractStatus.PAID
            rent_overdue = (
                last_rent is not None
                and last_rent.status != RentStatus.PAID
                and last_rent.due_date < today
            )

            if not (contract_unpaid or rent_overdue):
                continue

            report.append(
                UnpaidBusiness(
                    business_id=business.id,
                    business_name=business.name,
                    owner_id=business.owner_id,
                    location=business.location,
                    payment_issues=PaymentIssues(
                        contract_unpaid=contract_unpaid,
                        rent_overdue=rent_overdue,
                        last_rent_due_date=last_rent.due_date if last_rent else None,
                        rent_amount=last_rent.amount if last_rent else None,
                        contract_amount=contract.amount if contract else None,
                    ),
                )
            )

        logger.info("unpaid_businesses_computed", count=len(report))
        return report
