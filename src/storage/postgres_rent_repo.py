"""PostgreSQL repository for Rent entities."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.logging import get_logger
from src.models.billing import PaymentMethod, Rent, RentInput, RentStatus
from src.storage.db_models import RentTable
from src.storage.postgres_contract_repo import to_money
from src.storage.repository_base import RepositoryBase

logger = get_logger(__name__)


class PostgresRentRepository(RepositoryBase[Rent]):
    """Rent repository using PostgreSQL."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        super().__init__(session)

    async def get_by_id(self, id: UUID) -> Optional[Rent]:
        """Retrieve rent by ID."""
        stmt = (
            select(RentTable)
            .where(RentTable.id == id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        db_rent = result.scalar_one_or_none()

        return self._to_domain_model(db_rent) if db_rent else None

    async def create(self, entity: RentInput) -> Rent:
        """Create new pending rent.

        Raises:
            sqlalchemy.exc.IntegrityError: A row for (business, month) exists
        """
        db_rent = RentTable(
            business_id=entity.business_id,
            owner_id=entity.owner_id,
            amount=entity.amount,
            month=entity.month,
            status=RentStatus.PENDING,
        )

        self.session.add(db_rent)
        await self._commit()

        logger.info(
            "rent_created",
            rent_id=str(db_rent.id),
            business_id=str(entity.business_id),
            month=entity.month.isoformat(),
            amount=str(entity.amount),
        )

        return self._to_domain_model(db_rent)

    async def create_or_get(self, entity: RentInput) -> Rent:
        """Create the month's rent, or return the row a concurrent caller created."""
        try:
            return await self.create(entity)
        except IntegrityError:
            await self.session.rollback()
            logger.info(
                "rent_create_conflict",
                business_id=str(entity.business_id),
                month=entity.month.isoformat(),
            )
            existing = await self.get_for_month(entity.business_id, entity.month)
            if existing is None:
                raise
            return existing

    async def get_for_month(self, business_id: UUID, month: date) -> Optional[Rent]:
        """Rent row for one (business, month)."""
        stmt = select(RentTable).where(
            RentTable.business_id == business_id, RentTable.month == month
        ).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        db_rent = result.scalar_one_or_none()

        return self._to_domain_model(db_rent) if db_rent else None

    async def get_by_reference(self, business_id: UUID, reference: str) -> Optional[Rent]:
        """Find the business's rent whose card or mobile reference matches."""
        stmt = select(RentTable).where(
            RentTable.business_id == business_id,
            or_(RentTable.order_reference == reference, RentTable.transaction_id == reference),
        ).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        db_rent = result.scalars().first()

        return self._to_domain_model(db_rent) if db_rent else None

    async def list_for_business(self, business_id: UUID, limit: int = 12) -> list[Rent]:
        """Rent rows of a business, newest month first."""
        stmt = (
            select(RentTable)
            .where(RentTable.business_id == business_id)
            .order_by(RentTable.month.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain_model(row) for row in result.scalars().all()]

    async def list_for_months(self, business_id: UUID, months: list[date]) -> list[Rent]:
        """Stored rows for a set of months."""
        stmt = select(RentTable).where(
            RentTable.business_id == business_id, RentTable.month.in_(months)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain_model(row) for row in result.scalars().all()]

    async def get_latest_for_business(self, business_id: UUID) -> Optional[Rent]:
        """Rent row with the most recent month."""
        rows = await self.list_for_business(business_id, limit=1)
        return rows[0] if rows else None

    async def set_order_reference(
        self, id: UUID, order_reference: str, method: PaymentMethod = PaymentMethod.CARD
    ) -> None:
        """Store the card order reference used for status polling."""
        await self.session.execute(
            update(RentTable)
            .where(RentTable.id == id)
            .values(order_reference=order_reference, payment_method=method)
        )
        await self._commit()

    async def set_transaction_id(
        self,
        id: UUID,
        transaction_id: Optional[str],
        method: PaymentMethod = PaymentMethod.MOBILE,
    ) -> None:
        """Store (or clear, with None) the mobile transaction id."""
        values = {"transaction_id": transaction_id}
        if transaction_id is not None:
            values["payment_method"] = method
        await self.session.execute(update(RentTable).where(RentTable.id == id).values(**values))
        await self._commit()

    async def mark_paid(self, id: UUID, payment_date: datetime, method: PaymentMethod) -> bool:
        """Apply the paid transition once (pending or overdue rows only).

        Returns:
            True if this call performed the transition
        """
        result = await self.session.execute(
            update(RentTable)
            .where(RentTable.id == id, RentTable.status != RentStatus.PAID)
            .values(status=RentStatus.PAID, payment_date=payment_date, payment_method=method)
        )
        transitioned = result.rowcount == 1
        await self._commit()

        if transitioned:
            logger.info("rent_marked_paid", rent_id=str(id), method=method.value)

        return transitioned

    async def mark_overdue(self, id: UUID) -> bool:
        """Move a pending rent to overdue."""
        result = await self.session.execute(
            update(RentTable)
            .where(RentTable.id == id, RentTable.status == RentStatus.PENDING)
            .values(status=RentStatus.OVERDUE)
        )
        await self._commit()
        return result.rowcount == 1

    async def total_paid_amount(self, since: Optional[datetime] = None) -> Decimal:
        """Sum of paid rent, optionally only payments received since a moment."""
        stmt = select(func.coalesce(func.sum(RentTable.amount), 0)).where(
            RentTable.status == RentStatus.PAID
        )
        if since is not None:
            stmt = stmt.where(RentTable.payment_date >= since)
        result = await self.session.execute(stmt)
        return to_money(result.scalar_one())

    def _to_domain_model(self, db_rent: RentTable) -> Rent:
        """Convert database model to domain model."""
        return Rent(
            id=db_rent.id,
            business_id=db_rent.business_id,
            owner_id=db_rent.owner_id,
            amount=to_money(db_rent.amount),
            month=db_rent.month,
            status=db_rent.status,
            payment_date=db_rent.payment_date,
            order_reference=db_rent.order_reference,
            transaction_id=db_rent.transaction_id,
            payment_method=db_rent.payment_method,
            created_at=db_rent.created_at,
        )
