"""PostgreSQL repository for Contract entities."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.logging import get_logger
from src.models.billing import Contract, ContractInput, ContractStatus
from src.storage.db_models import ContractTable
from src.storage.repository_base import RepositoryBase

logger = get_logger(__name__)

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    """Normalize a numeric column or aggregate to a two-place Decimal."""
    return Decimal(str(value if value is not None else 0)).quantize(CENTS)


class PostgresContractRepository(RepositoryBase[Contract]):
    """Contract repository using PostgreSQL."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        super().__init__(session)

    async def get_by_id(self, id: UUID) -> Optional[Contract]:
        """Retrieve contract by ID."""
        stmt = (
            select(ContractTable)
            .where(ContractTable.id == id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        db_contract = result.scalar_one_or_none()

        return self._to_domain_model(db_contract) if db_contract else None

    async def create(self, entity: ContractInput) -> Contract:
        """Create new pending contract."""
        db_contract = ContractTable(
            business_id=entity.business_id,
            owner_id=entity.owner_id,
            amount=entity.amount,
            status=ContractStatus.PENDING,
        )

        self.session.add(db_contract)
        await self._commit()

        logger.info(
            "contract_created",
            contract_id=str(db_contract.id),
            business_id=str(entity.business_id),
            amount=str(entity.amount),
        )

        return self._to_domain_model(db_contract)

    async def get_latest_for_business(self, business_id: UUID) -> Optional[Contract]:
        """Most recently created contract of a business."""
        stmt = (
            select(ContractTable)
            .where(ContractTable.business_id == business_id)
            .order_by(ContractTable.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        db_contract = result.scalar_one_or_none()

        return self._to_domain_model(db_contract) if db_contract else None

    async def get_latest_paid(self, business_id: UUID) -> Optional[Contract]:
        """Most recent contract currently in paid status."""
        stmt = (
            select(ContractTable)
            .where(
                ContractTable.business_id == business_id,
                ContractTable.status == ContractStatus.PAID,
            )
            .order_by(ContractTable.payment_date.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        db_contract = result.scalar_one_or_none()

        return self._to_domain_model(db_contract) if db_contract else None

    async def get_by_reference(self, business_id: UUID, reference: str) -> Optional[Contract]:
        """Find the business's contract whose card or mobile reference matches."""
        stmt = select(ContractTable).where(
            ContractTable.business_id == business_id,
            or_(
                ContractTable.order_reference == reference,
                ContractTable.transaction_id == reference,
            ),
        ).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        db_contract = result.scalars().first()

        return self._to_domain_model(db_contract) if db_contract else None

    async def set_order_reference(self, id: UUID, order_reference: str) -> None:
        """Store the card order reference used for status polling."""
        await self.session.execute(
            update(ContractTable)
            .where(ContractTable.id == id)
            .values(order_reference=order_reference)
        )
        await self._commit()

    async def set_transaction_id(self, id: UUID, transaction_id: Optional[str]) -> None:
        """Store (or clear, with None) the mobile transaction id."""
        await self.session.execute(
            update(ContractTable)
            .where(ContractTable.id == id)
            .values(transaction_id=transaction_id)
        )
        await self._commit()

    async def mark_paid(self, id: UUID, payment_date: datetime, expiry: datetime) -> bool:
        """Apply the paid transition once.

        The update only matches a pending row, so concurrent status checks
        cannot re-stamp payment date or expiry.

        Returns:
            True if this call performed the transition
        """
        result = await self.session.execute(
            update(ContractTable)
            .where(ContractTable.id == id, ContractTable.status == ContractStatus.PENDING)
            .values(status=ContractStatus.PAID, payment_date=payment_date, expiry=expiry)
        )
        transitioned = result.rowcount == 1
        await self._commit()

        if transitioned:
            logger.info(
                "contract_marked_paid",
                contract_id=str(id),
                expiry=expiry.isoformat(),
            )

        return transitioned

    async def list_paid(self) -> list[Contract]:
        """All contracts currently in paid status."""
        stmt = (
            select(ContractTable)
            .where(ContractTable.status == ContractStatus.PAID)
            .order_by(ContractTable.expiry)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain_model(row) for row in result.scalars().all()]

    async def list_lapsed(self, now: datetime) -> list[Contract]:
        """Paid contracts whose expiry has passed."""
        stmt = select(ContractTable).where(
            ContractTable.status == ContractStatus.PAID,
            ContractTable.expiry < now,
        )
        result = await self.session.execute(stmt)
        return [self._to_domain_model(row) for row in result.scalars().all()]

    async def mark_expired(self, id: UUID) -> bool:
        """Move a paid contract to expired."""
        result = await self.session.execute(
            update(ContractTable)
            .where(ContractTable.id == id, ContractTable.status == ContractStatus.PAID)
            .values(status=ContractStatus.EXPIRED)
        )
        await self._commit()
        return result.rowcount == 1

    async def total_paid_amount(self) -> Decimal:
        """Sum of paid and expired contracts. An expired contract was paid once."""
        stmt = select(func.coalesce(func.sum(ContractTable.amount), 0)).where(
            ContractTable.status.in_((ContractStatus.PAID, ContractStatus.EXPIRED))
        )
        result = await self.session.execute(stmt)
        return to_money(result.scalar_one())

    def _to_domain_model(self, db_contract: ContractTable) -> Contract:
        """Convert database model to domain model."""
        return Contract(
            id=db_contract.id,
            business_id=db_contract.business_id,
            owner_id=db_contract.owner_id,
            status=db_contract.status,
            amount=to_money(db_contract.amount),
            payment_date=db_contract.payment_date,
            expiry=db_contract.expiry,
            order_reference=db_contract.order_reference,
            transaction_id=db_contract.transaction_id,
            created_at=db_contract.created_at,
        )
