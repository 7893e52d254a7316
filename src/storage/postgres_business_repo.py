"""PostgreSQL repository for BusinessApplication entities."""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.logging import get_logger
from src.models.business import (
    ApplicationStatus,
    BusinessApplication,
    BusinessApplicationInput,
)
from src.models.clock import utcnow
from src.storage.db_models import BusinessApplicationTable
from src.storage.repository_base import RepositoryBase

logger = get_logger(__name__)


class PostgresBusinessRepository(RepositoryBase[BusinessApplication]):
    """Business application repository using PostgreSQL."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        super().__init__(session)

    async def get_by_id(self, id: UUID) -> Optional[BusinessApplication]:
        """Retrieve application by ID."""
        db_business = await self._get_row(id)
        if not db_business:
            return None

        return self._to_domain_model(db_business)

    async def create(self, entity: BusinessApplicationInput) -> BusinessApplication:
        """Create new pending application with a zero rent fee.

        Raises:
            sqlalchemy.exc.IntegrityError: The owner already has an application
        """
        db_business = BusinessApplicationTable(
            owner_id=entity.owner_id,
            name=entity.name,
            justification_text=entity.justification_text,
            status=ApplicationStatus.PENDING,
            admin_feedback="",
            contract_fee=entity.contract_fee,
            rent_fee=Decimal("0"),
        )

        self.session.add(db_business)
        await self._commit()

        logger.info(
            "business_application_created",
            business_id=str(db_business.id),
            owner_id=entity.owner_id,
            name=entity.name,
        )

        return self._to_domain_model(db_business)

    async def get_by_owner_id(self, owner_id: int) -> Optional[BusinessApplication]:
        """Get the owner's application (at most one exists)."""
        stmt = select(BusinessApplicationTable).where(
            BusinessApplicationTable.owner_id == owner_id
        ).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        db_business = result.scalar_one_or_none()

        return self._to_domain_model(db_business) if db_business else None

    async def list_all(self) -> list[BusinessApplication]:
        """All applications, newest first."""
        stmt = select(BusinessApplicationTable).order_by(
            BusinessApplicationTable.created_at.desc()
        )
        result = await self.session.execute(stmt)
        return [self._to_domain_model(row) for row in result.scalars().all()]

    async def list_by_status(self, status: ApplicationStatus) -> list[BusinessApplication]:
        """Applications in one review status, oldest first."""
        stmt = (
            select(BusinessApplicationTable)
            .where(BusinessApplicationTable.status == status)
            .order_by(BusinessApplicationTable.created_at)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain_model(row) for row in result.scalars().all()]

    async def update_details(
        self,
        id: UUID,
        name: str,
        justification_text: str,
        status: ApplicationStatus,
        admin_feedback: str,
    ) -> BusinessApplication:
        """Persist an owner edit."""
        db_business = await self._get_row(id)
        if not db_business:
            raise ValueError(f"Business application not found: {id}")

        db_business.name = name
        db_business.justification_text = justification_text
        db_business.status = status
        db_business.admin_feedback = admin_feedback
        await self._commit()

        logger.info("business_application_edited", business_id=str(id), status=status.value)

        return self._to_domain_model(db_business)

    async def set_status(
        self,
        id: UUID,
        status: ApplicationStatus,
        admin_feedback: str,
        rent_fee: Optional[Decimal] = None,
    ) -> Optional[BusinessApplication]:
        """Persist an admin decision; rent_fee is only written when given.

        The update only matches an application that is not yet approved, so
        two concurrent approvals cannot both write a rent fee.

        Returns:
            Updated application, or None if it was already approved
        """
        values = {"status": status, "admin_feedback": admin_feedback, "updated_at": utcnow()}
        if rent_fee is not None:
            values["rent_fee"] = rent_fee

        result = await self.session.execute(
            update(BusinessApplicationTable)
            .where(
                BusinessApplicationTable.id == id,
                BusinessApplicationTable.status != ApplicationStatus.APPROVED,
            )
            .values(**values)
        )
        if result.rowcount != 1:
            await self.session.rollback()
            return None

        await self._commit()

        logger.info(
            "business_application_status_set",
            business_id=str(id),
            status=status.value,
        )

        return await self.get_by_id(id)

    async def _get_row(self, id: UUID) -> Optional[BusinessApplicationTable]:
        stmt = (
            select(BusinessApplicationTable)
            .where(BusinessApplicationTable.id == id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    def _to_domain_model(self, db_business: BusinessApplicationTable) -> BusinessApplication:
        """Convert database model to domain model."""
        return BusinessApplication(
            id=db_business.id,
            owner_id=db_business.owner_id,
            name=db_business.name,
            location=db_business.location,
            justification_text=db_business.justification_text,
            status=db_business.status,
            admin_feedback=db_business.admin_feedback or "",
            contract_fee=Decimal(str(db_business.contract_fee)),
            rent_fee=Decimal(str(db_business.rent_fee)),
            created_at=db_business.created_at,
            updated_at=db_business.updated_at,
        )
