"""PostgreSQL repository for Location entities."""

from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.logging import get_logger
from src.models.business import ApplicationStatus
from src.models.clock import utcnow
from src.models.location import Location, LocationInput
from src.storage.db_models import BusinessApplicationTable, LocationTable
from src.storage.repository_base import RepositoryBase

logger = get_logger(__name__)


class PostgresLocationRepository(RepositoryBase[Location]):
    """Location repository using PostgreSQL."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        super().__init__(session)

    async def get_by_id(self, id: UUID) -> Optional[Location]:
        """Retrieve location by ID."""
        stmt = (
            select(LocationTable)
            .where(LocationTable.id == id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        db_location = result.scalar_one_or_none()

        return self._to_domain_model(db_location) if db_location else None

    async def get_by_name(self, name: str) -> Optional[Location]:
        """Retrieve location by its unique name."""
        stmt = select(LocationTable).where(LocationTable.name == name)
        result = await self.session.execute(stmt)
        db_location = result.scalar_one_or_none()

        return self._to_domain_model(db_location) if db_location else None

    async def create(self, entity: LocationInput) -> Location:
        """Create new available location.

        Raises:
            sqlalchemy.exc.IntegrityError: Name already taken
        """
        db_location = LocationTable(name=entity.name, available=True)

        self.session.add(db_location)
        await self._commit()

        logger.info("location_created", location_id=str(db_location.id), name=entity.name)

        return self._to_domain_model(db_location)

    async def list_available(self) -> list[Location]:
        """Available locations ordered by name."""
        stmt = (
            select(LocationTable)
            .where(LocationTable.available.is_(True))
            .order_by(LocationTable.name)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain_model(row) for row in result.scalars().all()]

    async def delete_if_available(self, id: UUID) -> bool:
        """Delete the location only while nobody occupies it."""
        stmt = delete(LocationTable).where(
            LocationTable.id == id, LocationTable.available.is_(True)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            await self.session.rollback()
            return False

        await self._commit()
        logger.info("location_deleted", location_id=str(id))
        return True

    async def assign_to_business(self, location_id: UUID, business_id: UUID) -> bool:
        """Pair a location with an approved business in one transaction.

        Both rows are updated conditionally: the location must still be
        available and the business must be approved with no location. If
        either condition fails nothing is written.

        Returns:
            True if the pair was committed, False otherwise
        """
        now = utcnow()
        name_stmt = select(LocationTable.name).where(LocationTable.id == location_id)
        location_name = (await self.session.execute(name_stmt)).scalar_one_or_none()
        if location_name is None:
            return False

        location_stmt = (
            update(LocationTable)
            .where(LocationTable.id == location_id, LocationTable.available.is_(True))
            .values(available=False, updated_at=now)
        )
        result = await self.session.execute(location_stmt)
        if result.rowcount != 1:
            await self.session.rollback()
            return False

        business_stmt = (
            update(BusinessApplicationTable)
            .where(
                BusinessApplicationTable.id == business_id,
                BusinessApplicationTable.status == ApplicationStatus.APPROVED,
                BusinessApplicationTable.location.is_(None),
            )
            .values(location=location_name, updated_at=now)
        )
        result = await self.session.execute(business_stmt)
        if result.rowcount != 1:
            await self.session.rollback()
            return False

        await self._commit()

        logger.info(
            "location_assigned",
            location_id=str(location_id),
            business_id=str(business_id),
            location=location_name,
        )

        return True

    def _to_domain_model(self, db_location: LocationTable) -> Location:
        """Convert database model to domain model."""
        return Location(
            id=db_location.id,
            name=db_location.name,
            available=db_location.available,
            created_at=db_location.created_at,
            updated_at=db_location.updated_at,
        )
