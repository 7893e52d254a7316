"""Location allocator: at most one occupant per location."""

from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from src.logging import get_logger
from src.logging.audit import AuditEventType, AuditLogger
from src.models.business import BusinessApplication
from src.models.location import Location, LocationInput
from src.models.user import Principal
from src.security.permissions import Permission, PermissionChecker
from src.services.errors import (
    ConflictError,
    LocationInUseError,
    LocationUnavailableError,
    NotFoundError,
)
from src.storage.postgres_business_repo import PostgresBusinessRepository
from src.storage.postgres_location_repo import PostgresLocationRepository

logger = get_logger(__name__)


class LocationAllocator:
    """Create locations and pair them with approved businesses."""

    def __init__(
        self,
        location_repo: PostgresLocationRepository,
        business_repo: PostgresBusinessRepository,
        permissions: Optional[PermissionChecker] = None,
    ):
        self.location_repo = location_repo
        self.business_repo = business_repo
        self.permissions = permissions or PermissionChecker()

    async def create(self, principal: Principal, name: str) -> Location:
        """
        Add a location (admin only).

        Raises:
            ConflictError: Name already exists
        """
        self.permissions.require(principal, Permission.MANAGE_LOCATIONS, "location")
        data = LocationInput(name=name)

        if await self.location_repo.get_by_name(data.name) is not None:
            raise ConflictError(f"Location '{data.name}' already exists")

        try:
            location = await self.location_repo.create(data)
        except IntegrityError as e:
            await self.location_repo.session.rollback()
            raise ConflictError(f"Location '{data.name}' already exists") from e

        AuditLogger.log_location_change(
            AuditEventType.LOCATION_CREATED, principal.id, location.id, location.name
        )
        return location

    async def list_available(self) -> list[Location]:
        return await self.location_repo.list_available()

    async def apply(self, principal: Principal, location_id: UUID) -> BusinessApplication:
        """
        Claim a location for the caller's approved business.

        The location flag and the business's location are written together
        or not at all.

        Raises:
            NotFoundError: Unknown location, or caller has no application
            LocationUnavailableError: Location already taken
            ConflictError: Application not approved or already has a location
        """
        location = await self.location_repo.get_by_id(location_id)
        if location is None:
            raise NotFoundError("location", location_id, "Location not found")
        if not location.available:
            raise LocationUnavailableError(location.name)

        business = await self.business_repo.get_by_owner_id(principal.id)
        if business is None:
            raise NotFoundError("business", principal.id, "No business application found")
        if not business.is_approved:
            raise ConflictError("Business must be approved before applying for a location")
        if business.location is not None:
            raise ConflictError(f"Business already has location '{business.location}'")

        if not await self.location_repo.assign_to_business(location.id, business.id):
            # Lost a race for the location or the business was assigned meanwhile
            raise LocationUnavailableError(location.name)

        AuditLogger.log_location_change(
            AuditEventType.LOCATION_ASSIGNED,
            principal.id,
            location.id,
            location.name,
            business_id=business.id,
        )

        updated = await self.business_repo.get_by_id(business.id)
        return updated if updated is not None else business.model_copy(
            update={"location": location.name}
        )

    async def delete(self, principal: Principal, location_id: UUID) -> None:
        """
        Remove an unoccupied location (admin only).

        Raises:
            NotFoundError: Unknown location
            LocationInUseError: Location is assigned to a business
        """
        self.permissions.require(principal, Permission.MANAGE_LOCATIONS, "location", location_id)

        location = await self.location_repo.get_by_id(location_id)
        if location is None:
            raise NotFoundError("location", location_id, "Location not found")
        if not location.available or not await self.location_repo.delete_if_available(
            location_id
        ):
            raise LocationInUseError(location.name)

        AuditLogger.log_location_change(
            AuditEventType.LOCATION_DELETED, principal.id, location.id, location.name
        )
