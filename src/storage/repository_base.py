"""Repository base interface."""

from abc import ABC, abstractmethod
from typing import Any, Generic, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class RepositoryBase(ABC, Generic[T]):
    """Base repository over a single async session.

    Mutating methods flush and commit before returning, so a domain object
    handed back by a repository always reflects persisted state.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    @abstractmethod
    async def get_by_id(self, id: Any) -> Optional[T]:
        """Retrieve entity by ID."""
        pass

    @abstractmethod
    async def create(self, entity: Any) -> T:
        """Create new entity."""
        pass

    async def _commit(self) -> None:
        await self.session.flush()
        await self.session.commit()
