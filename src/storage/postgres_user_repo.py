"""PostgreSQL repository for User entities."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.logging import get_logger
from src.models.user import User, UserInput
from src.storage.db_models import UserTable
from src.storage.repository_base import RepositoryBase

logger = get_logger(__name__)


class PostgresUserRepository(RepositoryBase[User]):
    """User repository using PostgreSQL."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        super().__init__(session)

    async def get_by_id(self, id: int) -> Optional[User]:
        """Retrieve user by ID."""
        db_user = await self._get_row(id)
        if not db_user:
            return None

        return self._to_domain_model(db_user)

    async def create(self, entity: UserInput) -> User:
        """Create new user."""
        db_user = UserTable(
            username=entity.username,
            email=entity.email,
            role=entity.role,
        )

        self.session.add(db_user)
        await self._commit()

        logger.info("user_created", user_id=db_user.id, role=entity.role.value)

        return self._to_domain_model(db_user)

    async def set_push_chat(self, user_id: int, chat_id: Optional[int]) -> User:
        """Link (or unlink, with None) the chat that receives push messages."""
        db_user = await self._get_row(user_id)
        if not db_user:
            raise ValueError(f"User not found: {user_id}")

        db_user.push_chat_id = chat_id
        await self._commit()

        logger.info("user_push_chat_updated", user_id=user_id, linked=chat_id is not None)

        return self._to_domain_model(db_user)

    async def _get_row(self, user_id: int) -> Optional[UserTable]:
        stmt = select(UserTable).where(UserTable.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    def _to_domain_model(self, db_user: UserTable) -> User:
        """Convert database model to domain model."""
        return User(
            id=db_user.id,
            username=db_user.username,
            email=db_user.email,
            role=db_user.role,
            push_chat_id=db_user.push_chat_id,
            created_at=db_user.created_at,
            updated_at=db_user.updated_at,
        )
