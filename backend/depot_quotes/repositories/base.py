"""Repository base class shared by the directory and price-cache repositories.

Repositories translate SQLAlchemy failures into RepositoryError subclasses so
services never handle driver exceptions. Writes that may race use
dialect-native ``INSERT ... ON CONFLICT`` (see upsert helpers in subclasses).
"""
import logging
from typing import Any
from typing import Generic
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.dialects import postgresql
from sqlalchemy.dialects import sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from depot_quotes.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)

logger = logging.getLogger(__name__)

# Dialects with an ON CONFLICT clause in SQLAlchemy
_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class RepositoryError(Exception):
    """Base exception for repository operations."""


class DuplicateKeyError(RepositoryError):
    """A unique constraint rejected an insert."""


class DatabaseError(RepositoryError):
    """Any other database failure."""


class BaseRepository(Generic[ModelType]):
    """Common operations for one mapped table bound to one session.

    Subclasses pass their model class:

        class TickerRepository(BaseRepository[TickerMapping]):
            def __init__(self, session: AsyncSession):
                super().__init__(TickerMapping, session)
    """

    def __init__(self, model: type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}Repository")

    def _insert(self):
        """INSERT construct that supports ``on_conflict_do_update``.

        Raises:
            DatabaseError: If the bound dialect has no ON CONFLICT support
        """
        dialect = self.session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise DatabaseError(f"Upsert not supported for dialect '{dialect}'")
        return insert(self.model)

    async def create(self, **fields: Any) -> ModelType:
        """Insert one row inside a SAVEPOINT.

        A unique violation rolls back only the savepoint, so the session can
        still be used to read the conflicting row afterwards.

        Raises:
            DuplicateKeyError: On a unique constraint violation
            DatabaseError: On any other database failure
        """
        entity = self.model(**fields)
        name = self.model.__name__
        try:
            async with self.session.begin_nested():
                self.session.add(entity)
                await self.session.flush()
            await self.session.refresh(entity)
        except IntegrityError as e:
            self.logger.warning(f"Unique violation inserting {name}: {e.orig}")
            raise DuplicateKeyError(f"{name} already exists: {e.orig}") from e
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to insert {name}: {e}")
            raise DatabaseError(f"Database error inserting {name}: {e}") from e

        self.logger.info(f"Inserted {name} id={entity.id}")
        return entity

    async def list(self, offset: int = 0, limit: int = 100) -> list[ModelType]:
        """Rows ordered by id.

        Raises:
            DatabaseError: If the query fails
        """
        try:
            result = await self.session.execute(
                select(self.model).order_by(self.model.id).offset(offset).limit(limit)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to list {self.model.__name__}: {e}")
            raise DatabaseError(f"Database error listing {self.model.__name__}: {e}") from e
        return list(result.scalars().all())
