"""
Base Repository for Trade Card Builder

Generic async repository implementing CRUD operations over a
SQLModel table with a UUID primary key.
"""

from typing import TypeVar, Generic, Type

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel


ModelType = TypeVar("ModelType", bound=SQLModel)
CreateSchemaType = TypeVar("CreateSchemaType", bound=SQLModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=SQLModel)


class BaseRepository(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    Generic async repository with CRUD operations.

    Args:
        model: The SQLModel class to operate on
        session: Async database session
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self._model = model
        self._session = session

    @property
    def session(self) -> AsyncSession:
        """Get the current session."""
        return self._session

    async def create(self, data: CreateSchemaType, **extra) -> ModelType:
        """
        Create a new record.

        Args:
            data: Create schema with field values
            extra: Fields not part of the schema (owner ids, status)

        Returns:
            Created model instance
        """
        db_obj = self._model.model_validate({**data.model_dump(), **extra})
        self._session.add(db_obj)
        await self._session.flush()
        await self._session.refresh(db_obj)
        return db_obj

    async def apply_update(self, db_obj: ModelType, data: UpdateSchemaType) -> ModelType:
        """Copy the fields explicitly set on an update schema onto a record."""
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(db_obj, field, value)

        self._session.add(db_obj)
        await self._session.flush()
        await self._session.refresh(db_obj)
        return db_obj

    async def delete_obj(self, db_obj: ModelType) -> None:
        await self._session.delete(db_obj)
        await self._session.flush()
