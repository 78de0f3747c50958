"""
Dependency Injection Providers for Trade Card Builder

Provides FastAPI dependencies for database sessions and repositories.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.database import get_session
from app.infrastructure.db.repositories import (
    ProductDraftRepository,
    UserRepository,
)


# Type alias for session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_user_repository(
    session: SessionDep,
) -> AsyncGenerator[UserRepository, None]:
    """
    Dependency provider for UserRepository.

    Usage:
        @router.get("/me")
        async def me(repo: UserRepoDep):
            ...
    """
    yield UserRepository(session)


async def get_product_draft_repository(
    session: SessionDep,
) -> AsyncGenerator[ProductDraftRepository, None]:
    """
    Dependency provider for ProductDraftRepository.
    """
    yield ProductDraftRepository(session)


# Type aliases for repository dependencies
UserRepoDep = Annotated[UserRepository, Depends(get_user_repository)]
ProductDraftRepoDep = Annotated[
    ProductDraftRepository,
    Depends(get_product_draft_repository)
]
