"""
Database Infrastructure Package for Trade Card Builder

Exports database utilities, models, and repositories.
"""

from app.infrastructure.db.database import (
    DatabaseManager,
    get_db_manager,
    get_session,
    get_session_context,
    init_db,
    close_db,
)

from app.infrastructure.db.dependencies import (
    SessionDep,
    get_user_repository,
    get_product_draft_repository,
    UserRepoDep,
    ProductDraftRepoDep,
)


__all__ = [
    # Database management
    "DatabaseManager",
    "get_db_manager",
    "get_session",
    "get_session_context",
    "init_db",
    "close_db",
    # Dependencies
    "SessionDep",
    "get_user_repository",
    "get_product_draft_repository",
    "UserRepoDep",
    "ProductDraftRepoDep",
]
