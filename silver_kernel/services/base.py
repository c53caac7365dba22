"""
BaseService -- abstract base for all ledger services.

Every concrete service receives a SQLAlchemy ``Session`` from its caller and
persists with ``session.flush()`` only.  Commit and rollback belong to the
caller (the ``LedgerEngine`` facade or a test harness), so that a sale, its
lines, its ledger entries, the customer balances and the stock movement
succeed or fail together.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from silver_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Read-only reporting queries live in ``silver_kernel/selectors/``.
    """

    model: type[ModelType]

    def __init__(self, session: Session):
        self.session = session

    def _lock(self, entity_id: UUID) -> ModelType | None:
        """Load a row with ``SELECT ... FOR UPDATE`` and refresh it from the database."""
        return self.session.execute(
            select(self.model)
            .where(self.model.id == entity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
