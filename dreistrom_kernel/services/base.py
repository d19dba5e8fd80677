"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session contract for every stateful service.
    Services receive a SQLAlchemy ``Session`` and use ``session.flush()``,
    never ``session.commit()``.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back themselves. The caller
      (the public boundary or a test harness) owns commit/rollback, which
      is what makes "allocate a number and persist the invoice" one atomic
      unit of work.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from dreistrom_kernel.db.base import Base
from dreistrom_kernel.exceptions import NotFoundError

ModelType = TypeVar("ModelType", bound=Base)


def coerce_uuid(value: UUID | str, entity_type: str) -> UUID:
    """Parse an id; a malformed id cannot exist, so it is reported as not found."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise NotFoundError(entity_type, str(value)) from None


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session):
        self.session = session
