"""
Module: dreistrom_kernel.selectors.base
Responsibility: Base class for read-only query selectors.
Architecture position: Kernel > Selectors. May import from db/, models/ and
    the pure domain DTOs. MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never call session.add(), delete(),
      commit() or flush().
    - Selectors return frozen domain DTOs, not ORM instances, so the pure
      engines never see a live session.
    - The caller owns the session and its transaction scope.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from dreistrom_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Read-only query base. Subclasses implement domain-specific queries."""

    def __init__(self, session: Session):
        self.session = session
