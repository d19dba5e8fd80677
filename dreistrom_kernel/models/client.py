"""
Module: dreistrom_kernel.models.client
Responsibility: ORM persistence for invoice recipients. The client's country,
    type and VAT id drive VAT treatment detection and ZM reportability.
Architecture position: Kernel > Models. May import from db/ only.
"""

from uuid import UUID

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from dreistrom_kernel.db.base import TrackedBase


class Client(TrackedBase):
    """A customer of one of the user's invoiceable streams."""

    __tablename__ = "clients"

    __table_args__ = (
        Index("idx_client_user", "user_id"),
    )

    user_id: Mapped[UUID] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    stream: Mapped[str] = mapped_column(String(20), nullable=False)

    # ISO 3166-1 alpha-2
    country: Mapped[str] = mapped_column(String(2), nullable=False, default="DE")

    client_type: Mapped[str] = mapped_column(String(3), nullable=False, default="B2B")

    # USt-IdNr / foreign VAT registration number
    vat_id: Mapped[str | None] = mapped_column(String(32), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Client {self.name} {self.country} {self.stream}>"
