"""
Module: dreistrom_kernel.models.sequence
Responsibility: The per-(stream, fiscal year) invoice sequence counter row.
    ``last_value`` is the last ordinal handed out; the first allocation for a
    key creates the row and yields 1.
Architecture position: Kernel > Models. Mutated only by SequenceAllocator
    under ``SELECT ... FOR UPDATE``.

Invariants enforced:
    - One row per key (unique constraint).
    - last_value never decreases and rows are never deleted, so a cancelled
      invoice's number is never handed out again.
"""

from sqlalchemy import BigInteger, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dreistrom_kernel.db.base import Base


class InvoiceSequenceCounter(Base):
    __tablename__ = "invoice_sequences"

    __table_args__ = (
        UniqueConstraint("stream", "fiscal_year", name="uq_invoice_sequence_key"),
    )

    stream: Mapped[str] = mapped_column(String(20), nullable=False)
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    last_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<InvoiceSequenceCounter {self.stream}/{self.fiscal_year}={self.last_value}>"
