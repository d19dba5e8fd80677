"""
SequenceAllocator -- gap-free invoice ordinals via locked counter rows.

Responsibility:
    Hands out the next ordinal for an (invoice stream, fiscal year) key.
    The counter row is read with ``SELECT ... FOR UPDATE`` inside the
    caller's transaction and incremented there; the caller persists the
    invoice in the same transaction and commits both together.

Architecture position:
    Kernel > Services -- imperative shell. Called only by InvoiceService on
    the DRAFT -> ISSUED transition (and on direct issuance).

Invariants enforced:
    - Uniqueness and contiguity: the locked counter row is the sole source
      of the next value. ``MAX(ordinal) + 1`` over the invoice table is
      forbidden: two transactions would read the same maximum.
    - Rollback returns the ordinal: the increment is part of the caller's
      transaction, so an abort (validation failure downstream, crash,
      cancelled request) leaves no gap.
    - The allocator never commits, never retries and never decrements.

Concurrency:
    - Same key: callers serialize on the row lock. A waiting caller sees
      the post-commit (or post-rollback) value once the holder finishes.
    - Different keys lock different rows and do not block each other on
      PostgreSQL. SQLite serializes all writers at database level
      (``BEGIN IMMEDIATE``); ordinals stay unique and contiguous there too.
    - Issued order follows commit order, not call order: a caller that
      locks first but commits later still gets the lower number, and a
      caller that arrives later waits for it.

Failure modes:
    - AllocationTimeoutError (retryable) when the lock is not acquired
      within ``lock_timeout_ms``. Raised by ``lock_timeout_guard``, which
      callers wrap around their whole unit of work because on SQLite the
      wait happens at the first statement of the transaction.
    - IntegrityError on the lazy-creation race is absorbed with a
      savepoint and a re-read.

Audit relevance:
    Every allocation logs ``sequence_allocated`` with the key and value.
"""

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from dreistrom_kernel.domain.streams import IncomeStream, coerce_stream, is_invoiceable
from dreistrom_kernel.exceptions import AllocationTimeoutError, InvalidArgumentError
from dreistrom_kernel.logging_config import get_logger
from dreistrom_kernel.models.sequence import InvoiceSequenceCounter

logger = get_logger("services.sequence")

DEFAULT_LOCK_TIMEOUT_MS = 5000

# PostgreSQL SQLSTATE for lock_not_available
_PG_LOCK_NOT_AVAILABLE = "55P03"


def is_lock_timeout(exc: OperationalError) -> bool:
    """True when ``exc`` reports a lock wait that ran out of time."""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == _PG_LOCK_NOT_AVAILABLE:
        return True
    return "database is locked" in str(orig).lower()


class LockTimeoutGuard:
    """
    Translates a lock-wait timeout inside the block into AllocationTimeoutError.

    The key may be unknown when the block starts (issuing a stored draft
    reads the draft first); ``bind`` refines it once it is known.
    """

    def __init__(self, stream: IncomeStream | str | None, fiscal_year: int | None, timeout_ms: int):
        self.bind(stream, fiscal_year)
        self.timeout_ms = timeout_ms

    def bind(self, stream: IncomeStream | str | None, fiscal_year: int | None) -> None:
        self.stream = coerce_stream(stream).value if stream is not None else None
        self.fiscal_year = fiscal_year

    def __enter__(self) -> "LockTimeoutGuard":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        if not isinstance(exc_value, OperationalError) or not is_lock_timeout(exc_value):
            return False
        logger.warning(
            "allocation_timeout",
            extra={
                "stream": self.stream,
                "fiscal_year": self.fiscal_year,
                "timeout_ms": self.timeout_ms,
            },
        )
        raise AllocationTimeoutError(self.stream, self.fiscal_year, self.timeout_ms) from exc_value


def lock_timeout_guard(
    stream: IncomeStream | str | None,
    fiscal_year: int | None,
    timeout_ms: int,
) -> LockTimeoutGuard:
    return LockTimeoutGuard(stream, fiscal_year, timeout_ms)


class SequenceAllocator:
    """
    Allocates invoice ordinals per (stream, fiscal year).

    Usage:
        with session_scope() as session:
            allocator = SequenceAllocator(session, lock_timeout_ms=5000)
            ordinal = allocator.allocate(IncomeStream.FREIBERUF, 2026)
            session.add(invoice)   # same transaction
    """

    def __init__(self, session: Session, lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS):
        self._session = session
        self._lock_timeout_ms = lock_timeout_ms

    @property
    def lock_timeout_ms(self) -> int:
        return self._lock_timeout_ms

    def _is_postgres(self) -> bool:
        return self._session.get_bind().dialect.name == "postgresql"

    def _locked_counter(self, stream: str, fiscal_year: int) -> InvoiceSequenceCounter | None:
        return self._session.execute(
            select(InvoiceSequenceCounter)
            .where(InvoiceSequenceCounter.stream == stream)
            .where(InvoiceSequenceCounter.fiscal_year == fiscal_year)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def allocate(self, stream: IncomeStream | str, fiscal_year: int) -> int:
        """
        Return the next ordinal for the key, locking its counter row.

        Preconditions:
            - The caller is inside a transaction it will commit or roll
              back together with the invoice that uses the ordinal.

        Postconditions:
            - Returns an int >= 1, one greater than the last committed
              value for the key.
            - The counter row stays locked until the transaction ends.

        Raises:
            AllocationTimeoutError: lock not acquired within the bound.
            InvalidArgumentError: stream is not invoiceable or year is not
                positive.
        """
        resolved = coerce_stream(stream)
        if not is_invoiceable(resolved):
            raise InvalidArgumentError("stream", resolved.value, "stream has no invoice sequence")
        if fiscal_year < 1:
            raise InvalidArgumentError("fiscal_year", fiscal_year, "fiscal year must be positive")
        key = resolved.value

        with lock_timeout_guard(key, fiscal_year, self._lock_timeout_ms):
            if self._is_postgres():
                # SET cannot take bind parameters; the value is an int.
                self._session.execute(
                    text(f"SET LOCAL lock_timeout = '{int(self._lock_timeout_ms)}ms'")
                )

            counter = self._locked_counter(key, fiscal_year)

            if counter is None:
                # First allocation for this key. Another transaction may be
                # creating the row at the same time; the savepoint keeps the
                # rest of the caller's work intact if we lose that race.
                savepoint = self._session.begin_nested()
                try:
                    counter = InvoiceSequenceCounter(
                        stream=key, fiscal_year=fiscal_year, last_value=1
                    )
                    self._session.add(counter)
                    self._session.flush()
                    savepoint.commit()
                    logger.debug(
                        "sequence_allocated",
                        extra={"stream": key, "fiscal_year": fiscal_year, "value": 1},
                    )
                    return 1
                except IntegrityError:
                    logger.debug(
                        "sequence_counter_race_retry",
                        extra={"stream": key, "fiscal_year": fiscal_year},
                    )
                    savepoint.rollback()
                    counter = self._locked_counter(key, fiscal_year)
                    if counter is None:
                        raise

            counter.last_value += 1
            self._session.flush()

        logger.debug(
            "sequence_allocated",
            extra={"stream": key, "fiscal_year": fiscal_year, "value": counter.last_value},
        )
        return counter.last_value

    def current_value(self, stream: IncomeStream | str, fiscal_year: int) -> int:
        """Last allocated ordinal for the key, 0 if none. Neither locks nor increments."""
        key = coerce_stream(stream).value
        value = self._session.execute(
            select(InvoiceSequenceCounter.last_value)
            .where(InvoiceSequenceCounter.stream == key)
            .where(InvoiceSequenceCounter.fiscal_year == fiscal_year)
        ).scalar_one_or_none()
        return value or 0
