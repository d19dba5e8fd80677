"""
Audit sink -- where lifecycle transitions report to.

The kernel builds an ``AuditEvent`` for every invoice and VAT return
transition and hands it to an ``AuditSink``. Persisting, signing or
forwarding the event is the sink's concern; the default sink writes it to
the structured log.
"""

from typing import Protocol, runtime_checkable

from dreistrom_kernel.domain.dtos import AuditEvent
from dreistrom_kernel.logging_config import get_logger

logger = get_logger("services.audit")


@runtime_checkable
class AuditSink(Protocol):
    def emit(self, event: AuditEvent) -> None: ...


class LoggingAuditSink:
    """Writes each event as an ``audit_event`` log record."""

    def emit(self, event: AuditEvent) -> None:
        logger.info(
            "audit_event",
            extra={
                "action": event.action,
                "entity_type": event.entity_type,
                "entity_id": event.entity_id,
                "user_id": event.user_id,
                "occurred_at": event.occurred_at,
                "from_state": event.from_state,
                "to_state": event.to_state,
                "payload": dict(event.payload),
            },
        )
