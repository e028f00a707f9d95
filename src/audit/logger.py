"""
Audit Logger

DESIGN DECISION: Every change to stored data is logged.
This provides:
1. Traceability of edits, deletes and restores
2. Debugging capability when a load or migration fails
3. A short in-app history of recent actions

The audit logger:
- Writes structured JSON lines through structlog
- Keeps the most recent events in memory for the history view
- Supports correlation IDs to trace related events
"""

import logging
from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "INFO") -> None:
    """Route stdlib logging (and so structlog) to stderr at ``log_level``."""
    logging.basicConfig(format="%(message)s", level=log_level.upper())
    logging.getLogger().setLevel(log_level.upper())


DEFAULT_HISTORY_SIZE = 200


class AuditLogger:
    """
    Central audit logging service.

    Logs events to:
    1. Structured local log (for debugging)
    2. An in-memory ring of recent events (for the history view)
    """

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE):
        self._history: deque[AuditEvent] = deque(maxlen=max(0, history_size))
        self._logger = structlog.get_logger("daybook.audit")

    @property
    def recent_events(self) -> list[AuditEvent]:
        """Most recent events, oldest first."""
        return list(self._history)

    async def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity is AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity is AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        self._history.append(event)

    async def log_record_saved(
        self,
        record_id: str,
        total_sales: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.record_saved(
            record_id=record_id,
            total_sales=total_sales,
            correlation_id=correlation_id,
        ))

    async def log_record_redated(
        self,
        old_id: str,
        new_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.record_redated(
            old_id=old_id,
            new_id=new_id,
            correlation_id=correlation_id,
        ))

    async def log_record_deleted(self, record_id: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.record_deleted(
            record_id=record_id,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed store call; the caller still re-raises."""
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g. a restore).
    Pass it through all subsequent operations.
    """
    return uuid4()
