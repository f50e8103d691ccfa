"""
Audit Logger

DESIGN DECISION: Every significant state transition is logged.
This provides:
1. Traceability of ledger and gamification changes
2. Debugging capability when storage or validation fails
3. A readable history of one session

The audit logger:
- Is synchronous, like the engine it observes
- Gracefully handles failures (never raises into a mutation)
- Supports correlation IDs to trace everything one call caused
"""

import logging
from collections import deque
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from ecobudget.models.audit import AuditEvent, AuditEventBuilder, AuditEventType


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


class AuditLogger:
    """
    Central audit logging service.

    Logs every event to the structured local log and keeps the most
    recent events in memory so a session can show its own history.
    """

    def __init__(self, history_size: int = 200):
        """
        Initialize audit logger.

        Args:
            history_size: How many recent events to keep in memory.
        """
        self._logger = structlog.get_logger("ecobudget.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    @property
    def recent_events(self) -> list[AuditEvent]:
        """Recent events, newest first."""
        return list(reversed(self._history))

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the local log write failed. Never raises.
        """
        self._history.append(event)
        log_dict = event.to_log_dict()

        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            elif event.severity.value == "debug":
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            return False

        return True

    def log_transaction_added(
        self,
        transaction_id: UUID,
        tx_type: str,
        amount: str,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a new ledger entry."""
        self.log(AuditEventBuilder.transaction_added(
            transaction_id=transaction_id,
            tx_type=tx_type,
            amount=amount,
            category=category,
            correlation_id=correlation_id,
        ))

    def log_transaction_edited(
        self,
        transaction_id: UUID,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_edited(
            transaction_id=transaction_id,
            changes=changes,
            correlation_id=correlation_id,
        ))

    def log_transaction_deleted(
        self,
        transaction_id: UUID,
        amount: str,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            amount=amount,
            category=category,
            correlation_id=correlation_id,
        ))

    def log_input_rejected(
        self,
        entity_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a mutation refused at the validation boundary."""
        self.log(AuditEventBuilder.input_rejected(
            entity_type=entity_type,
            issues=issues,
            correlation_id=correlation_id,
        ))

    def log_entity_changed(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.entity_changed(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details,
            correlation_id=correlation_id,
        ))

    def log_ignored(
        self,
        operation: str,
        entity_type: str,
        entity_id: str,
        reason: str = "not found",
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a no-op caused by an unknown id or an invalid state."""
        self.log(AuditEventBuilder.mutation_ignored(
            operation=operation,
            entity_type=entity_type,
            entity_id=entity_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    def log_storage_failure(
        self,
        key: str,
        operation: str,
        error: Exception,
    ) -> None:
        """Log a failed storage read or write."""
        self.log(AuditEventBuilder.storage_failed(
            key=key,
            operation=operation,
            error_message=str(error),
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of each mutation call and pass it through
    everything that call triggers.
    """
    return uuid4()


def set_log_level(debug: bool) -> None:
    """Show debug-level events (ignored mutations, unlock ticks) for every ecobudget logger."""
    logging.getLogger("ecobudget").setLevel(logging.DEBUG if debug else logging.INFO)
