"""
Audit Models for EcoBudget

Every significant state transition in the engine is logged for audit purposes.
This provides:
1. Traceability of every ledger and gamification change
2. Debugging information when persistence or validation fails
3. Ability to reconstruct what the user did in a session

DESIGN DECISION: Audit events describe what happened; they never carry
the full state snapshot.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every mutation entry point has its own event type.
    """
    # Ledger
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_EDITED = "transaction_edited"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_RESTORED = "transaction_restored"
    TRANSACTION_REJECTED = "transaction_rejected"

    # Capsules
    CAPSULE_ADDED = "capsule_added"
    CAPSULE_UPDATED = "capsule_updated"
    CAPSULE_DELETED = "capsule_deleted"

    # Savings goals
    GOAL_ADDED = "goal_added"
    GOAL_FUNDED = "goal_funded"
    GOAL_UPDATED = "goal_updated"
    GOAL_DELETED = "goal_deleted"

    # Recurring rules
    RECURRING_ADDED = "recurring_added"
    RECURRING_DELETED = "recurring_deleted"
    RECURRING_MATERIALIZED = "recurring_materialized"

    # Gamification
    CHALLENGE_ACCEPTED = "challenge_accepted"
    CHALLENGE_COMPLETED = "challenge_completed"
    CHALLENGE_UNLOCK_SCHEDULED = "challenge_unlock_scheduled"
    CHALLENGE_UNLOCKED = "challenge_unlocked"
    XP_AWARDED = "xp_awarded"
    LEVEL_UP = "level_up"

    # Session
    DATA_RESET = "data_reset"
    PREFERENCE_CHANGED = "preference_changed"
    MUTATION_IGNORED = "mutation_ignored"

    # System events
    STORAGE_READ_FAILED = "storage_read_failed"
    STORAGE_WRITE_FAILED = "storage_write_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'capsule', 'challenge')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID (or unique name) of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate events caused by one mutation call"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(tx_id, "expense", "30.00", cid)
        event = AuditEventBuilder.level_up(3, "Apprentice", cid)
    """

    @staticmethod
    def transaction_added(
        transaction_id: UUID,
        tx_type: str,
        amount: str,
        category: str,
        correlation_id: Optional[UUID] = None,
        is_user_action: bool = True,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            correlation_id=correlation_id,
            description=f"Transaction added: {tx_type} {amount} ({category})",
            details={
                "type": tx_type,
                "amount": amount,
                "category": category,
            },
            is_user_action=is_user_action,
        )

    @staticmethod
    def transaction_edited(
        transaction_id: UUID,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_EDITED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            correlation_id=correlation_id,
            description="Transaction edited",
            details={"changes": changes},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: UUID,
        amount: str,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            correlation_id=correlation_id,
            description=f"Transaction deleted: {amount} ({category})",
            details={"amount": amount, "category": category},
            is_user_action=True,
        )

    @staticmethod
    def transaction_restored(
        deleted_id: UUID,
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RESTORED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            correlation_id=correlation_id,
            description="Deleted transaction restored",
            details={"deleted_id": str(deleted_id)},
            is_user_action=True,
        )

    @staticmethod
    def input_rejected(
        entity_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Rejected {entity_type} input with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def entity_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """Generic builder for capsule, goal and recurring rule changes."""
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def recurring_materialized(
        count: int,
        rule_ids: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_MATERIALIZED,
            entity_type="recurring_rule",
            correlation_id=correlation_id,
            description=f"Materialized {count} recurring transactions",
            details={"count": count, "rule_ids": rule_ids},
        )

    @staticmethod
    def challenge_accepted(
        challenge_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHALLENGE_ACCEPTED,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description=f"Challenge accepted: {challenge_id}",
            is_user_action=True,
        )

    @staticmethod
    def challenge_completed(
        challenge_id: str,
        xp_reward: int,
        manual: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHALLENGE_COMPLETED,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description=f"Challenge completed: {challenge_id} (+{xp_reward} XP)",
            details={"xp_reward": xp_reward, "manual": manual},
            is_user_action=manual,
        )

    @staticmethod
    def unlock_scheduled(
        challenge_id: str,
        unlock_time: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHALLENGE_UNLOCK_SCHEDULED,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description=f"Challenge {challenge_id} scheduled to unlock",
            details={"unlock_time": unlock_time},
        )

    @staticmethod
    def challenges_unlocked(challenge_ids: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHALLENGE_UNLOCKED,
            entity_type="challenge",
            description=f"{len(challenge_ids)} challenges unlocked",
            details={"challenge_ids": challenge_ids},
        )

    @staticmethod
    def xp_awarded(
        amount: int,
        total_xp: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.XP_AWARDED,
            entity_type="stats",
            correlation_id=correlation_id,
            description=f"Awarded {amount} XP (total {total_xp})",
            details={"amount": amount, "total_xp": total_xp},
        )

    @staticmethod
    def level_up(
        level: int,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEVEL_UP,
            entity_type="stats",
            correlation_id=correlation_id,
            description=f"Reached level {level}: {name}",
            details={"level": level, "name": name},
        )

    @staticmethod
    def data_reset(correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_RESET,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description="All data reset to defaults",
            is_user_action=True,
        )

    @staticmethod
    def preference_changed(
        name: str,
        value: Any,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PREFERENCE_CHANGED,
            entity_type="preference",
            entity_id=name,
            correlation_id=correlation_id,
            description=f"Preference {name} changed",
            details={"value": value},
            is_user_action=True,
        )

    @staticmethod
    def mutation_ignored(
        operation: str,
        entity_type: str,
        entity_id: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_IGNORED,
            severity=AuditSeverity.DEBUG,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{operation} ignored: {reason}",
            details={"operation": operation, "reason": reason},
        )

    @staticmethod
    def storage_failed(
        key: str,
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.STORAGE_READ_FAILED
            if operation == "read"
            else AuditEventType.STORAGE_WRITE_FAILED
        )
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.ERROR,
            entity_type="storage",
            entity_id=key,
            description=f"Storage {operation} failed for {key}",
            error_message=error_message,
            details={"key": key, "operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
