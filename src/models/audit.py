"""
Audit Models for Daybook

Every mutation of stored data is logged as an audit event. This provides:
1. Traceability of edits, deletes and restores
2. Debugging information when a load or migration fails
3. Ability to reconstruct what happened to a day's record

DESIGN DECISION: Audit events are written to the structured log only.
They are never stored alongside user data.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Startup
    STORE_LOADED = "store_loaded"
    MIGRATION_APPLIED = "migration_applied"
    MIGRATION_FAILED = "migration_failed"

    # Records
    RECORD_SAVED = "record_saved"
    RECORD_REDATED = "record_redated"
    RECORD_DELETED = "record_deleted"
    RECORD_CONFLICT = "record_conflict"

    # Structure and preferences
    STRUCTURE_UPDATED = "structure_updated"
    SETTING_UPDATED = "setting_updated"

    # Gas
    GAS_LOG_SAVED = "gas_log_saved"
    GAS_LOG_DELETED = "gas_log_deleted"

    # Backup
    BACKUP_EXPORTED = "backup_exported"
    RESTORE_COMPLETED = "restore_completed"
    IMPORT_REJECTED = "import_rejected"

    # System events
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.
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
        description="Type of entity (e.g., 'record', 'gas_log', 'setting')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Identifier of the entity (a record's date, a log id, a setting key)"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one restore)"
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
        event = AuditEventBuilder.record_saved("2024-06-09", "1500", correlation_id)
    """

    @staticmethod
    def store_loaded(
        record_count: int,
        gas_log_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_LOADED,
            entity_type="store",
            correlation_id=correlation_id,
            description=f"Loaded {record_count} records and {gas_log_count} gas logs",
            details={
                "record_count": record_count,
                "gas_log_count": gas_log_count,
            },
        )

    @staticmethod
    def migration_applied(
        document_kind: str,
        changed_count: int,
        steps: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_APPLIED,
            entity_type=document_kind,
            correlation_id=correlation_id,
            description=f"Upgraded {changed_count} {document_kind} document(s)",
            details={
                "changed_count": changed_count,
                "steps": steps,
            },
        )

    @staticmethod
    def migration_failed(
        document_kind: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_FAILED,
            severity=AuditSeverity.CRITICAL,
            entity_type=document_kind,
            correlation_id=correlation_id,
            description=f"Could not migrate stored {document_kind}",
            error_message=error_message,
        )

    @staticmethod
    def record_saved(
        record_id: str,
        total_sales: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_SAVED,
            entity_type="record",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Record saved: {record_id}",
            details={
                "total_sales": total_sales,
            },
            is_user_action=True,
        )

    @staticmethod
    def record_redated(
        old_id: str,
        new_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_REDATED,
            entity_type="record",
            entity_id=new_id,
            correlation_id=correlation_id,
            description=f"Record moved from {old_id} to {new_id}",
            details={
                "old_id": old_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(
        record_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            entity_type="record",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Record deleted: {record_id}",
            is_user_action=True,
        )

    @staticmethod
    def record_conflict(
        record_id: str,
        original_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CONFLICT,
            severity=AuditSeverity.WARNING,
            entity_type="record",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"A record for {record_id} already exists",
            details={
                "original_id": original_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def structure_updated(
        category_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STRUCTURE_UPDATED,
            entity_type="structure",
            correlation_id=correlation_id,
            description=f"Expense structure updated ({category_count} categories)",
            details={
                "category_count": category_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def setting_updated(
        key: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTING_UPDATED,
            entity_type="setting",
            entity_id=key,
            correlation_id=correlation_id,
            description=f"Setting updated: {key}",
            is_user_action=True,
        )

    @staticmethod
    def gas_log_saved(
        log_id: str,
        log_type: str,
        count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GAS_LOG_SAVED,
            entity_type="gas_log",
            entity_id=log_id,
            correlation_id=correlation_id,
            description=f"Gas {log_type.lower()} logged: {count}",
            details={
                "type": log_type,
                "count": count,
            },
            is_user_action=True,
        )

    @staticmethod
    def gas_log_deleted(
        log_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GAS_LOG_DELETED,
            entity_type="gas_log",
            entity_id=log_id,
            correlation_id=correlation_id,
            description=f"Gas log deleted: {log_id}",
            is_user_action=True,
        )

    @staticmethod
    def backup_exported(
        record_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            entity_type="backup",
            correlation_id=correlation_id,
            description=f"Backup exported with {record_count} records",
            details={
                "record_count": record_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def restore_completed(
        record_count: int,
        restored_gas: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESTORE_COMPLETED,
            entity_type="backup",
            correlation_id=correlation_id,
            description=f"Restored {record_count} records from backup",
            details={
                "record_count": record_count,
                "restored_gas": restored_gas,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_rejected(
        source: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type=source,
            correlation_id=correlation_id,
            description=f"{source.capitalize()} import rejected with {len(issues)} issues",
            details={
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage operation failed: {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
            correlation_id=correlation_id,
        )
