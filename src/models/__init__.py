"""
Data Models Package

This package contains all Pydantic models used in Daybook.
All data flowing through the system must conform to these schemas.
"""

from src.models.record import (
    DEFAULT_EXPENSE_STRUCTURE,
    RECORD_SCHEMA_VERSION,
    SCHEMA_VERSION_KEY,
    STRUCTURE_SCHEMA_VERSION,
    CustomExpenseStructure,
    DailyRecord,
    ExpenseCategory,
    ExpenseItem,
    ExpenseStructureItem,
    new_record_expenses,
    parse_structure,
    structure_document,
    structure_to_json,
)
from src.models.gas import (
    GAS_LOG_SCHEMA_VERSION,
    GasConfig,
    GasLog,
    GasLogType,
    GasState,
)
from src.models.settings import (
    SETTING_SCHEMA_VERSION,
    Preferences,
    ReportMetric,
    SettingKey,
)
from src.models.backup import BACKUP_FORMAT_VERSION, BackupData
from src.models.validation import ValidationIssue
from src.models.report import (
    DayFigure,
    MetricRating,
    NamedAmount,
    ReportPeriod,
    ReportQuery,
    ReportResult,
    ReportSummary,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "DEFAULT_EXPENSE_STRUCTURE",
    "RECORD_SCHEMA_VERSION",
    "SCHEMA_VERSION_KEY",
    "STRUCTURE_SCHEMA_VERSION",
    "CustomExpenseStructure",
    "DailyRecord",
    "ExpenseCategory",
    "ExpenseItem",
    "ExpenseStructureItem",
    "new_record_expenses",
    "parse_structure",
    "structure_document",
    "structure_to_json",
    # Gas models
    "GAS_LOG_SCHEMA_VERSION",
    "GasConfig",
    "GasLog",
    "GasLogType",
    "GasState",
    # Preferences
    "SETTING_SCHEMA_VERSION",
    "Preferences",
    "ReportMetric",
    "SettingKey",
    # Backup
    "BACKUP_FORMAT_VERSION",
    "BackupData",
    "ValidationIssue",
    # Reports
    "DayFigure",
    "MetricRating",
    "NamedAmount",
    "ReportPeriod",
    "ReportQuery",
    "ReportResult",
    "ReportSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
