"""Structural validation of backup, structure and settings payloads."""

from src.validation.validator import (
    BackupValidationError,
    PayloadValidator,
    SettingsValidationError,
    StructureValidationError,
    ValidationError,
    check_backup,
    check_setting,
    check_structure,
    issues_from_model_error,
)

__all__ = [
    "BackupValidationError",
    "PayloadValidator",
    "SettingsValidationError",
    "StructureValidationError",
    "ValidationError",
    "check_backup",
    "check_setting",
    "check_structure",
    "issues_from_model_error",
]
