"""Schema migration package."""

from src.migration.engine import (
    CollectionMigrationResult,
    MigrationChain,
    MigrationError,
    MigrationResult,
    MigrationStep,
)
from src.migration.steps import (
    GAS_LOG_CHAIN,
    RECORD_CHAIN,
    STRUCTURE_CHAIN,
    setting_chain,
    setting_document,
)

__all__ = [
    "CollectionMigrationResult",
    "MigrationChain",
    "MigrationError",
    "MigrationResult",
    "MigrationStep",
    "GAS_LOG_CHAIN",
    "RECORD_CHAIN",
    "STRUCTURE_CHAIN",
    "setting_chain",
    "setting_document",
]
