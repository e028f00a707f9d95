"""
Backup Snapshot Model

A BackupData is the complete exportable state of the application. Restoring
one replaces everything it carries; it is never merged.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from src.models.gas import GasConfig, GasLog
from src.models.record import (
    CustomExpenseStructure,
    DailyRecord,
    structure_to_json,
)


BACKUP_FORMAT_VERSION = 2


class BackupData(BaseModel):
    """Complete snapshot: records, structure and (optionally) gas data."""

    version: int = BACKUP_FORMAT_VERSION
    records: list[DailyRecord] = Field(default_factory=list)
    custom_structure: CustomExpenseStructure = Field(default_factory=dict)
    gas_logs: Optional[list[GasLog]] = None
    gas_config: Optional[GasConfig] = None

    def to_json_dict(self) -> dict[str, Any]:
        """Dump to the backup file shape (camelCase, optional keys omitted)."""
        payload: dict[str, Any] = {
            "version": self.version,
            "records": [record.to_json_dict() for record in self.records],
            "customStructure": structure_to_json(self.custom_structure),
        }
        if self.gas_logs is not None:
            payload["gasLogs"] = [log.to_json_dict() for log in self.gas_logs]
        if self.gas_config is not None:
            payload["gasConfig"] = self.gas_config.to_json_dict()
        return payload
