"""
Backup and Structure Files

DESIGN DECISION: Import is all-or-nothing. The file text is decoded and
checked for shape, every record and gas log is run through its migration
chain, and every document is turned into a model BEFORE anything is
returned. Any failure along the way raises BackupValidationError (or
StructureValidationError) and the caller never sees a partial result.

Records inside a backup go through the same migration chain as the store,
so files written by older builds import cleanly.
"""

import json
from datetime import date
from typing import Any, Union

from pydantic import ValidationError as PydanticValidationError

from src.migration import GAS_LOG_CHAIN, RECORD_CHAIN, STRUCTURE_CHAIN, MigrationError
from src.models.backup import BACKUP_FORMAT_VERSION, BackupData
from src.models.gas import GasConfig, GasLog
from src.models.record import (
    CustomExpenseStructure,
    DailyRecord,
    parse_structure,
    structure_to_json,
)
from src.models.validation import ValidationIssue
from src.validation import (
    BackupValidationError,
    PayloadValidator,
    StructureValidationError,
    issues_from_model_error,
)


def _migration_issue(error: MigrationError, field: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="invalid_value",
        message=str(error),
        suggested_fix="The file may be damaged or written by a newer version",
    )


def _decode_structure_payload(raw: Any) -> CustomExpenseStructure:
    """Migrate and type a raw structure mapping; raises MigrationError or pydantic errors."""
    document = STRUCTURE_CHAIN.migrate(raw).document
    return parse_structure(document["data"])


def _decode_records(raw_records: list[Any]) -> list[DailyRecord]:
    issues = []
    records = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_records):
        field = f"records[{index}]"
        try:
            document = RECORD_CHAIN.migrate(raw, document_id=raw.get("id")).document
            record = DailyRecord.from_document(document)
        except MigrationError as e:
            issues.append(_migration_issue(e, field))
            continue
        except PydanticValidationError as e:
            issues.extend(issues_from_model_error(e, field))
            continue
        if record.id in seen:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"More than one record for {record.id}",
            ))
            continue
        seen.add(record.id)
        records.append(record)
    if issues:
        raise BackupValidationError(issues)
    return records


def _decode_gas_logs(raw_logs: list[Any]) -> list[GasLog]:
    issues = []
    logs = []
    for index, raw in enumerate(raw_logs):
        field = f"gasLogs[{index}]"
        try:
            document = GAS_LOG_CHAIN.migrate(raw, document_id=raw.get("id")).document
            logs.append(GasLog.from_document(document))
        except MigrationError as e:
            issues.append(_migration_issue(e, field))
        except PydanticValidationError as e:
            issues.extend(issues_from_model_error(e, field))
    if issues:
        raise BackupValidationError(issues)
    return logs


def decode_backup(text: Union[str, bytes]) -> BackupData:
    """
    Parse a backup file into a fully typed, migrated snapshot.

    Raises:
        BackupValidationError: The file is unusable; the issues say why.
    """
    payload = PayloadValidator().validate_backup(text)

    records = _decode_records(payload["records"])

    try:
        structure = _decode_structure_payload(payload["customStructure"])
    except MigrationError as e:
        raise BackupValidationError([_migration_issue(e, "customStructure")]) from e
    except PydanticValidationError as e:
        raise BackupValidationError(issues_from_model_error(e, "customStructure")) from e

    gas_logs = None
    if payload.get("gasLogs") is not None:
        gas_logs = _decode_gas_logs(payload["gasLogs"])

    gas_config = None
    if payload.get("gasConfig") is not None:
        try:
            gas_config = GasConfig.model_validate(payload["gasConfig"])
        except PydanticValidationError as e:
            raise BackupValidationError(issues_from_model_error(e, "gasConfig")) from e

    version = payload.get("version")
    return BackupData(
        version=version if isinstance(version, int) and not isinstance(version, bool) else 0,
        records=records,
        custom_structure=structure,
        gas_logs=gas_logs,
        gas_config=gas_config,
    )


def encode_backup(data: BackupData) -> str:
    """Serialize a snapshot to backup file text."""
    payload = data.to_json_dict()
    payload["version"] = BACKUP_FORMAT_VERSION
    return json.dumps(payload, indent=2, ensure_ascii=False)


def backup_filename(on: date) -> str:
    return f"daybook-backup-{on.isoformat()}.json"


def decode_structure(text: Union[str, bytes]) -> CustomExpenseStructure:
    """
    Parse an exported expense structure file.

    Old files listing bare item names are accepted and upgraded.

    Raises:
        StructureValidationError: The file is unusable.
    """
    payload = PayloadValidator().validate_structure(text)
    try:
        return _decode_structure_payload(payload)
    except MigrationError as e:
        raise StructureValidationError([_migration_issue(e, "$")]) from e
    except PydanticValidationError as e:
        raise StructureValidationError(issues_from_model_error(e, "$")) from e


def encode_structure(structure: CustomExpenseStructure) -> str:
    return json.dumps(structure_to_json(structure), indent=2, ensure_ascii=False)
