"""
Structural Validation of Incoming Payloads

DESIGN DECISION: Anything that comes from outside the store (a backup file,
a structure file, a settings value) is checked for SHAPE before a single
byte of it is accepted. A payload with any error-level issue is rejected
as a whole, so an invalid file can never partially populate the store.

Checks are structural only:
- Is it JSON at all?
- Is the top level an object?
- Are the required keys there?
- Do the values have the right JSON types?

Field-level typing (dates, amounts) happens afterwards, when the migrated
documents are turned into models.

IMPORTANT: Validation NEVER silently fixes issues.
It reports all of them at once so the user sees the full picture.
"""

import json
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from src.models.settings import SettingKey
from src.models.validation import ValidationIssue


class ValidationError(Exception):
    """An incoming payload failed structural validation."""

    kind = "payload"

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = list(issues)
        details = "; ".join(f"{issue.field}: {issue.message}" for issue in self.issues)
        super().__init__(f"Invalid {self.kind}: {details}")


class BackupValidationError(ValidationError):
    kind = "backup file"


class StructureValidationError(ValidationError):
    kind = "expense structure"


class SettingsValidationError(ValidationError):
    kind = "setting"


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _wrong_type(field: str, expected: str, value: Any) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="wrong_type",
        message=f"Expected {expected}, found {_type_name(value)}",
    )


def _missing(field: str, suggested_fix: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="missing",
        message=f"Required field '{field}' is missing",
        suggested_fix=suggested_fix,
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# =============================================================================
# FIELD CHECKS
# =============================================================================

def check_structure(payload: Any, field: str = "customStructure") -> list[ValidationIssue]:
    """
    An expense structure is an object mapping category names to arrays of
    items. An item is {name, defaultValue?} or, in old files, a bare name.
    """
    if not isinstance(payload, dict):
        return [_wrong_type(field, "an object", payload)]

    issues = []
    for category, items in payload.items():
        path = f"{field}.{category}"
        if not isinstance(items, list):
            issues.append(_wrong_type(path, "an array of items", items))
            continue
        for index, item in enumerate(items):
            item_path = f"{path}[{index}]"
            if isinstance(item, str):
                continue
            if not isinstance(item, dict):
                issues.append(_wrong_type(item_path, "an item object", item))
                continue
            if "name" not in item:
                issues.append(_missing(f"{item_path}.name"))
            elif not isinstance(item["name"], str):
                issues.append(_wrong_type(f"{item_path}.name", "a string", item["name"]))
            if "defaultValue" in item and not _is_number(item["defaultValue"]):
                issues.append(
                    _wrong_type(f"{item_path}.defaultValue", "a number", item["defaultValue"])
                )
    return issues


def check_object_list(payload: Any, field: str) -> list[ValidationIssue]:
    """An array whose entries are all objects."""
    if not isinstance(payload, list):
        return [_wrong_type(field, "an array", payload)]
    return [
        _wrong_type(f"{field}[{index}]", "an object", entry)
        for index, entry in enumerate(payload)
        if not isinstance(entry, dict)
    ]


def check_backup(payload: Any) -> list[ValidationIssue]:
    """Every structural problem of a decoded backup file."""
    if not isinstance(payload, dict):
        return [ValidationIssue(
            field="$",
            issue_type="not_an_object",
            message=f"Backup must be a JSON object, found {_type_name(payload)}",
            suggested_fix="Choose a backup file exported by this app",
        )]

    issues = []
    if "records" not in payload:
        issues.append(_missing("records", "The file does not look like a backup"))
    else:
        issues.extend(check_object_list(payload["records"], "records"))

    if "customStructure" not in payload:
        issues.append(_missing("customStructure", "The file does not look like a backup"))
    else:
        issues.extend(check_structure(payload["customStructure"]))

    if payload.get("gasLogs") is not None:
        issues.extend(check_object_list(payload["gasLogs"], "gasLogs"))
    if payload.get("gasConfig") is not None and not isinstance(payload["gasConfig"], dict):
        issues.append(_wrong_type("gasConfig", "an object", payload["gasConfig"]))
    return issues


def _check_string_list(value: Any, field: str) -> list[ValidationIssue]:
    if not isinstance(value, list):
        return [_wrong_type(field, "an array of strings", value)]
    return [
        _wrong_type(f"{field}[{index}]", "a string", entry)
        for index, entry in enumerate(value)
        if not isinstance(entry, str)
    ]


def check_setting(key: Union[SettingKey, str], value: Any) -> list[ValidationIssue]:
    """Shape check for the value stored under a settings key."""
    try:
        setting = SettingKey(key)
    except ValueError:
        return [ValidationIssue(
            field=str(key),
            issue_type="invalid_value",
            message=f"Unknown setting '{key}'",
        )]

    field = setting.value
    if setting in (
        SettingKey.FOOD_COST_CATEGORIES,
        SettingKey.BILL_UPLOAD_CATEGORIES,
        SettingKey.TRACKED_ITEMS,
    ):
        return _check_string_list(value, field)

    if setting is SettingKey.REPORT_CARD_VISIBILITY:
        if not isinstance(value, dict):
            return [_wrong_type(field, "an object", value)]
        return [
            _wrong_type(f"{field}.{name}", "a boolean", flag)
            for name, flag in value.items()
            if not isinstance(flag, bool)
        ]

    if setting is SettingKey.GAS_CONFIG:
        if not isinstance(value, dict):
            return [_wrong_type(field, "an object", value)]
        issues = []
        for name in ("currentStock", "cylindersPerBank", "totalCylinders"):
            if name in value and not (isinstance(value[name], int) and not isinstance(value[name], bool)):
                issues.append(_wrong_type(f"{field}.{name}", "an integer", value[name]))
        return issues

    if not isinstance(value, str):
        return [_wrong_type(field, "a string", value)]
    return []


# =============================================================================
# VALIDATOR
# =============================================================================

class PayloadValidator:
    """
    Decodes and checks payloads arriving from files or the settings UI.

    Each validate_* method returns the decoded JSON value when it is
    acceptable and raises the matching ValidationError subclass, carrying
    every issue found, when it is not.
    """

    def _decode(self, text: Union[str, bytes], error_cls: type[ValidationError]) -> Any:
        if isinstance(text, bytes):
            try:
                text = text.decode("utf-8-sig")
            except UnicodeDecodeError as e:
                raise error_cls([ValidationIssue(
                    field="$",
                    issue_type="invalid_json",
                    message=f"File is not UTF-8 text: {e.reason}",
                )]) from e
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise error_cls([ValidationIssue(
                field="$",
                issue_type="invalid_json",
                message=f"Not valid JSON (line {e.lineno}, column {e.colno}): {e.msg}",
                suggested_fix="Make sure the whole file was copied",
            )]) from e

    def validate_backup(self, text: Union[str, bytes]) -> dict[str, Any]:
        payload = self._decode(text, BackupValidationError)
        issues = check_backup(payload)
        if issues:
            raise BackupValidationError(issues)
        return payload

    def validate_structure(self, text: Union[str, bytes]) -> dict[str, Any]:
        payload = self._decode(text, StructureValidationError)
        if not isinstance(payload, dict):
            raise StructureValidationError([ValidationIssue(
                field="$",
                issue_type="not_an_object",
                message=f"Structure must be a JSON object, found {_type_name(payload)}",
            )])
        issues = check_structure(payload, field="$")
        if issues:
            raise StructureValidationError(issues)
        return payload

    def validate_setting(self, key: Union[SettingKey, str], value: Any) -> Any:
        issues = check_setting(key, value)
        if issues:
            raise SettingsValidationError(issues)
        return value

    def get_user_friendly_summary(self, error: ValidationError) -> str:
        """
        Short explanation of a rejected payload.

        This is what we show to non-technical users.
        """
        lines = [f"The {error.kind} could not be used:"]
        for issue in error.issues:
            lines.append(f"   • {issue.field}: {issue.message}")
            if issue.suggested_fix:
                lines.append(f"     {issue.suggested_fix}")
        lines.append("")
        lines.append("Nothing was changed.")
        return "\n".join(lines)


def issues_from_model_error(error: PydanticValidationError, prefix: str) -> list[ValidationIssue]:
    """Translate a pydantic error into issues rooted at ``prefix``."""
    issues = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ()))
        issues.append(ValidationIssue(
            field=f"{prefix}.{location}" if location else prefix,
            issue_type="missing" if detail.get("type") == "missing" else "invalid_value",
            message=detail.get("msg", "Invalid value"),
        ))
    return issues
