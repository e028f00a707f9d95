"""
Migration Steps

The ordered upgrade steps for every kind of stored document, and the chains
built from them.

Record history:
    v0 -> v1  morningSales added (default 0)
    v1 -> v2  single ``billPhoto`` string replaced by ``billPhotos`` list
    v2 -> v3  isClosed added (default false)

Structure history:
    v0 -> v1  items were bare names; now {name, defaultValue}. The document
              is stored inside a {schemaVersion, data} envelope.

Gas log history:
    v0 -> v1  ``cylindersSwapped`` renamed to ``count``; ``type`` added
              (default USAGE)

Settings history:
    v0 -> v1  bare values wrapped in a {schemaVersion, value} envelope;
              gasConfig gets defaults for missing keys
"""

from typing import Any

from src.migration.engine import MigrationChain, MigrationError, MigrationStep
from src.models.gas import GAS_LOG_SCHEMA_VERSION, GasConfig, GasLogType
from src.models.record import (
    RECORD_SCHEMA_VERSION,
    SCHEMA_VERSION_KEY,
    STRUCTURE_SCHEMA_VERSION,
)
from src.models.settings import SETTING_SCHEMA_VERSION, SettingKey


# =============================================================================
# RECORDS
# =============================================================================

def _require_identity(record: dict) -> None:
    for key in ("id", "date"):
        value = record.get(key)
        if not isinstance(value, str) or not value:
            raise MigrationError(f"Record has no usable '{key}' field")


def add_morning_sales(record: dict) -> dict:
    """v0 -> v1: records predating the morning/night split."""
    _require_identity(record)
    record.setdefault("morningSales", 0)
    return record


def _list_field(container: dict, key: str, what: str) -> list:
    value = container.get(key)
    if value is None:
        container[key] = []
        return container[key]
    if not isinstance(value, list):
        raise MigrationError(f"{what} '{key}' must be a list, got {type(value).__name__}")
    return value


def migrate_bill_photos(record: dict) -> dict:
    """
    v1 -> v2: one receipt photo per item became a list of photos.

    Also makes sure the expense containers exist. A missing amount is 0.
    """
    categories = _list_field(record, "expenses", "Record")
    for category in categories:
        if not isinstance(category, dict):
            raise MigrationError("Expense category must be an object")
        items = _list_field(category, "items", "Expense category")
        for item in items:
            if not isinstance(item, dict):
                raise MigrationError("Expense item must be an object")
            photos = _list_field(item, "billPhotos", "Expense item")
            if "billPhoto" in item:
                legacy = item.pop("billPhoto")
                if legacy and legacy not in photos:
                    photos.append(legacy)
            item.setdefault("amount", 0)
    return record


def add_is_closed(record: dict) -> dict:
    """v2 -> v3: holidays can be marked as closed days."""
    record.setdefault("isClosed", False)
    return record


RECORD_STEPS = [
    MigrationStep(0, "add morningSales", add_morning_sales),
    MigrationStep(1, "billPhoto to billPhotos", migrate_bill_photos),
    MigrationStep(2, "add isClosed", add_is_closed),
]

RECORD_CHAIN = MigrationChain("record", RECORD_STEPS, RECORD_SCHEMA_VERSION)


# =============================================================================
# EXPENSE STRUCTURE
# =============================================================================

def _detect_structure_version(raw: Any) -> int:
    if not isinstance(raw, dict):
        raise MigrationError(f"Expense structure must be an object, got {type(raw).__name__}")
    return 0


def _unwrap_legacy_structure(raw: dict) -> dict:
    # Old builds kept the structure as {"id": "main", "data": {...}}
    if set(raw) <= {"id", "data"} and isinstance(raw.get("data"), dict):
        return raw["data"]
    return raw


def structure_items_to_templates(raw: dict) -> dict:
    """v0 -> v1: bare item names become {name, defaultValue} templates."""
    mapping = _unwrap_legacy_structure(raw)
    upgraded = {}
    for category, items in mapping.items():
        if not isinstance(items, list):
            raise MigrationError(
                f"Category '{category}' must hold a list, got {type(items).__name__}"
            )
        templates = []
        for item in items:
            if isinstance(item, str):
                templates.append({"name": item, "defaultValue": 0})
            elif isinstance(item, dict):
                item.setdefault("defaultValue", 0)
                templates.append(item)
            else:
                raise MigrationError(
                    f"Item in category '{category}' must be a name or an object"
                )
        upgraded[category] = templates
    return {"data": upgraded}


STRUCTURE_CHAIN = MigrationChain(
    "structure",
    [MigrationStep(0, "item names to templates", structure_items_to_templates)],
    STRUCTURE_SCHEMA_VERSION,
    detect_legacy_version=_detect_structure_version,
)


# =============================================================================
# GAS LOGS
# =============================================================================

def normalize_gas_log(log: dict) -> dict:
    """v0 -> v1: logs from before log types existed were all swaps."""
    if not isinstance(log.get("id"), str) or not log.get("id"):
        raise MigrationError("Gas log has no usable 'id' field")
    log.setdefault("type", GasLogType.USAGE.value)
    if "count" not in log and "cylindersSwapped" in log:
        log["count"] = log.pop("cylindersSwapped")
    log.setdefault("count", 0)
    return log


GAS_LOG_CHAIN = MigrationChain(
    "gas_log",
    [MigrationStep(0, "typed gas logs", normalize_gas_log)],
    GAS_LOG_SCHEMA_VERSION,
)


# =============================================================================
# SETTINGS
# =============================================================================

def _any_value_is_legacy(raw: Any) -> int:
    return 0


def _wrap_setting(raw: Any) -> dict:
    return {"value": raw}


def _wrap_gas_config(raw: Any) -> dict:
    if not isinstance(raw, dict):
        raise MigrationError(f"gasConfig must be an object, got {type(raw).__name__}")
    defaults = GasConfig().to_json_dict()
    return {"value": {**defaults, **raw}}


def setting_chain(key: str) -> MigrationChain:
    """Migration chain for the value stored under settings ``key``."""
    wrap = _wrap_gas_config if key == SettingKey.GAS_CONFIG.value else _wrap_setting
    return MigrationChain(
        f"setting:{key}",
        [MigrationStep(0, "versioned setting envelope", wrap)],
        SETTING_SCHEMA_VERSION,
        detect_legacy_version=_any_value_is_legacy,
    )


def setting_document(value: Any) -> dict:
    """Versioned envelope in which a setting value is stored."""
    return {SCHEMA_VERSION_KEY: SETTING_SCHEMA_VERSION, "value": value}
