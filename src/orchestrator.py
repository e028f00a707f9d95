"""
Main Orchestrator for Daybook

This module ties the store, the migration engine and the analytics together
and defines the end-to-end flows for:
1. Startup (open -> migrate -> write back -> build snapshot)
2. Record edits (save, re-date, delete)
3. Backup export and restore
4. Structure, preference and gas log updates
5. Reports and CSV export over the in-memory snapshot

DESIGN DECISION: The orchestrator enforces the boundaries:
- A load that cannot migrate its data FAILS; it never shows an empty book
- In-memory state changes only after the store call succeeded
- A payload is fully validated before anything is written
- Every change is audited

Analytics never see the store. They get the snapshot held here.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from src.analytics.gas import compute_gas_state
from src.analytics.periods import (
    DateRange,
    available_calendar_years,
    available_fiscal_years,
    filter_by_range,
    fiscal_year_range,
)
from src.analytics.expenses import tracked_item_totals
from src.analytics.ratios import rolling_average_profit
from src.audit import AuditLogger, configure_logging, create_correlation_id
from src.config import AppSettings, get_settings
from src.exports import (
    decode_backup,
    decode_structure,
    encode_backup,
    records_to_csv,
)
from src.migration import (
    GAS_LOG_CHAIN,
    RECORD_CHAIN,
    STRUCTURE_CHAIN,
    MigrationError,
    setting_chain,
    setting_document,
)
from src.models.audit import AuditEventBuilder
from src.models.backup import BackupData
from src.models.gas import GasConfig, GasLog, GasState
from src.models.record import (
    DEFAULT_EXPENSE_STRUCTURE,
    CustomExpenseStructure,
    DailyRecord,
    ExpenseStructureItem,
    new_record_expenses,
    parse_structure,
    structure_document,
)
from src.models.report import ReportQuery, ReportResult
from src.models.settings import ALL_TIME, Preferences, ReportMetric, SettingKey
from src.queries import ReportExecutor
from src.services.storage import (
    DaybookStoreInterface,
    SQLiteDaybookStore,
    StorageError,
)
from src.validation import (
    BackupValidationError,
    PayloadValidator,
    SettingsValidationError,
    StructureValidationError,
    issues_from_model_error,
)


class RecordConflictError(Exception):
    """A record for that date already exists and is not the one being edited."""

    def __init__(self, record_id: str, original_id: Optional[str] = None):
        self.record_id = record_id
        self.original_id = original_id
        super().__init__(f"A record for {record_id} already exists")


class AppNotLoadedError(RuntimeError):
    """The application was used before load() completed."""
    pass


_PREFERENCE_FIELDS = {
    SettingKey.FOOD_COST_CATEGORIES: "food_cost_categories",
    SettingKey.BILL_UPLOAD_CATEGORIES: "bill_upload_categories",
    SettingKey.TRACKED_ITEMS: "tracked_items",
    SettingKey.REPORT_CARD_VISIBILITY: "report_card_visibility",
    SettingKey.GAS_CONFIG: "gas_config",
    SettingKey.ACTIVE_YEAR: "active_year",
}


def _copy_structure(structure: CustomExpenseStructure) -> CustomExpenseStructure:
    return {
        category: [item.model_copy() for item in items]
        for category, items in structure.items()
    }


class DaybookApp:
    """
    Application facade over one store.

    Flow:
    1. load() -> every stored document is migrated, changed documents are
       written back, and the typed snapshot is built
    2. Mutations -> validate, write to the store, then update the snapshot
    3. Reads -> computed from the snapshot, never from the store

    Usage:
        app = create_app()
        await app.load()
        await app.save_record(record)
    """

    def __init__(
        self,
        store: DaybookStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
        validator: Optional[PayloadValidator] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings()
        self._validator = validator or PayloadValidator()

        self._loaded = False
        self._records: dict[str, DailyRecord] = {}
        self._structure: CustomExpenseStructure = _copy_structure(DEFAULT_EXPENSE_STRUCTURE)
        self._gas_logs: dict[str, GasLog] = {}
        self._preferences = Preferences()

    # ------------------------------------------------------------------
    # Snapshot access
    # ------------------------------------------------------------------

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def records(self) -> list[DailyRecord]:
        """Every record, newest first."""
        return sorted(self._records.values(), key=lambda r: r.date, reverse=True)

    @property
    def structure(self) -> CustomExpenseStructure:
        return _copy_structure(self._structure)

    @property
    def gas_logs(self) -> list[GasLog]:
        """Every gas log, newest first."""
        return sorted(self._gas_logs.values(), key=lambda log: log.timestamp, reverse=True)

    @property
    def preferences(self) -> Preferences:
        return self._preferences.model_copy(deep=True)

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    def get_record(self, record_id: str) -> Optional[DailyRecord]:
        return self._records.get(record_id)

    def new_record(self, record_date: str) -> DailyRecord:
        """A blank record for ``record_date`` pre-filled from the expense structure."""
        return DailyRecord.for_date(record_date, expenses=new_record_expenses(self._structure))

    def active_year_records(self) -> list[DailyRecord]:
        """
        Records in the active year, newest first.

        The active year is "all", a calendar year ("2024") or a fiscal
        year label ("2023-2024").
        """
        year = self._preferences.active_year
        if year == ALL_TIME:
            return self.records
        if len(year) == 4 and year.isdigit():
            return [record for record in self.records if record.date.startswith(year)]
        try:
            window = fiscal_year_range(year)
        except ValueError:
            return self.records
        return filter_by_range(self.records, window)

    def available_years(self) -> list[str]:
        return available_calendar_years(self._records.values())

    def available_fiscal_years(self) -> list[str]:
        return available_fiscal_years(self._records.values())

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise AppNotLoadedError("Call load() before using the application")

    async def _store_call(self, operation: str, awaitable, correlation_id: Optional[UUID]) -> Any:
        try:
            return await awaitable
        except StorageError as e:
            await self._audit_logger.log_storage_error(
                operation=operation,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def load(self, correlation_id: Optional[UUID] = None) -> None:
        """
        Open the store and bring every stored document up to date.

        Raises:
            MigrationError: Stored data could not be interpreted. The app
                stays unloaded; nothing is treated as empty.
            SettingsValidationError: A stored setting has the wrong shape.
            StorageError: The store failed.
        """
        correlation_id = correlation_id or create_correlation_id()

        await self._store_call("open", self._store.open(), correlation_id)
        raw_records = await self._store_call(
            "get_all_records", self._store.get_all_records(), correlation_id
        )
        raw_structure = await self._store_call(
            "get_structure", self._store.get_structure(), correlation_id
        )
        raw_logs = await self._store_call(
            "get_gas_logs", self._store.get_gas_logs(), correlation_id
        )
        raw_settings = await self._store_call(
            "get_all_settings", self._store.get_all_settings(), correlation_id
        )

        try:
            record_result = RECORD_CHAIN.migrate_collection(raw_records)
            records = self._type_documents(record_result.documents, DailyRecord, "record")

            structure_changed = False
            structure_steps: list[str] = []
            structure = _copy_structure(DEFAULT_EXPENSE_STRUCTURE)
            structure_doc = None
            if raw_structure is not None:
                structure_result = STRUCTURE_CHAIN.migrate(raw_structure)
                structure_doc = structure_result.document
                structure_changed = structure_result.changed
                structure_steps = structure_result.applied_steps
                structure = self._type_structure(structure_doc["data"])

            log_result = GAS_LOG_CHAIN.migrate_collection(raw_logs)
            logs = self._type_documents(log_result.documents, GasLog, "gas_log")

            preference_values, changed_settings = self._migrate_settings(raw_settings)
        except MigrationError as e:
            await self._audit_logger.log(AuditEventBuilder.migration_failed(
                document_kind=e.document_kind or "document",
                error_message=str(e),
                correlation_id=correlation_id,
            ))
            raise

        preferences = self._build_preferences(preference_values)

        # Write back only what changed
        if record_result.changed:
            await self._store_call(
                "put_records",
                self._store.put_records(record_result.changed_documents),
                correlation_id,
            )
            await self._log_migration("record", record_result.changed_documents,
                                      record_result.applied_steps, correlation_id)
        if structure_changed:
            await self._store_call(
                "save_structure", self._store.save_structure(structure_doc), correlation_id
            )
            await self._log_migration("structure", [structure_doc],
                                      structure_steps, correlation_id)
        if log_result.changed:
            await self._store_call(
                "put_gas_logs",
                self._store.put_gas_logs(log_result.changed_documents),
                correlation_id,
            )
            await self._log_migration("gas_log", log_result.changed_documents,
                                      log_result.applied_steps, correlation_id)
        for key, document in changed_settings.items():
            await self._store_call(
                "save_setting", self._store.save_setting(key, document), correlation_id
            )
        if changed_settings:
            await self._log_migration("setting", list(changed_settings.values()),
                                      ["versioned setting envelope"], correlation_id)

        self._records = {record.id: record for record in records}
        self._structure = structure
        self._gas_logs = {log.id: log for log in logs}
        self._preferences = preferences
        self._loaded = True

        await self._audit_logger.log(AuditEventBuilder.store_loaded(
            record_count=len(self._records),
            gas_log_count=len(self._gas_logs),
            correlation_id=correlation_id,
        ))

    async def _log_migration(
        self,
        kind: str,
        changed: list[Any],
        steps: list[str],
        correlation_id: UUID,
    ) -> None:
        await self._audit_logger.log(AuditEventBuilder.migration_applied(
            document_kind=kind,
            changed_count=len(changed),
            steps=steps,
            correlation_id=correlation_id,
        ))

    @staticmethod
    def _type_documents(documents: list[dict], model, kind: str) -> list:
        typed = []
        for document in documents:
            try:
                typed.append(model.from_document(document))
            except PydanticValidationError as e:
                raise MigrationError(
                    f"Migrated document is not valid: {e.error_count()} problem(s), "
                    f"first: {e.errors()[0].get('msg')}",
                    kind,
                    document.get("id"),
                ) from e
        return typed

    @staticmethod
    def _type_structure(data: Any) -> CustomExpenseStructure:
        try:
            return parse_structure(data)
        except PydanticValidationError as e:
            raise MigrationError(
                f"Migrated structure is not valid: {e.errors()[0].get('msg')}",
                "structure",
            ) from e

    def _migrate_settings(
        self,
        raw_settings: dict[str, Any],
    ) -> tuple[dict[SettingKey, Any], dict[str, Any]]:
        values: dict[SettingKey, Any] = {}
        changed: dict[str, Any] = {}
        for key in SettingKey:
            raw = raw_settings.get(key.value)
            if raw is None:
                continue
            result = setting_chain(key.value).migrate(raw, document_id=key.value)
            values[key] = self._validator.validate_setting(key, result.document["value"])
            if result.changed:
                changed[key.value] = result.document
        return values, changed

    def _build_preferences(self, values: dict[SettingKey, Any]) -> Preferences:
        data = self._preferences.model_dump() if self._loaded else Preferences().model_dump()
        for key, value in values.items():
            data[_PREFERENCE_FIELDS[key]] = value
        try:
            return Preferences.model_validate(data)
        except PydanticValidationError as e:
            raise SettingsValidationError(issues_from_model_error(e, "settings")) from e

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    async def save_record(
        self,
        record: DailyRecord,
        original_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> DailyRecord:
        """
        Save a new or edited record.

        When ``original_id`` differs from the record's id the record has
        been moved to another day; the old key is removed in the same
        store transaction.

        Raises:
            RecordConflictError: Another record already holds that date.
            StorageError: The store failed; nothing changed in memory.
        """
        self._require_loaded()
        correlation_id = correlation_id or create_correlation_id()
        record = record.normalized()

        if record.id in self._records and record.id != original_id:
            await self._audit_logger.log(AuditEventBuilder.record_conflict(
                record_id=record.id,
                original_id=original_id,
                correlation_id=correlation_id,
            ))
            raise RecordConflictError(record.id, original_id)

        document = record.to_document()
        redated = original_id is not None and original_id != record.id
        if redated:
            await self._store_call(
                "rekey_record", self._store.rekey_record(original_id, document), correlation_id
            )
            self._records.pop(original_id, None)
        else:
            await self._store_call("save_record", self._store.save_record(document), correlation_id)

        self._records[record.id] = record

        if redated:
            await self._audit_logger.log_record_redated(original_id, record.id, correlation_id)
        await self._audit_logger.log_record_saved(
            record_id=record.id,
            total_sales=str(record.total_sales),
            correlation_id=correlation_id,
        )
        return record

    async def delete_record(
        self,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete a record. Returns False if there was none for that date."""
        self._require_loaded()
        correlation_id = correlation_id or create_correlation_id()

        deleted = await self._store_call(
            "delete_record", self._store.delete_record(record_id), correlation_id
        )
        self._records.pop(record_id, None)
        if deleted:
            await self._audit_logger.log_record_deleted(record_id, correlation_id)
        return deleted

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    def snapshot(self) -> BackupData:
        """Everything a backup file carries."""
        self._require_loaded()
        return BackupData(
            records=sorted(self._records.values(), key=lambda r: r.date),
            custom_structure=self.structure,
            gas_logs=sorted(self._gas_logs.values(), key=lambda log: log.timestamp),
            gas_config=self._preferences.gas_config.model_copy(),
        )

    async def export_backup(self, correlation_id: Optional[UUID] = None) -> str:
        """Backup file text for the current snapshot."""
        data = self.snapshot()
        text = encode_backup(data)
        await self._audit_logger.log(AuditEventBuilder.backup_exported(
            record_count=len(data.records),
            correlation_id=correlation_id or create_correlation_id(),
        ))
        return text

    async def restore(
        self,
        backup: Union[BackupData, str, bytes],
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Replace the whole store with a backup.

        Records and structure are always replaced. Gas logs and the gas
        configuration are replaced only when the backup carries them.
        Nothing is merged. Returns the number of restored records.

        Raises:
            BackupValidationError: The backup was rejected; nothing changed.
            StorageError: The store failed; the previous contents remain.
        """
        self._require_loaded()
        correlation_id = correlation_id or create_correlation_id()

        if not isinstance(backup, BackupData):
            try:
                backup = decode_backup(backup)
            except BackupValidationError as e:
                await self._audit_logger.log(AuditEventBuilder.import_rejected(
                    source="backup",
                    issues=[issue.model_dump() for issue in e.issues],
                    correlation_id=correlation_id,
                ))
                raise

        records = [record.normalized() for record in backup.records]
        gas_logs = list(backup.gas_logs) if backup.gas_logs is not None else None
        settings = None
        if backup.gas_config is not None:
            settings = {
                SettingKey.GAS_CONFIG.value: setting_document(backup.gas_config.to_json_dict())
            }

        await self._store_call(
            "replace_all",
            self._store.replace_all(
                records=[record.to_document() for record in records],
                structure=structure_document(backup.custom_structure),
                gas_logs=[log.to_document() for log in gas_logs] if gas_logs is not None else None,
                settings=settings,
            ),
            correlation_id,
        )

        self._records = {record.id: record for record in records}
        self._structure = _copy_structure(backup.custom_structure)
        if gas_logs is not None:
            self._gas_logs = {log.id: log for log in gas_logs}
        if backup.gas_config is not None:
            self._preferences = self._preferences.model_copy(
                update={"gas_config": backup.gas_config.model_copy()}
            )

        await self._audit_logger.log(AuditEventBuilder.restore_completed(
            record_count=len(records),
            restored_gas=gas_logs is not None,
            correlation_id=correlation_id,
        ))
        return len(records)

    # ------------------------------------------------------------------
    # Expense structure
    # ------------------------------------------------------------------

    async def update_structure(
        self,
        structure: Union[CustomExpenseStructure, dict[str, Any]],
        correlation_id: Optional[UUID] = None,
    ) -> CustomExpenseStructure:
        """Replace the expense templates. Existing records are untouched."""
        self._require_loaded()
        correlation_id = correlation_id or create_correlation_id()
        try:
            typed = parse_structure(structure)
        except PydanticValidationError as e:
            raise StructureValidationError(issues_from_model_error(e, "structure")) from e

        await self._store_call(
            "save_structure", self._store.save_structure(structure_document(typed)), correlation_id
        )
        self._structure = _copy_structure(typed)
        await self._audit_logger.log(AuditEventBuilder.structure_updated(
            category_count=len(typed),
            correlation_id=correlation_id,
        ))
        return self.structure

    async def import_structure(
        self,
        text: Union[str, bytes],
        correlation_id: Optional[UUID] = None,
    ) -> CustomExpenseStructure:
        """Replace the expense templates from a structure file."""
        self._require_loaded()
        correlation_id = correlation_id or create_correlation_id()
        try:
            structure = decode_structure(text)
        except StructureValidationError as e:
            await self._audit_logger.log(AuditEventBuilder.import_rejected(
                source="structure",
                issues=[issue.model_dump() for issue in e.issues],
                correlation_id=correlation_id,
            ))
            raise
        return await self.update_structure(structure, correlation_id)

    async def save_custom_item(
        self,
        category_name: str,
        item_name: str,
        default_value: Decimal = Decimal("0"),
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Add an item template, creating the category if needed.

        Returns False (and writes nothing) if the category already has an
        item with that name.
        """
        self._require_loaded()
        existing = self._structure.get(category_name, [])
        if any(item.name == item_name for item in existing):
            return False

        try:
            new_item = ExpenseStructureItem(name=item_name, default_value=default_value)
        except PydanticValidationError as e:
            raise StructureValidationError(
                issues_from_model_error(e, f"structure.{category_name}")
            ) from e

        updated = _copy_structure(self._structure)
        updated[category_name] = [item.model_copy() for item in existing] + [new_item]
        await self.update_structure(updated, correlation_id)
        return True

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def update_preference(
        self,
        key: Union[SettingKey, str],
        value: Any,
        correlation_id: Optional[UUID] = None,
    ) -> Preferences:
        """
        Validate and store one setting.

        Raises:
            SettingsValidationError: The value has the wrong shape.
        """
        self._require_loaded()
        correlation_id = correlation_id or create_correlation_id()
        if isinstance(value, GasConfig):
            value = value.to_json_dict()
        value = self._validator.validate_setting(key, value)
        setting = SettingKey(key)
        preferences = self._build_preferences({setting: value})

        await self._store_call(
            "save_setting",
            self._store.save_setting(setting.value, setting_document(preferences.value_for(setting))),
            correlation_id,
        )
        self._preferences = preferences
        await self._audit_logger.log(AuditEventBuilder.setting_updated(
            key=setting.value,
            correlation_id=correlation_id,
        ))
        return self.preferences

    async def update_food_cost_categories(self, categories: list[str]) -> Preferences:
        return await self.update_preference(SettingKey.FOOD_COST_CATEGORIES, categories)

    async def update_bill_upload_categories(self, categories: list[str]) -> Preferences:
        return await self.update_preference(SettingKey.BILL_UPLOAD_CATEGORIES, categories)

    async def update_tracked_items(self, items: list[str]) -> Preferences:
        return await self.update_preference(SettingKey.TRACKED_ITEMS, items)

    async def update_report_card_visibility(
        self,
        visibility: dict[Union[ReportMetric, str], bool],
    ) -> Preferences:
        value = {
            (metric.value if isinstance(metric, ReportMetric) else metric): flag
            for metric, flag in visibility.items()
        }
        return await self.update_preference(SettingKey.REPORT_CARD_VISIBILITY, value)

    async def update_gas_config(self, config: GasConfig) -> Preferences:
        return await self.update_preference(SettingKey.GAS_CONFIG, config)

    async def set_active_year(self, year: str) -> Preferences:
        return await self.update_preference(SettingKey.ACTIVE_YEAR, year)

    # ------------------------------------------------------------------
    # Gas
    # ------------------------------------------------------------------

    async def save_gas_log(
        self,
        log: GasLog,
        correlation_id: Optional[UUID] = None,
    ) -> GasLog:
        """Add a gas log, or replace the one with the same id."""
        self._require_loaded()
        correlation_id = correlation_id or create_correlation_id()
        await self._store_call("save_gas_log", self._store.save_gas_log(log.to_document()), correlation_id)
        self._gas_logs[log.id] = log
        await self._audit_logger.log(AuditEventBuilder.gas_log_saved(
            log_id=log.id,
            log_type=log.type.value,
            count=log.count,
            correlation_id=correlation_id,
        ))
        return log

    async def delete_gas_log(
        self,
        log_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        self._require_loaded()
        correlation_id = correlation_id or create_correlation_id()
        deleted = await self._store_call(
            "delete_gas_log", self._store.delete_gas_log(log_id), correlation_id
        )
        self._gas_logs.pop(log_id, None)
        if deleted:
            await self._audit_logger.log(AuditEventBuilder.gas_log_deleted(
                log_id=log_id,
                correlation_id=correlation_id,
            ))
        return deleted

    def gas_state(self, now: Optional[datetime] = None) -> GasState:
        return compute_gas_state(
            self._gas_logs.values(),
            self._preferences.gas_config,
            now=now,
            window_days=self._settings.gas_usage_window_days,
        )

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def report(self, query: ReportQuery) -> ReportResult:
        executor = ReportExecutor(self._preferences.food_cost_categories)
        return executor.execute(query, self._records.values())

    def average_profit(self, days: int, today: Optional[date] = None) -> Decimal:
        """Dashboard average: mean profit per record over the last ``days`` days."""
        return rolling_average_profit(self._records.values(), days, today)

    def tracked_items_spend(self, query: Optional[ReportQuery] = None) -> dict[str, Decimal]:
        """Spend on each tracked item, over the query window or all time."""
        records = self._records.values()
        if query is not None:
            window = ReportExecutor().resolve_window(query)
            records = filter_by_range(records, window)
        return tracked_item_totals(records, self._preferences.tracked_items)

    def export_csv(self, query: Optional[ReportQuery] = None) -> str:
        """CSV of every record in the query window (all records without one)."""
        window = DateRange()
        if query is not None:
            window = ReportExecutor().resolve_window(query)
        return records_to_csv(filter_by_range(self._records.values(), window), self._structure)

    async def close(self) -> None:
        """Release the store. The snapshot stays readable."""
        await self._store.close()


def create_app(
    settings: Optional[AppSettings] = None,
    store: Optional[DaybookStoreInterface] = None,
) -> DaybookApp:
    """
    Factory function to wire the application.

    Args:
        settings: Application settings; defaults to get_settings().
        store: Store to use; defaults to the SQLite file named by settings.

    Returns:
        An unloaded DaybookApp. Call ``await app.load()`` before use.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    if store is None:
        store = SQLiteDaybookStore(
            settings.database_path,
            retry_attempts=settings.storage_retry_attempts,
        )

    return DaybookApp(
        store=store,
        audit_logger=AuditLogger(),
        settings=settings,
    )


__all__ = [
    "AppNotLoadedError",
    "DaybookApp",
    "RecordConflictError",
    "create_app",
]
