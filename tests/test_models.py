"""
Tests for Daybook models

Test strategy:
1. Unit tests for individual components (models, migrations, analytics)
2. Integration tests for flows (in-memory and temporary SQLite stores)
3. No shared state between tests
"""

import pytest
from datetime import timezone
from decimal import Decimal

from pydantic import ValidationError

from src.config import AppSettings
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from src.models.backup import BackupData
from src.models.gas import GasConfig, GasLog, GasLogType
from src.models.record import (
    DEFAULT_EXPENSE_STRUCTURE,
    DailyRecord,
    ExpenseItem,
    ExpenseStructureItem,
    new_record_expenses,
    parse_structure,
    structure_document,
)
from src.models.settings import Preferences, ReportMetric, SettingKey


class TestDailyRecord:
    """Tests for the daily record model."""

    def test_id_must_equal_date(self):
        with pytest.raises(ValidationError):
            DailyRecord(id="2024-06-09", date="2024-06-10")

    def test_rejects_impossible_date(self):
        with pytest.raises(ValidationError):
            DailyRecord.for_date("2024-02-30")

    def test_rejects_unpadded_date(self):
        with pytest.raises(ValidationError):
            DailyRecord.for_date("2024-6-9")

    def test_reads_camel_case_document(self):
        record = DailyRecord.model_validate({
            "id": "2024-06-09",
            "date": "2024-06-09",
            "totalSales": 1500,
            "morningSales": 600,
            "isClosed": False,
            "expenses": [],
        })
        assert record.total_sales == Decimal("1500")
        assert record.morning_sales == Decimal("600")

    def test_dumps_camel_case_numbers(self):
        record = DailyRecord.for_date("2024-06-09", total_sales=Decimal("1500"))
        data = record.to_json_dict()
        assert data["totalSales"] == 1500
        assert data["morningSales"] == 0
        assert data["isClosed"] is False

    def test_fractional_amount_dumps_as_float(self):
        item = ExpenseItem(name="Curd", amount=Decimal("12.5"))
        assert item.to_json_dict()["amount"] == 12.5

    def test_unknown_fields_survive(self):
        record = DailyRecord.model_validate({
            "id": "2024-06-09",
            "date": "2024-06-09",
            "weather": "rain",
        })
        assert record.to_json_dict()["weather"] == "rain"

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            ExpenseItem(name="Milk", amount=Decimal("-5"))

    def test_item_name_is_stripped(self):
        assert ExpenseItem(name="  Milk  ").name == "Milk"

    def test_to_document_stamps_version(self):
        document = DailyRecord.for_date("2024-06-09").to_document()
        assert document["schemaVersion"] == 3

    def test_from_document_drops_version(self):
        document = DailyRecord.for_date("2024-06-09").to_document()
        record = DailyRecord.from_document(document)
        assert "schemaVersion" not in record.to_json_dict()

    def test_normalized_zeroes_sales_of_closed_day(self):
        record = DailyRecord.for_date(
            "2024-06-09",
            total_sales=Decimal("900"),
            morning_sales=Decimal("300"),
            is_closed=True,
        )
        normalized = record.normalized()
        assert normalized.total_sales == 0
        assert normalized.morning_sales == 0
        assert record.total_sales == Decimal("900")

    def test_normalized_keeps_open_day(self):
        record = DailyRecord.for_date("2024-06-09", total_sales=Decimal("900"))
        assert record.normalized().total_sales == Decimal("900")

    def test_redated_moves_id_and_date(self):
        record = DailyRecord.for_date("2024-06-09", total_sales=Decimal("10"))
        moved = record.redated("2024-06-10")
        assert moved.id == moved.date == "2024-06-10"
        assert moved.total_sales == Decimal("10")
        assert record.id == "2024-06-09"


class TestExpenseStructure:
    """Tests for expense templates."""

    def test_parse_from_camel_case(self):
        structure = parse_structure({"Meat": [{"name": "Beef", "defaultValue": 200}]})
        assert structure["Meat"][0].name == "Beef"
        assert structure["Meat"][0].default_value == Decimal("200")

    def test_empty_item_name_rejected(self):
        with pytest.raises(ValidationError):
            parse_structure({"Meat": [{"name": ""}]})

    def test_structure_document_envelope(self):
        structure = {"Meat": [ExpenseStructureItem(name="Beef", default_value=Decimal("200"))]}
        assert structure_document(structure) == {
            "schemaVersion": 1,
            "data": {"Meat": [{"name": "Beef", "defaultValue": 200}]},
        }

    def test_new_record_expenses_follow_templates(self):
        structure = {
            "Meat": [ExpenseStructureItem(name="Beef", default_value=Decimal("200"))],
            "Gas": [ExpenseStructureItem(name="Super Gas")],
        }
        expenses = new_record_expenses(structure)
        assert [c.name for c in expenses] == ["Meat", "Gas"]
        assert expenses[0].items[0].amount == Decimal("200")
        assert expenses[1].items[0].amount == 0

    def test_new_record_expenses_get_fresh_ids(self):
        structure = {"Meat": [ExpenseStructureItem(name="Beef")]}
        first = new_record_expenses(structure)
        second = new_record_expenses(structure)
        assert first[0].id != second[0].id
        assert first[0].items[0].id != second[0].items[0].id

    def test_default_structure_has_labour_category(self):
        assert "Labours" in DEFAULT_EXPENSE_STRUCTURE
        assert "Market Bills" in DEFAULT_EXPENSE_STRUCTURE


class TestGasModels:
    """Tests for gas log and config models."""

    def test_gas_log_accepts_utc_suffix(self):
        log = GasLog(date="2024-06-09T10:00:00.000Z", type="REFILL", count=3)
        assert log.type is GasLogType.REFILL
        assert log.timestamp.tzinfo == timezone.utc

    def test_gas_log_rejects_bad_timestamp(self):
        with pytest.raises(ValidationError):
            GasLog(date="yesterday", count=1)

    def test_gas_log_rejects_negative_count(self):
        with pytest.raises(ValidationError):
            GasLog(date="2024-06-09T10:00:00", count=-1)

    def test_gas_log_document_is_versioned(self):
        log = GasLog(id="g1", date="2024-06-09T10:00:00", count=2)
        document = log.to_document()
        assert document["schemaVersion"] == 1
        assert GasLog.from_document(document).id == "g1"

    def test_gas_config_defaults(self):
        config = GasConfig()
        assert config.current_stock == 0
        assert config.cylinders_per_bank == 2
        assert config.total_cylinders == 6

    def test_gas_config_reads_camel_case(self):
        config = GasConfig.model_validate({"cylindersPerBank": 3})
        assert config.cylinders_per_bank == 3
        assert config.total_cylinders == 6


class TestPreferences:
    """Tests for the typed settings snapshot."""

    def test_defaults(self):
        prefs = Preferences()
        assert prefs.food_cost_categories == ["Market Bills", "Meat", "Diary Expenses", "Gas"]
        assert prefs.bill_upload_categories == ["Market Bills", "Meat", "Gas"]
        assert prefs.tracked_items == []
        assert prefs.active_year == "all"
        assert all(prefs.report_card_visibility[m.value] for m in ReportMetric)

    def test_value_for_gas_config_is_camel_case(self):
        assert Preferences().value_for(SettingKey.GAS_CONFIG) == {
            "currentStock": 0,
            "cylindersPerBank": 2,
            "totalCylinders": 6,
        }

    def test_value_for_returns_copies(self):
        prefs = Preferences(tracked_items=["Beef"])
        prefs.value_for(SettingKey.TRACKED_ITEMS).append("Milk")
        assert prefs.tracked_items == ["Beef"]


class TestBackupData:
    """Tests for the backup snapshot model."""

    def test_optional_gas_keys_omitted(self):
        payload = BackupData().to_json_dict()
        assert set(payload) == {"version", "records", "customStructure"}

    def test_gas_keys_present_when_set(self):
        payload = BackupData(gas_logs=[], gas_config=GasConfig()).to_json_dict()
        assert payload["gasLogs"] == []
        assert payload["gasConfig"]["cylindersPerBank"] == 2


class TestAuditModels:
    """Tests for audit event models."""

    def test_record_saved_event(self):
        from uuid import uuid4
        correlation_id = uuid4()
        event = AuditEventBuilder.record_saved("2024-06-09", "1500", correlation_id)
        assert event.event_type == AuditEventType.RECORD_SAVED
        assert event.entity_id == "2024-06-09"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_storage_error_is_error_severity(self):
        event = AuditEventBuilder.storage_error("save_record", "disk full")
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "disk full"

    def test_timestamp_is_utc(self):
        event = AuditEventBuilder.record_deleted("2024-06-09", None)
        assert event.timestamp.tzinfo is not None

    def test_log_dict_is_plain(self):
        event = AuditEvent(
            event_type=AuditEventType.SETTING_UPDATED,
            description="Setting updated: trackedItems",
        )
        log = event.to_log_dict()
        assert log["event_type"] == "setting_updated"
        assert log["correlation_id"] is None
        assert isinstance(log["event_id"], str)


class TestAppSettings:
    """Tests for process configuration."""

    def test_database_path(self, tmp_path):
        settings = AppSettings(data_dir=tmp_path, database_filename="book.db")
        assert settings.database_path == tmp_path / "book.db"

    def test_log_level_normalized(self):
        assert AppSettings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            AppSettings(log_level="LOUD")

    def test_fiscal_year_must_start_in_april(self):
        with pytest.raises(ValidationError):
            AppSettings(fiscal_year_start_month=1)
