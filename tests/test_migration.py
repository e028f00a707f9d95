"""
Tests for schema migrations.

Migrations must be pure, idempotent and lossless, and must refuse documents
they cannot interpret instead of dropping them.
"""

import copy

import pytest

from src.migration import (
    GAS_LOG_CHAIN,
    RECORD_CHAIN,
    STRUCTURE_CHAIN,
    MigrationChain,
    MigrationError,
    MigrationStep,
    setting_chain,
    setting_document,
)
from src.models.record import DailyRecord, parse_structure


LEGACY_RECORD = {
    "id": "2023-11-02",
    "date": "2023-11-02",
    "totalSales": 4200,
    "weather": "rain",
    "expenses": [
        {
            "id": "c1",
            "name": "Meat",
            "items": [
                {"id": "i1", "name": "Beef", "amount": 300, "billPhoto": "data:image/png;base64,AAA"},
                {"id": "i2", "name": "Fish"},
            ],
        }
    ],
}


class TestRecordChain:
    """Tests for daily record upgrades."""

    def test_legacy_record_reaches_current_shape(self):
        result = RECORD_CHAIN.migrate(LEGACY_RECORD, document_id="2023-11-02")

        document = result.document
        assert result.changed is True
        assert result.from_version == 0
        assert document["schemaVersion"] == 3
        assert document["morningSales"] == 0
        assert document["isClosed"] is False
        beef, fish = document["expenses"][0]["items"]
        assert beef["billPhotos"] == ["data:image/png;base64,AAA"]
        assert "billPhoto" not in beef
        assert fish["amount"] == 0
        assert fish["billPhotos"] == []

    def test_unknown_fields_pass_through(self):
        result = RECORD_CHAIN.migrate(LEGACY_RECORD)
        assert result.document["weather"] == "rain"
        assert result.document["totalSales"] == 4200

    def test_all_three_steps_reported(self):
        result = RECORD_CHAIN.migrate(LEGACY_RECORD)
        assert result.applied_steps == [
            "add morningSales",
            "billPhoto to billPhotos",
            "add isClosed",
        ]

    def test_input_not_mutated(self):
        original = copy.deepcopy(LEGACY_RECORD)
        RECORD_CHAIN.migrate(LEGACY_RECORD)
        assert LEGACY_RECORD == original

    def test_migrated_record_is_loadable(self):
        result = RECORD_CHAIN.migrate(LEGACY_RECORD)
        record = DailyRecord.from_document(result.document)
        assert record.expenses[0].items[0].bill_photos == ["data:image/png;base64,AAA"]

    def test_second_pass_changes_nothing(self):
        first = RECORD_CHAIN.migrate(LEGACY_RECORD)
        second = RECORD_CHAIN.migrate(first.document)
        assert second.changed is False
        assert second.document == first.document

    def test_partial_upgrade_from_v2(self):
        raw = {
            "schemaVersion": 2,
            "id": "2024-01-05",
            "date": "2024-01-05",
            "morningSales": 150,
            "expenses": [],
        }
        result = RECORD_CHAIN.migrate(raw)
        assert result.from_version == 2
        assert result.applied_steps == ["add isClosed"]
        assert result.document["morningSales"] == 150
        assert result.document["isClosed"] is False

    def test_existing_values_are_kept(self):
        raw = {"id": "2024-01-05", "date": "2024-01-05", "morningSales": 80, "isClosed": True}
        result = RECORD_CHAIN.migrate(raw)
        assert result.document["morningSales"] == 80
        assert result.document["isClosed"] is True

    def test_missing_id_is_refused(self):
        with pytest.raises(MigrationError):
            RECORD_CHAIN.migrate({"date": "2024-01-05"})

    def test_newer_version_is_refused(self):
        raw = {"schemaVersion": 9, "id": "2024-01-05", "date": "2024-01-05"}
        with pytest.raises(MigrationError, match="newer"):
            RECORD_CHAIN.migrate(raw)

    def test_malformed_version_tag_is_refused(self):
        raw = {"schemaVersion": "3", "id": "2024-01-05", "date": "2024-01-05"}
        with pytest.raises(MigrationError):
            RECORD_CHAIN.migrate(raw)

    def test_non_list_expenses_is_refused(self):
        raw = {"id": "2024-01-05", "date": "2024-01-05", "expenses": "lots"}
        with pytest.raises(MigrationError) as exc_info:
            RECORD_CHAIN.migrate(raw, document_id="2024-01-05")
        assert exc_info.value.document_id == "2024-01-05"
        assert exc_info.value.document_kind == "record"

    def test_non_object_record_is_refused(self):
        with pytest.raises(MigrationError):
            RECORD_CHAIN.migrate(["not", "a", "record"])


class TestMigrationChain:
    """Tests for the chain machinery itself."""

    def test_chain_must_be_contiguous(self):
        steps = [
            MigrationStep(0, "first", lambda d: d),
            MigrationStep(2, "third", lambda d: d),
        ]
        with pytest.raises(ValueError):
            MigrationChain("broken", steps, 3)

    def test_chain_must_reach_current_version(self):
        with pytest.raises(ValueError):
            MigrationChain("short", [MigrationStep(0, "only", lambda d: d)], 2)

    def test_step_errors_become_migration_errors(self):
        def explode(document):
            raise TypeError("unsupported operand")

        chain = MigrationChain("thing", [MigrationStep(0, "explode", explode)], 1)
        with pytest.raises(MigrationError, match="explode"):
            chain.migrate({"id": "x"}, document_id="x")

    def test_step_must_produce_object(self):
        chain = MigrationChain("thing", [MigrationStep(0, "listify", lambda d: [d])], 1)
        with pytest.raises(MigrationError):
            chain.migrate({"id": "x"})

    def test_collection_reports_only_changed(self):
        current = DailyRecord.for_date("2024-02-01").to_document()
        result = RECORD_CHAIN.migrate_collection([current, LEGACY_RECORD])

        assert len(result.documents) == 2
        assert result.changed is True
        assert [doc["id"] for doc in result.changed_documents] == ["2023-11-02"]
        assert "add isClosed" in result.applied_steps

    def test_collection_of_current_documents_is_unchanged(self):
        current = DailyRecord.for_date("2024-02-01").to_document()
        result = RECORD_CHAIN.migrate_collection([current])
        assert result.changed is False
        assert result.applied_steps == []

    def test_collection_requires_list(self):
        with pytest.raises(MigrationError):
            RECORD_CHAIN.migrate_collection({"id": "2024-01-01"})

    def test_collection_fails_on_first_bad_document(self):
        with pytest.raises(MigrationError) as exc_info:
            RECORD_CHAIN.migrate_collection([
                LEGACY_RECORD,
                {"id": "2024-03-03", "date": "2024-03-03", "expenses": 5},
            ])
        assert exc_info.value.document_id == "2024-03-03"


class TestStructureChain:
    """Tests for expense structure upgrades."""

    def test_bare_names_become_templates(self):
        result = STRUCTURE_CHAIN.migrate({"Meat": ["Beef", "Fish"]})

        assert result.document == {
            "schemaVersion": 1,
            "data": {
                "Meat": [
                    {"name": "Beef", "defaultValue": 0},
                    {"name": "Fish", "defaultValue": 0},
                ]
            },
        }

    def test_templates_keep_their_defaults(self):
        result = STRUCTURE_CHAIN.migrate({"Meat": [{"name": "Beef", "defaultValue": 250}]})
        structure = parse_structure(result.document["data"])
        assert structure["Meat"][0].default_value == 250

    def test_wrapped_row_is_unwrapped(self):
        raw = {"id": "main", "data": {"Gas": ["Super Gas"]}}
        result = STRUCTURE_CHAIN.migrate(raw)
        assert result.document["data"] == {"Gas": [{"name": "Super Gas", "defaultValue": 0}]}

    def test_current_envelope_is_unchanged(self):
        raw = {"schemaVersion": 1, "data": {"Gas": [{"name": "Super Gas", "defaultValue": 0}]}}
        assert STRUCTURE_CHAIN.migrate(raw).changed is False

    def test_non_list_category_is_refused(self):
        with pytest.raises(MigrationError):
            STRUCTURE_CHAIN.migrate({"Meat": "Beef"})

    def test_non_object_structure_is_refused(self):
        with pytest.raises(MigrationError):
            STRUCTURE_CHAIN.migrate(["Meat"])


class TestGasLogChain:
    """Tests for gas log upgrades."""

    def test_swap_count_renamed(self):
        raw = {"id": "g1", "date": "2024-05-01T08:00:00", "cylindersSwapped": 2}
        document = GAS_LOG_CHAIN.migrate(raw).document
        assert document["count"] == 2
        assert document["type"] == "USAGE"
        assert "cylindersSwapped" not in document

    def test_existing_count_wins(self):
        raw = {"id": "g1", "date": "2024-05-01T08:00:00", "type": "REFILL", "count": 4}
        document = GAS_LOG_CHAIN.migrate(raw).document
        assert document["count"] == 4
        assert document["type"] == "REFILL"

    def test_log_without_id_is_refused(self):
        with pytest.raises(MigrationError):
            GAS_LOG_CHAIN.migrate({"date": "2024-05-01T08:00:00"})


class TestSettingChain:
    """Tests for settings upgrades."""

    def test_bare_value_is_wrapped(self):
        result = setting_chain("trackedItems").migrate(["Beef", "Milk"])
        assert result.document == {"schemaVersion": 1, "value": ["Beef", "Milk"]}

    def test_bare_string_is_wrapped(self):
        result = setting_chain("activeYear").migrate("2024")
        assert result.document["value"] == "2024"

    def test_gas_config_gets_missing_keys(self):
        result = setting_chain("gasConfig").migrate({"totalCylinders": 8})
        assert result.document["value"] == {
            "currentStock": 0,
            "cylindersPerBank": 2,
            "totalCylinders": 8,
        }

    def test_gas_config_must_be_object(self):
        with pytest.raises(MigrationError):
            setting_chain("gasConfig").migrate(7)

    def test_versioned_setting_is_unchanged(self):
        stored = setting_document(["Meat"])
        result = setting_chain("foodCostCategories").migrate(stored)
        assert result.changed is False
        assert result.document == {"schemaVersion": 1, "value": ["Meat"]}
