"""
Core Data Models for Daybook

These models define the schemas for the data a day's trading produces:
sales, categorized expenses and the user-defined expense taxonomy.

DESIGN DECISION: Field names are snake_case in Python and camelCase on disk
and in backup files (aliases). Unknown fields are allowed and carried through
untouched, so a document written by a newer build survives a round trip.
"""

from datetime import date
from decimal import Decimal
from typing import Annotated, Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


RECORD_SCHEMA_VERSION = 3
STRUCTURE_SCHEMA_VERSION = 1

# Key used by every stored document to carry its schema version.
SCHEMA_VERSION_KEY = "schemaVersion"


def decimal_to_json(value: Decimal) -> int | float:
    """Render a Decimal as a plain JSON number (integers stay integers)."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


Amount = Annotated[
    Decimal,
    Field(ge=0),
    PlainSerializer(decimal_to_json, return_type=int | float, when_used="json"),
]


def _new_id() -> str:
    return str(uuid4())


def validate_date_string(value: str) -> str:
    """Accept only zero-padded YYYY-MM-DD strings naming a real day."""
    if not isinstance(value, str) or len(value) != 10:
        raise ValueError(f"Date must be a YYYY-MM-DD string, got {value!r}")
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Not a valid calendar date: {value!r}")
    return value


class DocumentModel(BaseModel):
    """Base for models that are persisted as camelCase JSON documents."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="allow",
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Dump to the on-disk / backup JSON shape."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# DAILY RECORD
# =============================================================================

class ExpenseItem(DocumentModel):
    """A single expense line, e.g. 'Chicken' under 'Meat'."""

    id: str = Field(default_factory=_new_id)
    name: str = Field(..., max_length=200)
    amount: Amount = Decimal("0")
    bill_photos: list[str] = Field(
        default_factory=list,
        description="Encoded receipt images"
    )


class ExpenseCategory(DocumentModel):
    """A named group of expense items."""

    id: str = Field(default_factory=_new_id)
    name: str = Field(..., max_length=200)
    items: list[ExpenseItem] = Field(default_factory=list)


class DailyRecord(DocumentModel):
    """
    One calendar day of trading.

    The date string is also the primary key: id == date always.
    Night sales are never stored, see src.analytics.expenses.night_sales.
    """

    id: str
    date: str
    total_sales: Amount = Decimal("0")
    morning_sales: Amount = Decimal("0")
    is_closed: bool = False
    expenses: list[ExpenseCategory] = Field(default_factory=list)

    @field_validator('date')
    @classmethod
    def validate_date(cls, v: str) -> str:
        return validate_date_string(v)

    @model_validator(mode='after')
    def validate_identity(self) -> 'DailyRecord':
        """A record is keyed by its date."""
        if self.id != self.date:
            raise ValueError(
                f"Record id ({self.id}) must equal its date ({self.date})"
            )
        return self

    @classmethod
    def for_date(
        cls,
        record_date: str,
        expenses: Optional[list[ExpenseCategory]] = None,
        **fields: Any,
    ) -> 'DailyRecord':
        """Create a record keyed by ``record_date``."""
        return cls(
            id=record_date,
            date=record_date,
            expenses=expenses or [],
            **fields,
        )

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> 'DailyRecord':
        """Build from a migrated store document (drops the version tag)."""
        data = {k: v for k, v in document.items() if k != SCHEMA_VERSION_KEY}
        return cls.model_validate(data)

    def to_document(self) -> dict[str, Any]:
        """Serialize for the store, stamped with the current schema version."""
        document = self.to_json_dict()
        document[SCHEMA_VERSION_KEY] = RECORD_SCHEMA_VERSION
        return document

    def normalized(self) -> 'DailyRecord':
        """
        Copy of this record ready to be saved.

        A closed day did not trade, so its sales are forced to zero.
        """
        if not self.is_closed:
            return self.model_copy(deep=True)
        return self.model_copy(
            update={"total_sales": Decimal("0"), "morning_sales": Decimal("0")},
            deep=True,
        )

    def redated(self, new_date: str) -> 'DailyRecord':
        """Copy of this record moved to another day."""
        validate_date_string(new_date)
        return self.model_copy(update={"id": new_date, "date": new_date}, deep=True)


# =============================================================================
# EXPENSE STRUCTURE (templates for new records)
# =============================================================================

class ExpenseStructureItem(DocumentModel):
    """Template for an item pre-filled on new records."""

    name: str = Field(..., min_length=1, max_length=200)
    default_value: Amount = Decimal("0")


CustomExpenseStructure = dict[str, list[ExpenseStructureItem]]

_structure_adapter = TypeAdapter(CustomExpenseStructure)


def parse_structure(data: Any) -> CustomExpenseStructure:
    """Validate a plain mapping into a typed expense structure."""
    return _structure_adapter.validate_python(data)


def structure_to_json(structure: CustomExpenseStructure) -> dict[str, Any]:
    """Dump a typed expense structure to its JSON shape."""
    return {
        category: [item.to_json_dict() for item in items]
        for category, items in structure.items()
    }


def structure_document(structure: CustomExpenseStructure) -> dict[str, Any]:
    """Versioned envelope in which the structure is stored."""
    return {
        SCHEMA_VERSION_KEY: STRUCTURE_SCHEMA_VERSION,
        "data": structure_to_json(structure),
    }


def new_record_expenses(structure: CustomExpenseStructure) -> list[ExpenseCategory]:
    """
    Generate the expense categories for a new record from the templates.

    Every category and item gets a fresh id; amounts start at the template's
    default value. Existing records never reference the structure.
    """
    return [
        ExpenseCategory(
            name=category_name,
            items=[
                ExpenseItem(name=item.name, amount=item.default_value)
                for item in items
            ],
        )
        for category_name, items in structure.items()
    ]


def _templates(*names: str) -> list[ExpenseStructureItem]:
    return [ExpenseStructureItem(name=name) for name in names]


DEFAULT_EXPENSE_STRUCTURE: CustomExpenseStructure = {
    "Market Bills": _templates(
        "Kaduveli Ameer Muttom",
        "Kaduveli Nasar Muttom",
        "Vegetables",
        "Plastics and Parcel",
        "Kappa",
        "Fruits",
    ),
    "Meat": _templates("Beef", "Chicken", "Potty", "Fish"),
    "Diary Expenses": _templates(
        "Milk",
        "Banana Leaf (Ela)",
        "Curd",
        "Ice",
        "Dosa Maav Supplier 1 (Old)",
        "Dosa Maav Supplier 2 (New)",
        "Egg Supplier 1 (KLM)",
        "Egg Supplier 2 (Ani)",
        "Chappathi Supplier",
        "Ediyappam",
        "Appam",
        "Snacks",
        "Tea Powder",
    ),
    "Gas": _templates("Super Gas", "Jinesh Gas"),
    "Labours": _templates(
        "Morning Porotta Master",
        "Morning Tea Master",
        "Morning Cleaning",
        "Morning Supplier",
        "Ameer",
        "Cook",
        "Kitchen Helper 1",
        "Kitchen Cleaning",
        "Night Porotta Master",
        "Night Tea Master (Abid)",
        "Night Cleaning 1",
        "Night Cleaning 2",
        "Night Supplier 1 (Jerul)",
        "Night Supplier 2 (Naga)",
        "Night Supplier 3 (Tajir)",
        "Night Supplier 4 (Noorsen)",
        "Chinese Master",
        "Alfaham Master",
        "Sadik",
        "Shabeer",
        "Vappa",
    ),
    "Fixed Costs": _templates(
        "Daily Rent (Shop + Kitchen + Family Room)",
        "Electricity (Shop + Kitchen + Family Room)",
        "Water Bill",
    ),
}
