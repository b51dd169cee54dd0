from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import ClassVar, Tuple

MIN_VALUES = ("0", "1")
MAX_VALUES = ("1", "*")


@dataclass(frozen=True)
class Column:
    name: str
    data_type: str = ""
    is_primary_key: bool = False
    is_foreign_key: bool = False


@dataclass(frozen=True)
class Table:
    """A table snapshot. Identity is (schema, name); columns are optional."""

    name: str
    schema: str = "public"
    columns: Tuple[Column, ...] = field(default=(), compare=False)


@dataclass(frozen=True)
class ForeignKey:
    """A single-column FK: ``from_table`` (child) depends on ``to_table`` (parent)."""

    from_table: str
    from_column: str
    to_table: str
    to_column: str
    constraint_name: str = ""

    @property
    def source_column_key(self) -> str:
        return f"{self.from_table}.{self.from_column}"

    @property
    def is_self_reference(self) -> bool:
        return self.from_table == self.to_table


@dataclass(frozen=True)
class ColumnInfo:
    is_nullable: bool
    # True only when the column is the sole member of a UNIQUE or PRIMARY KEY constraint.
    has_sole_unique_constraint: bool = False


@dataclass(frozen=True)
class Cardinality:
    min: str
    max: str

    OPTIONAL_ONE: ClassVar["Cardinality"]
    EXACTLY_ONE: ClassVar["Cardinality"]
    OPTIONAL_MANY: ClassVar["Cardinality"]
    REQUIRED_MANY: ClassVar["Cardinality"]

    @property
    def is_valid(self) -> bool:
        return self.min in MIN_VALUES and self.max in MAX_VALUES

    def __str__(self) -> str:
        return f"({self.min},{self.max})"


Cardinality.OPTIONAL_ONE = Cardinality("0", "1")
Cardinality.EXACTLY_ONE = Cardinality("1", "1")
Cardinality.OPTIONAL_MANY = Cardinality("0", "*")
Cardinality.REQUIRED_MANY = Cardinality("1", "*")


@dataclass(frozen=True)
class Relationship:
    from_table: Table
    to_table: Table
    from_cardinality: Cardinality
    to_cardinality: Cardinality
    path: Tuple[str, ...] = ()

    @property
    def intermediate_tables(self) -> Tuple[str, ...]:
        return self.path[1:-1] if len(self.path) > 2 else ()

    def swapped(self) -> "Relationship":
        """Return the same relationship reported from the other side."""
        return replace(
            self,
            from_table=self.to_table,
            to_table=self.from_table,
            from_cardinality=self.to_cardinality,
            to_cardinality=self.from_cardinality,
            path=tuple(reversed(self.path)),
        )
