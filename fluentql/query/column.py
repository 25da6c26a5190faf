"""Column definitions for ``CREATE TABLE`` statements.

Example::

    Column("id", "bigint", 20).unsigned().as_primary_key().with_auto_increment()
    Column("email", "varchar", 191).as_unique()
    Column("bio", "text", 65535).allow_null().collate("utf8mb4_unicode_ci")
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from fluentql.errors import ColumnDefinitionError

if TYPE_CHECKING:
    from fluentql.compile.base import Adapter

#: Types that accept a character set / collation.
TEXT_TYPES: frozenset[str] = frozenset(
    {"CHAR", "VARCHAR", "TINYTEXT", "TEXT", "MEDIUMTEXT", "LONGTEXT"}
)

#: Types that cannot be declared without a length.
VARIABLE_LENGTH_TYPES: frozenset[str] = frozenset({"VARCHAR", "VARBINARY", "BINARY", "TEXT"})


class Column(BaseModel):
    """A single column definition.

    Args:
        name: Column name.
        type: SQL type name; stored upper-cased.
        length: Length / display width, required for variable-length types.

    Raises:
        ColumnDefinitionError: If a variable-length type has no length.
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    type: str
    length: int | None = None
    nullable: bool = False
    primary_key: bool = False
    unique: bool = False
    index: bool = False
    auto_increment: bool = False
    attributes: str | None = None
    collation: str | None = None

    def __init__(self, name: str, type: str, length: int | None = None, **data: Any) -> None:
        super().__init__(name=name, type=type, length=length, **data)

    @field_validator("type")
    @classmethod
    def _upper_type(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _require_length(self) -> Column:
        if self.length is None and self.type in VARIABLE_LENGTH_TYPES:
            raise ColumnDefinitionError(
                f'The "{self.type}" data type require to specify the length of the column.',
                column=self.name,
            )
        return self

    # ------------------------------------------------------------------
    # Fluent modifiers
    # ------------------------------------------------------------------

    def with_attributes(self, attributes: str) -> Column:
        self.attributes = attributes
        return self

    def unsigned(self) -> Column:
        return self.with_attributes("UNSIGNED")

    def unsigned_zero_fill(self) -> Column:
        return self.with_attributes("UNSIGNED ZEROFILL")

    def binary(self) -> Column:
        return self.with_attributes("BINARY")

    def on_update_current_timestamp(self) -> Column:
        return self.with_attributes("ON UPDATE CURRENT_TIMESTAMP")

    def collate(self, collation: str) -> Column:
        self.collation = collation
        return self

    def allow_null(self) -> Column:
        self.nullable = True
        return self

    def with_auto_increment(self) -> Column:
        self.auto_increment = True
        return self

    def as_unique(self) -> Column:
        self.unique = True
        return self

    def as_index(self) -> Column:
        self.index = True
        return self

    def as_primary_key(self) -> Column:
        self.primary_key = True
        return self

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def to_sql(self, adapter: Adapter) -> str:
        """Render the column definition for ``adapter``'s dialect."""
        sql = f"{adapter.quote_identifier(self.name)} {self.type}"
        if self.length is not None:
            sql += f"({self.length})"
        if self.attributes:
            sql += f" {self.attributes.upper()}"
        if self.collation and self.type in TEXT_TYPES:
            charset = self.collation.split("_")[0]
            sql += f" CHARACTER SET {charset} COLLATE {self.collation}"
        sql += " NULL" if self.nullable else " NOT NULL"
        if self.auto_increment:
            sql += f" {adapter.auto_increment_clause()}"
        return sql
