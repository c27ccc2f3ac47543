"""Per-dialect type and capability tables.

Each supported relational dialect is described by one :class:`DialectSpec`
entry: its type map, identifier quoting, the type used for the implicit user
reference column, and whether it can drop a column or change a column's type
in place.  The compiler never branches on the dialect name; adding a dialect
means adding one entry to :data:`DIALECTS`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from ..errors import ValidationError


class Dialect(str, Enum):
    """Supported SQL dialects."""
    SQLITE = "sqlite"
    POSTGRES = "postgres"
    MYSQL = "mysql"


@dataclass(frozen=True)
class DialectSpec:
    """Static description of one SQL dialect."""

    name: str
    label: str
    type_map: Mapping[str, str]
    quote: str
    user_id_type: str
    supports_drop_column: bool
    supports_alter_type: bool
    # ``{table}``, ``{column}`` and ``{type}`` are substituted; ``None`` when
    # the dialect cannot alter a column type in place.
    alter_type_template: str | None
    driver_package: tuple[str, str]

    def quote_ident(self, name: str) -> str:
        return f"{self.quote}{name}{self.quote}"

    def map_type(self, datatype: str | None, size: str | None = None) -> str:
        """Map a source datatype to this dialect.

        Unknown names pass through unchanged; an empty datatype becomes
        ``TEXT``.  ``VARCHAR`` takes a size qualifier only when one is given.
        """
        source = (datatype or "").upper() or "TEXT"
        if source == "VARCHAR" and size:
            return f"VARCHAR({size})"
        return self.type_map.get(source, source)


_SQLITE_TYPES = MappingProxyType({
    "UUID": "TEXT",
    "TINYINT": "INTEGER",
    "SMALLINT": "INTEGER",
    "BIGINT": "INTEGER",
    "INT128": "TEXT",
    "VARCHAR": "TEXT",
    "TEXT": "TEXT",
    "BINARY": "BLOB",
    "DATE": "TEXT",
    "TIME": "TEXT",
    "DATETIME": "TEXT",
    "DOUBLE": "REAL",
    "FLOAT": "REAL",
    "BOOLEAN": "INTEGER",
})

_POSTGRES_TYPES = MappingProxyType({
    "UUID": "UUID",
    "TINYINT": "SMALLINT",
    "SMALLINT": "SMALLINT",
    "BIGINT": "BIGINT",
    "INT128": "NUMERIC(39,0)",
    "VARCHAR": "VARCHAR",
    "TEXT": "TEXT",
    "BINARY": "BYTEA",
    "DATE": "DATE",
    "TIME": "TIME",
    "DATETIME": "TIMESTAMP",
    "DOUBLE": "DOUBLE PRECISION",
    "FLOAT": "REAL",
    "BOOLEAN": "BOOLEAN",
})

_MYSQL_TYPES = MappingProxyType({
    "UUID": "VARCHAR(36)",
    "TINYINT": "TINYINT",
    "SMALLINT": "SMALLINT",
    "BIGINT": "BIGINT",
    "INT128": "DECIMAL(39,0)",
    "VARCHAR": "VARCHAR",
    "TEXT": "TEXT",
    "BINARY": "BLOB",
    "DATE": "DATE",
    "TIME": "TIME",
    "DATETIME": "DATETIME",
    "DOUBLE": "DOUBLE",
    "FLOAT": "FLOAT",
    "BOOLEAN": "BOOLEAN",
})


DIALECTS: Mapping[Dialect, DialectSpec] = MappingProxyType({
    Dialect.SQLITE: DialectSpec(
        name="sqlite",
        label="SQLite",
        type_map=_SQLITE_TYPES,
        quote='"',
        user_id_type="TEXT",
        supports_drop_column=False,
        supports_alter_type=False,
        alter_type_template=None,
        driver_package=("better-sqlite3", "^9.2.2"),
    ),
    Dialect.POSTGRES: DialectSpec(
        name="postgres",
        label="PostgreSQL",
        type_map=_POSTGRES_TYPES,
        quote='"',
        user_id_type="UUID",
        supports_drop_column=True,
        supports_alter_type=True,
        alter_type_template="ALTER TABLE {table} ALTER COLUMN {column} TYPE {type};",
        driver_package=("pg", "^8.11.3"),
    ),
    Dialect.MYSQL: DialectSpec(
        name="mysql",
        label="MySQL",
        type_map=_MYSQL_TYPES,
        quote="`",
        user_id_type="VARCHAR(36)",
        supports_drop_column=True,
        supports_alter_type=True,
        alter_type_template="ALTER TABLE {table} MODIFY COLUMN {column} {type};",
        driver_package=("mysql2", "^3.6.5"),
    ),
})


def get_dialect(dialect: Dialect | str) -> DialectSpec:
    """Look up the spec for *dialect* (enum member or its string value).

    Raises:
        ValidationError: For an unknown dialect name.
    """
    try:
        return DIALECTS[Dialect(dialect)]
    except ValueError as exc:
        raise ValidationError(f"Unknown dialect: {dialect}") from exc
