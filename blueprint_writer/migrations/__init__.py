"""Schema migration compiler -- blueprint models and diffs to dialect DDL.

Quick usage::

    from blueprint_writer.migrations import Dialect, compile_base_schema, compile_migrations

    ddl = compile_base_schema(blueprint.models, Dialect.POSTGRES)
    statements = compile_migrations(blueprint.migrations, Dialect.SQLITE)
"""

from blueprint_writer.migrations.compiler import (
    BASE_SCHEMA_FILENAME,
    CompiledMigration,
    compile_base_schema,
    compile_migration_set,
    compile_migrations,
    write_base_schema,
    write_incremental_migrations,
)
from blueprint_writer.migrations.dialects import DIALECTS, Dialect, DialectSpec, get_dialect

__all__ = [
    "BASE_SCHEMA_FILENAME",
    "DIALECTS",
    "CompiledMigration",
    "Dialect",
    "DialectSpec",
    "compile_base_schema",
    "compile_migration_set",
    "compile_migrations",
    "get_dialect",
    "write_base_schema",
    "write_incremental_migrations",
]
