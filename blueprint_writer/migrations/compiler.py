"""Schema migration compiler.

Translates blueprint models and their migration history into DDL text for
one of the supported dialects.  The ``compile_*`` functions are pure: the
same input always yields byte-identical output.  The ``write_*`` functions
add the filesystem policy on top (base schema written at most once,
incremental files timestamp-named and never duplicated).

Operations a dialect cannot express safely (dropping a column or altering a
column type on SQLite) are never emitted as statements.  They degrade to a
``-- WARNING:`` comment line in the output and an
:class:`~blueprint_writer.errors.UnsupportedOperationError` entry in
:attr:`CompiledMigration.warnings`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

import pydantic

from ..blueprint.models import Migration, Model, ModelField
from ..errors import UnsupportedOperationError, ValidationError
from ..utils import write_text_if_absent
from .dialects import Dialect, DialectSpec, get_dialect

BASE_SCHEMA_FILENAME = "000_base.sql"
MIGRATIONS_DIRNAME = "migrations"
BASE_SCHEMA_BANNER = "-- Base schema generated from blueprint.models"
MIGRATION_BANNER = "-- Auto-generated migration file"
USER_TABLE = "users"
USER_ID_COLUMN = "userid"


@dataclass
class CompiledMigration:
    """Ordered DDL statements plus the operations that were degraded to warnings."""

    statements: list[str] = field(default_factory=list)
    warnings: list[UnsupportedOperationError] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Column / table rendering
# ---------------------------------------------------------------------------


def _column_definition(column: ModelField, spec: DialectSpec, *, with_key: bool = True) -> str:
    sql_type = spec.map_type(column.datatype, column.size)
    required = " NOT NULL" if column.required else ""
    primary = " PRIMARY KEY" if with_key and column.key.lower() == "primary" else ""
    return f"{spec.quote_ident(column.name.lower())} {sql_type}{required}{primary}"


def _user_reference_lines(spec: DialectSpec) -> list[str]:
    user_col = spec.quote_ident(USER_ID_COLUMN)
    return [
        f"{user_col} {spec.user_id_type} NOT NULL",
        f"FOREIGN KEY ({user_col}) REFERENCES {spec.quote_ident(USER_TABLE)} ({user_col})",
    ]


def _create_table(
    table: str, columns: Iterable[ModelField], user_specific: bool, spec: DialectSpec
) -> str:
    lines = [_column_definition(c, spec) for c in columns]
    if user_specific:
        lines.extend(_user_reference_lines(spec))
    body = ",\n".join(f"  {line}" for line in lines)
    return f"CREATE TABLE IF NOT EXISTS {spec.quote_ident(table)} (\n{body}\n);"


def _as_field(value: Any, context: str) -> ModelField:
    if isinstance(value, ModelField):
        return value
    try:
        return ModelField.model_validate(value)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid field definition in {context}: {exc}") from exc


def _warning(spec: DialectSpec, operation: str, table: str, column: str) -> tuple[str, UnsupportedOperationError]:
    target = f"{spec.quote_ident(table)}.{spec.quote_ident(column)}"
    line = (
        f"-- WARNING: {spec.label} doesn't support {operation}. "
        f"Manual migration required for: {target}"
    )
    return line, UnsupportedOperationError(spec.name, operation, target)


# ---------------------------------------------------------------------------
# Base schema
# ---------------------------------------------------------------------------


def compile_base_schema(models: list[Model], dialect: Dialect | str) -> str:
    """Render ``CREATE TABLE IF NOT EXISTS`` statements for every model.

    Fields keep their input order.  User-specific models get an implicit
    ``userid`` column and a foreign key to the users table appended after
    the declared fields.
    """
    spec = get_dialect(dialect)
    lines = [BASE_SCHEMA_BANNER]
    for model in models:
        lines.append(f"\n-- Model: {model.table_name}")
        lines.append(_create_table(model.table_name, model.fields, model.user_specific, spec))
    lines.append("")
    return "\n".join(lines)


def write_base_schema(
    target_dir: str | Path, models: list[Model], dialect: Dialect | str
) -> Path | None:
    """Write ``migrations/000_base.sql`` unless it already exists.

    Returns:
        The written path, or ``None`` when the base schema was already present.
    """
    base_path = Path(target_dir) / MIGRATIONS_DIRNAME / BASE_SCHEMA_FILENAME
    schema = compile_base_schema(models, dialect)
    return base_path if write_text_if_absent(base_path, schema) else None


# ---------------------------------------------------------------------------
# Incremental migrations
# ---------------------------------------------------------------------------


def _compile_create(migration: Migration, spec: DialectSpec) -> str:
    model_value: dict[str, Any] = {}
    for change in migration.changes:
        if change.type == "model" and change.operation == "add" and isinstance(change.new_value, dict):
            model_value = change.new_value
            break
    table = str(model_value.get("name") or migration.table_name).lower()
    user_specific = any(
        str(model_value.get(key, "")).strip().lower() == "true"
        for key in ("user_specific", "userSpecific", "data_is_user_specific")
    )
    columns = [
        _as_field(c.new_value, f"create migration for '{table}'")
        for c in migration.changes
        if c.type == "field" and c.operation == "add"
    ]
    return _create_table(table, columns, user_specific, spec)


def _compile_update(migration: Migration, spec: DialectSpec, out: CompiledMigration) -> None:
    table = migration.table_name
    quoted_table = spec.quote_ident(table)
    for change in migration.changes:
        if change.type != "field":
            continue

        if change.operation == "add":
            column = _as_field(change.new_value, f"update migration for '{table}'")
            out.statements.append(
                f"ALTER TABLE {quoted_table} ADD COLUMN {_column_definition(column, spec, with_key=False)};"
            )

        elif change.operation == "remove":
            if not change.field:
                continue
            column_name = change.field.lower()
            if spec.supports_drop_column:
                out.statements.append(
                    f"ALTER TABLE {quoted_table} DROP COLUMN {spec.quote_ident(column_name)};"
                )
            else:
                line, warning = _warning(spec, "DROP COLUMN", table, column_name)
                out.statements.append(line)
                out.warnings.append(warning)

        elif change.operation == "modify":
            raw = change.new_value
            if not (spec.supports_alter_type and spec.alter_type_template):
                named = raw.get("name") if isinstance(raw, dict) else None
                column_name = (named or change.field or "col").lower()
                line, warning = _warning(spec, "ALTER COLUMN TYPE", table, column_name)
                out.statements.append(line)
                out.warnings.append(warning)
                continue
            if raw is None:
                raise ValidationError(
                    f"modify change for '{table}.{change.field}' carries no new field definition"
                )
            if isinstance(raw, dict) and not raw.get("name"):
                raw = {**raw, "name": change.field or "col"}
            column = _as_field(raw, f"update migration for '{table}'")
            column_name = (column.name or change.field or "col").lower()
            out.statements.append(
                spec.alter_type_template.format(
                    table=quoted_table,
                    column=spec.quote_ident(column_name),
                    type=spec.map_type(column.datatype, column.size),
                )
            )


def compile_migration_set(migrations: list[Migration], dialect: Dialect | str) -> CompiledMigration:
    """Compile a migration history, keeping degraded operations as warnings."""
    spec = get_dialect(dialect)
    out = CompiledMigration()
    for migration in migrations:
        if migration.action == "create":
            out.statements.append(_compile_create(migration, spec))
        elif migration.action == "delete":
            out.statements.append(f"DROP TABLE IF EXISTS {spec.quote_ident(migration.table_name)};")
        elif migration.action == "update":
            _compile_update(migration, spec, out)
    return out


def compile_migrations(migrations: list[Migration], dialect: Dialect | str) -> list[str]:
    """Compile a migration history into ordered DDL statements."""
    return compile_migration_set(migrations, dialect).statements


def _migration_body(statements: list[str]) -> str:
    return "\n\n".join(statements) + "\n"


def _existing_bodies(migrations_dir: Path) -> set[str]:
    bodies: set[str] = set()
    for path in migrations_dir.glob("migration-*.sql"):
        text = path.read_text(encoding="utf-8")
        # Banner and timestamp lines, then one blank line.
        bodies.add("\n".join(text.split("\n")[3:]))
    return bodies


def write_incremental_migrations(
    target_dir: str | Path,
    migrations: list[Migration],
    dialect: Dialect | str,
    now: datetime | None = None,
) -> tuple[Path | None, CompiledMigration]:
    """Compile *migrations* and write a timestamp-named migration file.

    Nothing is written for an empty history, or when a migration file with
    the same statements already exists in the target tree.

    Returns:
        ``(path_or_None, compiled)``.
    """
    compiled = compile_migration_set(migrations, dialect)
    if not migrations or not compiled.statements:
        return None, compiled

    migrations_dir = Path(target_dir) / MIGRATIONS_DIRNAME
    migrations_dir.mkdir(parents=True, exist_ok=True)

    body = _migration_body(compiled.statements)
    if body in _existing_bodies(migrations_dir):
        return None, compiled

    moment = now or datetime.now(timezone.utc)
    stamp = moment.strftime("%Y%m%d%H%M%S")
    path = migrations_dir / f"migration-{stamp}.sql"
    counter = 1
    while path.exists():
        path = migrations_dir / f"migration-{stamp}_{counter}.sql"
        counter += 1

    content = "\n".join([MIGRATION_BANNER, f"-- Generated at: {moment.isoformat()}", "", body])
    path.write_text(content, encoding="utf-8")
    return path, compiled
