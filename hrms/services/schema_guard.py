from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any

from alembic.script import ScriptDirectory
from sqlalchemy import Enum, MetaData, inspect, text
from sqlalchemy.engine import Engine

from hrms import models  # noqa: F401
from hrms.db import Base

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"
ALEMBIC_VERSION_TABLE = "alembic_version"


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    database_revision: str | None = None
    expected_revision: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "database_revision": self.database_revision,
            "expected_revision": self.expected_revision,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


def required_table_columns(metadata: MetaData | None = None) -> dict[str, set[str]]:
    """Every mapped table with its mapped columns, plus the alembic bookkeeping table."""
    metadata = metadata or Base.metadata
    required = {table.name: {column.name for column in table.columns} for table in metadata.sorted_tables}
    required[ALEMBIC_VERSION_TABLE] = {"version_num"}
    return required


def required_enum_values(metadata: MetaData | None = None) -> dict[str, set[str]]:
    """Native enum labels the models persist, keyed by the PostgreSQL type name."""
    metadata = metadata or Base.metadata
    required: dict[str, set[str]] = {}
    for table in metadata.sorted_tables:
        for column in table.columns:
            column_type = column.type
            if isinstance(column_type, Enum) and column_type.name:
                required.setdefault(column_type.name, set()).update(column_type.enums)
    return required


@lru_cache
def expected_head_revision() -> str | None:
    return ScriptDirectory(str(MIGRATIONS_DIR)).get_current_head()


def _column_issues(inspector: Any, required: dict[str, set[str]]) -> list[str]:
    existing_tables = set(inspector.get_table_names())
    issues: list[str] = []
    for table_name, required_columns in required.items():
        if table_name not in existing_tables:
            issues.append(f"MISSING_TABLE:{table_name}")
            continue
        present = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        missing_columns = sorted(required_columns - present)
        if missing_columns:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing_columns)}")
    return issues


def _enum_checks(inspector: Any, required: dict[str, set[str]]) -> tuple[list[str], list[str]]:
    get_enums = getattr(inspector, "get_enums", None)
    if get_enums is None:
        # Non-PostgreSQL dialects store enums as VARCHAR + CHECK.
        return [], ["ENUM_INSPECTION_UNSUPPORTED"]

    labels_by_name = {
        str(item.get("name")): {str(label) for label in item.get("labels") or []}
        for item in get_enums() or []
        if item.get("name")
    }
    issues: list[str] = []
    warnings: list[str] = []
    for enum_name, required_values in sorted(required.items()):
        if enum_name not in labels_by_name:
            warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
            continue
        missing_values = sorted(required_values - labels_by_name[enum_name])
        if missing_values:
            issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing_values)}")
    return issues, warnings


def _database_revision(engine: Engine) -> str:
    with engine.connect() as connection:
        row = connection.execute(text(f"SELECT version_num FROM {ALEMBIC_VERSION_TABLE} LIMIT 1")).scalar()
    return str(row).strip() if row is not None else ""


def verify_runtime_schema(
    engine: Engine,
    *,
    metadata: MetaData | None = None,
    expected_revision: str | None = None,
) -> SchemaGuardResult:
    checked_at_utc = datetime.now(timezone.utc)
    inspector = inspect(engine)
    expected = expected_revision or expected_head_revision()

    issues = _column_issues(inspector, required_table_columns(metadata))
    enum_issues, warnings = _enum_checks(inspector, required_enum_values(metadata))
    issues.extend(enum_issues)

    revision: str | None = None
    if f"MISSING_TABLE:{ALEMBIC_VERSION_TABLE}" not in issues:
        revision = _database_revision(engine)
        if not revision:
            issues.append("ALEMBIC_VERSION_EMPTY")
        elif expected and revision != expected:
            issues.append(f"ALEMBIC_REVISION_MISMATCH:{revision}!={expected}")

    return SchemaGuardResult(
        ok=not issues,
        checked_at_utc=checked_at_utc,
        issues=issues,
        warnings=warnings,
        database_revision=revision or None,
        expected_revision=expected,
    )
