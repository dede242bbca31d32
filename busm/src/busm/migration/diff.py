"""Additive schema diff between two snapshots."""

from datetime import date
from typing import Dict, List, Optional

from busm.ir.snapshot import MigrationPlan, MigrationStatement, SchemaSnapshot, TableSchema

from .render import add_column, create_table


def diff(
    old: Optional[SchemaSnapshot],
    new: SchemaSnapshot,
    timestamp: Optional[str] = None,
) -> MigrationPlan:
    """
    Compute the additive migration from `old` to `new`.

    Tables missing from `old` become CREATEs; columns missing from an existing
    table become one ADD COLUMN statement each. Dropped tables, dropped
    columns and changed column types are never emitted; they are listed on
    `plan.ignored` instead.

    Args:
        old: Previous snapshot, or None for a fresh baseline
        new: Desired snapshot
        timestamp: Plan date (YYYY-MM-DD); today when omitted

    Returns:
        MigrationPlan
    """
    old_tables: Dict[str, TableSchema] = old.tables if old else {}
    creates: List[MigrationStatement] = []
    alters: List[MigrationStatement] = []
    ignored: List[str] = []

    for name, table in new.tables.items():
        previous = old_tables.get(name)
        if previous is None:
            creates.append(MigrationStatement(table=name, sql=create_table(table)))
            continue
        for column in table.columns:
            before = previous.column(column.name)
            if before is None:
                alters.append(
                    MigrationStatement(table=name, sql=add_column(name, column, table.indexes))
                )
            elif before.sql_type != column.sql_type:
                ignored.append(
                    f"{name}.{column.name}: type change {before.sql_type} -> {column.sql_type}"
                )
        for column in previous.columns:
            if table.column(column.name) is None:
                ignored.append(f"{name}.{column.name}: column no longer configured")

    for name in old_tables:
        if name not in new.tables:
            ignored.append(f"{name}: table no longer configured")

    return MigrationPlan(
        creates=creates,
        alters=alters,
        timestamp=timestamp or date.today().isoformat(),
        ignored=ignored,
    )


def merge(old: Optional[SchemaSnapshot], new: SchemaSnapshot) -> SchemaSnapshot:
    """
    Snapshot after applying the additive plan: old tables and columns are kept,
    new tables and columns are appended. Carries `new.iteration`.
    """
    tables: Dict[str, TableSchema] = dict(old.tables) if old else {}
    for name, table in new.tables.items():
        previous = tables.get(name)
        if previous is None:
            tables[name] = table
            continue
        columns = list(previous.columns)
        columns += [c for c in table.columns if previous.column(c.name) is None]
        indexes = list(previous.indexes)
        indexes += [i for i in table.indexes if i.name not in {x.name for x in previous.indexes}]
        tables[name] = previous.model_copy(update={"columns": columns, "indexes": indexes})
    return SchemaSnapshot(iteration=new.iteration, tables=tables)
