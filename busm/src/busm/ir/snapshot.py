"""Relational schema snapshot and migration plan models."""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class ColumnSpec(BaseModel):
    """A relational column."""

    name: str
    sql_type: str
    required: bool = False
    primary_key: bool = False
    unique: bool = False
    default: Optional[str] = None


class IndexSpec(BaseModel):
    """A single-column index."""

    name: str
    column: str


class TableSchema(BaseModel):
    """A relational table built from one entity."""

    name: str
    entity: Optional[str] = None
    columns: List[ColumnSpec] = Field(default_factory=list)
    indexes: List[IndexSpec] = Field(default_factory=list)

    def column(self, name: str) -> Optional[ColumnSpec]:
        return next((c for c in self.columns if c.name == name), None)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]


class SchemaSnapshot(BaseModel):
    """Relational schema as of one planner iteration. Never edited once written."""

    iteration: int
    tables: Dict[str, TableSchema] = Field(default_factory=dict)


class MigrationStatement(BaseModel):
    """One DDL statement block targeting a single table."""

    table: str
    sql: str


class MigrationPlan(BaseModel):
    """Ordered DDL derived from diffing two snapshots."""

    creates: List[MigrationStatement] = Field(default_factory=list)
    alters: List[MigrationStatement] = Field(default_factory=list)
    timestamp: str
    # Destructive differences that were detected but not emitted
    ignored: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.creates and not self.alters

    def statements(self) -> List[MigrationStatement]:
        return [*self.creates, *self.alters]
