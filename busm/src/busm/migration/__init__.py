"""Incremental relational migrations from module configurations."""

from .builder import PlannerWarning, build_table, discover
from .diff import diff, merge
from .planner import MigrationPlanner, PlannerResult
from .snapshot_store import SnapshotStore, atomic_write

__all__ = [
    "PlannerWarning",
    "build_table",
    "discover",
    "diff",
    "merge",
    "MigrationPlanner",
    "PlannerResult",
    "SnapshotStore",
    "atomic_write",
]
