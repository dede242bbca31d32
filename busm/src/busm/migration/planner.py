"""Migration planner: module configuration + registry -> DDL, bindings, snapshot."""

from datetime import date
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from busm.config.logging import get_logger
from busm.config.settings import Settings, get_settings
from busm.errors import BusmError, ConfigurationError, SnapshotError
from busm.ir.snapshot import MigrationPlan, SchemaSnapshot
from busm.registry.schema_registry import SchemaRegistry
from busm.utils.naming import to_snake_case

from .builder import PlannerWarning, build_table, discover, find_module_config, load_module_config
from .diff import diff, merge
from .render import BINDING_RENDERERS, render_migration
from .snapshot_store import SnapshotStore, atomic_write

logger = get_logger(__name__)


class PlannerResult(BaseModel):
    """What one planner run produced."""

    entity: str
    iteration: int
    plan: MigrationPlan
    warnings: List[PlannerWarning] = Field(default_factory=list)
    written: List[Path] = Field(default_factory=list)
    ddl: str = ""
    bindings: str = ""

    @property
    def changed(self) -> bool:
        return not self.plan.is_empty


class MigrationPlanner:
    """
    Runs discovery, build, diff and output for one module.

    Nothing is written until the plan has been fully built, and an empty plan
    writes nothing at all. The snapshot is written last, after the DDL and
    bindings files.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        registry: Optional[SchemaRegistry] = None,
    ):
        self.settings = settings or get_settings()
        self._registry = registry
        self.store = SnapshotStore(self.settings.snapshot_dir)

    def _load_registry(self) -> SchemaRegistry:
        if self._registry is not None:
            return self._registry
        path = Path(self.settings.registry_path)
        if not path.exists():
            raise ConfigurationError(f"Registry source not found: {path}")
        try:
            self._registry = SchemaRegistry.load(path, strict=self.settings.strict_parsing)
        except BusmError as e:
            raise ConfigurationError(f"Failed to load registry {path}: {e}") from e
        return self._registry

    def run(
        self,
        module: Union[str, Path],
        phase: int = 1,
        iteration: Optional[int] = None,
        dry_run: bool = False,
        timestamp: Optional[str] = None,
    ) -> PlannerResult:
        """
        Plan and write the next migration for a module.

        Args:
            module: Module name (looked up in settings.module_dir) or YAML path
            phase: Rollout phase used to pick the module configuration file
            iteration: Iteration to produce; latest + 1 when omitted
            dry_run: Build the plan without writing anything
            timestamp: Plan date override (YYYY-MM-DD)

        Returns:
            PlannerResult

        Raises:
            ConfigurationError: Missing module configuration or registry source
            UnknownEntityError: Module entity absent from the registry
            SnapshotLockedError: Another run holds the snapshot directory
            SnapshotError: Corrupt snapshot or an iteration that already exists
        """
        logger.info(f"Discovery phase for module {module} (phase {phase})")
        config_path = find_module_config(module, Path(self.settings.module_dir), phase)
        config = load_module_config(config_path)
        registry = self._load_registry()
        discovery = discover(config, registry, source=config_path)

        with self.store.lock():
            previous, iteration = self._baseline(iteration, discovery.warnings)
            if self.store.exists(iteration):
                raise SnapshotError(
                    f"Iteration {iteration} already exists; snapshots are never rewritten"
                )

            logger.info(f"Build phase for {discovery.entity}, iteration {iteration}")
            table = build_table(discovery)
            target_tables = dict(previous.tables) if previous else {}
            target_tables[table.name] = table
            target = SchemaSnapshot(iteration=iteration, tables=target_tables)
            plan = diff(previous, target, timestamp=timestamp or date.today().isoformat())
            for note in plan.ignored:
                logger.warning(f"Not applied: {note}")

            result = PlannerResult(
                entity=discovery.entity,
                iteration=iteration,
                plan=plan,
                warnings=discovery.warnings,
            )
            if plan.is_empty:
                logger.info(f"No schema changes for {discovery.entity}; nothing written")
                return result

            snapshot = merge(previous, target)
            render, ext = BINDING_RENDERERS[self.settings.binding_format]
            result.ddl = render_migration(
                plan,
                entity=discovery.entity,
                module=config.module.id or str(module),
                iteration=iteration,
            )
            result.bindings = render(snapshot)
            logger.info(
                f"Generated {len(plan.creates)} CREATE, {len(plan.alters)} ALTER statements"
            )
            if dry_run:
                return result

            migration_name = f"{plan.timestamp}_iter{iteration}_{to_snake_case(discovery.entity)}.sql"
            result.written.append(
                atomic_write(Path(self.settings.migrations_dir) / migration_name, result.ddl)
            )
            result.written.append(
                atomic_write(
                    Path(self.settings.types_dir) / f"database-types-iter{iteration}.{ext}",
                    result.bindings,
                )
            )
            result.written.append(self.store.write(snapshot))
            for path in result.written:
                logger.info(f"Wrote {path}")
            return result

    def _baseline(self, iteration: Optional[int], warnings: List[PlannerWarning]):
        """Previous snapshot and the iteration to produce."""
        if iteration is None:
            latest = self.store.latest_iteration()
            return (self.store.load(latest) if latest else None), latest + 1
        if iteration < 1:
            raise ValueError(f"iteration must be at least 1, got {iteration}")
        if iteration == 1:
            return None, 1
        previous = self.store.load(iteration - 1)
        if previous is None:
            message = f"No snapshot for iteration {iteration - 1}; treating iteration {iteration} as a fresh baseline"
            logger.warning(message)
            warnings.append(
                PlannerWarning(code="MISSING_SNAPSHOT", field="", message=message, resolution="Fresh baseline")
            )
        return previous, iteration
