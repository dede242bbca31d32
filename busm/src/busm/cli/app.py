"""Typer CLI application."""

import json
from pathlib import Path
from typing import List, Optional

import typer

from busm.config.logging import setup_logging
from busm.config.settings import get_settings
from busm.errors import BusmError
from busm.generation.mock_generator import GenerationOptions, SampleGenerator
from busm.migration.planner import MigrationPlanner
from busm.parsing import render_block_notation, render_graph_notation, to_registry_document
from busm.parsing.reader import read_model
from busm.registry.schema_registry import SchemaRegistry
from busm.rules.rules_book import RulesBook
from busm.utils.ir_io import save_model_to_json
from busm.validation.validator import Validator

app = typer.Typer(help="BUSM: domain schema registry, validation, sample data and migrations")

OUTPUT_FORMATS = ("canonical", "document", "block", "graph")


class _State:
    registry_path: Optional[Path] = None
    rules_path: Optional[Path] = None
    strict: bool = False


state = _State()


def _fail(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


def _registry() -> SchemaRegistry:
    path = state.registry_path or get_settings().registry_path
    if not Path(path).exists():
        _fail(f"Registry source not found: {path}")
    return SchemaRegistry.load(path, strict=state.strict)


def _rules() -> Optional[RulesBook]:
    path = state.rules_path or get_settings().rules_path
    return RulesBook.load(path) if path else None


def _render(model, fmt: str) -> str:
    if fmt == "canonical":
        return model.model_dump_json(indent=2)
    if fmt == "document":
        return json.dumps(to_registry_document(model), indent=2)
    if fmt == "block":
        return render_block_notation(model)
    if fmt == "graph":
        return render_graph_notation(model)
    _fail(f"Unknown output format '{fmt}' (choose from {', '.join(OUTPUT_FORMATS)})")


@app.callback()
def main_options(
    registry: Optional[Path] = typer.Option(
        None, "--registry", "-r", help="Registry source (.json, .mmd, .mermaid, .erd)"
    ),
    rules: Optional[Path] = typer.Option(None, "--rules", help="Business rules YAML file"),
    strict: Optional[bool] = typer.Option(
        None, "--strict/--lenient", help="Fail on unrecognized notation lines"
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
):
    """Shared options, applied before any command runs."""
    setup_logging(level=log_level)
    settings = get_settings()
    state.registry_path = registry
    state.rules_path = rules
    state.strict = settings.strict_parsing if strict is None else strict


@app.command("list")
def list_entities():
    """List registry entities with field and relationship counts."""
    try:
        registry = _registry()
    except BusmError as e:
        _fail(str(e))
    for entity in registry.get_all_entities():
        typer.echo(
            f"{entity.name}\t{entity.table_name}\t{len(entity.fields)} fields\t"
            f"{len(registry.get_relationships(entity.name))} relationships"
        )


@app.command()
def mock(
    entity: str,
    count: int = typer.Option(1, "--count", "-n", min=1, help="Number of records"),
    related: Optional[List[str]] = typer.Option(
        None, "--related", help="Also generate children through this relationship"
    ),
    related_count: int = typer.Option(3, "--related-count", help="Children per relationship"),
):
    """
    Generate sample records for an entity as JSON.

    Args:
        entity: Entity name
    """
    try:
        generator = SampleGenerator(_registry())
        if related:
            options = GenerationOptions(
                include_related=list(related), default_related_count=related_count
            )
            output = generator.generate_with_relationships(entity, count, options)
        elif count == 1:
            output = generator.generate_mock(entity)
        else:
            output = [generator.generate_mock(entity) for _ in range(count)]
    except BusmError as e:
        _fail(str(e))
    typer.echo(json.dumps(output, indent=2, default=str))


@app.command()
def validate(entity: str, record: str):
    """
    Validate a JSON record (or @file) against an entity.

    Args:
        entity: Entity name
        record: JSON object, or @path to a JSON file; a JSON array is validated as a batch
    """
    try:
        text = Path(record[1:]).read_text(encoding="utf-8") if record.startswith("@") else record
        data = json.loads(text)
    except (OSError, json.JSONDecodeError) as e:
        _fail(f"Malformed input: {e}")

    try:
        registry = _registry()
        if not registry.has_entity(entity):
            _fail(f"Unknown entity: {entity}")
        validator = Validator(registry, rules=_rules())
        if isinstance(data, list):
            result = validator.validate_many(entity, data)
        elif isinstance(data, dict):
            result = validator.validate(entity, data)
        else:
            _fail("Malformed input: expected a JSON object or array")
    except BusmError as e:
        _fail(str(e))

    if result.valid:
        typer.echo("valid")
        return
    for error in result.errors:
        typer.echo(error)
    raise typer.Exit(1)


@app.command()
def relationships(entity: str):
    """
    Show the relationships an entity takes part in.

    Args:
        entity: Entity name
    """
    try:
        registry = _registry()
        registry.require_entity(entity)
    except BusmError as e:
        _fail(str(e))
    for rel in registry.get_relationships(entity):
        fk = f", fk {rel.foreign_key_field}" if rel.foreign_key_field else ""
        typer.echo(
            f"{rel.from_entity}.{rel.name} -> {rel.to_entity} ({rel.cardinality}, {rel.kind}{fk})"
        )


@app.command()
def parse(
    source: Path,
    output_format: str = typer.Option("canonical", "--format", "-f", help="canonical, document, block or graph"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write to a file instead of stdout"),
):
    """
    Parse a model file and print it in the requested format.

    Args:
        source: .json, .mmd, .mermaid or .erd file
    """
    try:
        model = read_model(source, strict=state.strict)
    except BusmError as e:
        _fail(str(e))
    if out is not None and output_format == "canonical":
        save_model_to_json(model, out)
        typer.echo(f"✓ Wrote {len(model.entities)} entities to {out}")
        return
    text = _render(model, output_format)
    if out is None:
        typer.echo(text)
        return
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(text, encoding="utf-8")
    typer.echo(f"✓ Wrote {len(model.entities)} entities to {out}")


@app.command()
def subset(
    source: Path,
    names: List[str],
    output_format: str = typer.Option("canonical", "--format", "-f", help="canonical, document, block or graph"),
):
    """
    Print the named entities of a model file and the relationships between them.

    Args:
        source: .json, .mmd, .mermaid or .erd file
        names: Entity names to keep
    """
    try:
        model = read_model(source, strict=state.strict)
    except BusmError as e:
        _fail(str(e))
    unknown = [n for n in names if n not in model.entities]
    if unknown:
        _fail(f"Unknown entity: {', '.join(unknown)}")
    typer.echo(_render(model.extract_subset(names), output_format))


@app.command()
def migrate(
    module: str,
    phase: int = typer.Option(1, "--phase", min=1, help="Rollout phase"),
    iteration: Optional[int] = typer.Option(None, "--iteration", help="Iteration to produce"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print DDL without writing files"),
):
    """
    Generate the next migration for a module.

    Args:
        module: Module name in the module directory, or a YAML path
    """
    settings = get_settings()
    if state.registry_path is not None:
        settings = settings.model_copy(update={"registry_path": state.registry_path})
    try:
        result = MigrationPlanner(settings).run(
            module, phase=phase, iteration=iteration, dry_run=dry_run
        )
    except (BusmError, ValueError) as e:
        _fail(str(e))

    for warning in result.warnings:
        typer.echo(f"warning: {warning.message}", err=True)
    if not result.changed:
        typer.echo(f"No changes for {result.entity} (iteration {result.iteration} not written)")
        return
    if dry_run:
        typer.echo(result.ddl)
        return
    typer.echo(f"✓ Iteration {result.iteration}: {len(result.plan.creates)} created, {len(result.plan.alters)} altered")
    for path in result.written:
        typer.echo(f"  {path}")


@app.command("rules-check")
def rules_check(rules_file: Path):
    """
    Check a business rules file, against the registry when one is available.

    Args:
        rules_file: YAML file with a business_rules section
    """
    try:
        book = RulesBook.load(rules_file)
        registry_path = state.registry_path or get_settings().registry_path
        registry = (
            SchemaRegistry.load(registry_path, strict=state.strict)
            if Path(registry_path).exists()
            else None
        )
        result = book.check_rules(registry)
    except BusmError as e:
        _fail(str(e))

    for gap in book.gaps:
        typer.echo(f"gap: {gap.category} {gap.location} ({gap.assumption})")
    if result.valid:
        typer.echo(f"✓ {len(book.entities)} entities checked")
        return
    for error in result.errors:
        typer.echo(error)
    raise typer.Exit(1)


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
