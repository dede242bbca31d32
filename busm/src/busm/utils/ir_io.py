"""Canonical model dumps: what `parse --format canonical` writes, read back."""

import json
from pathlib import Path
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from busm.errors import ParseError
from busm.ir.model import CanonicalModel, build_model


def is_canonical_dump(data: Any) -> bool:
    """Whether decoded JSON is a canonical model dump rather than a registry document."""
    if not isinstance(data, dict) or not isinstance(data.get("entities"), dict):
        return False
    entities = data["entities"].values()
    return bool(entities) and all(isinstance(e, dict) and "table_name" in e for e in entities)


def model_from_dump(data: Any, source: Optional[str] = None) -> CanonicalModel:
    """
    Rebuild a CanonicalModel from a decoded dump.

    The dump is re-canonicalized, so dangling references fail the same way
    they would in a parser.

    Raises:
        ParseError: If the dump does not match the model shape
    """
    try:
        dumped = TypeAdapter(CanonicalModel).validate_python(data)
    except ValidationError as e:
        raise ParseError(f"invalid canonical model dump: {e.error_count()} errors ({e.errors()[0]['msg']})") from e
    return build_model(
        dumped.entities.values(),
        dumped.relationships,
        dumped.enumerations.values(),
        source=source or dumped.source,
        version=dumped.version,
    )


def load_model_from_json(model_path: Path) -> CanonicalModel:
    """
    Load a CanonicalModel previously written by save_model_to_json.

    Args:
        model_path: Path to the JSON file

    Returns:
        Loaded CanonicalModel instance

    Raises:
        ParseError: If the file is missing, empty, or not a model dump
    """
    model_path = Path(model_path)
    if not model_path.exists():
        raise ParseError(f"model file not found: {model_path}")

    file_content = model_path.read_text(encoding="utf-8").strip()
    if not file_content:
        raise ParseError(f"model file is empty: {model_path}")

    try:
        data = json.loads(file_content)
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid JSON in {model_path}: {e.msg}", line=e.lineno) from e
    return model_from_dump(data, source=str(model_path))


def save_model_to_json(model: CanonicalModel, model_path: Path) -> Path:
    """
    Save a CanonicalModel to a JSON file.

    Args:
        model: CanonicalModel instance to save
        model_path: Path where to save the JSON file

    Returns:
        The written path; parent directories are created as needed
    """
    model_path = Path(model_path)
    model_path.parent.mkdir(parents=True, exist_ok=True)
    model_path.write_text(model.model_dump_json(indent=2) + "\n", encoding="utf-8")
    return model_path
