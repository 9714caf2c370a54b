"""YAML loading and dumping of grid settings files."""

from __future__ import annotations

from io import StringIO
from pathlib import Path

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from moldgen.errors import ParseError
from moldgen.models import GRID_TYPES, BaseGrid, GridSettings

_GRID_ADAPTER: TypeAdapter = TypeAdapter(GridSettings)


def _make_yaml() -> YAML:
    """Create a ruamel.yaml safe loader that errors on duplicate keys."""
    yml = YAML(typ="safe")
    yml.allow_duplicate_keys = False
    return yml


def _read_source_text(source: str | Path) -> str:
    """Read YAML content from a path, or treat the input as raw YAML text."""
    if isinstance(source, Path):
        try:
            return source.read_text(encoding="utf-8")
        except OSError as e:
            raise ParseError(f"Cannot read file: {e}") from e
    return source


def load_settings_data(source: str | Path) -> dict:
    """Load YAML and run top-level shape checks."""
    text = _read_source_text(source)
    try:
        data = _make_yaml().load(text)
    except YAMLError as e:
        raise ParseError(f"Invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ParseError("Top-level YAML value must be a mapping")

    grid_type = data.get("type")
    if grid_type is None:
        raise ParseError("Missing required field: type")
    if grid_type not in GRID_TYPES:
        raise ParseError(f"Unknown grid type: {grid_type!r} (known: {list(GRID_TYPES)})")
    return data


def parse_settings(source: str | Path) -> BaseGrid:
    """Parse grid settings from a YAML string or file path.

    Args:
        source: YAML string or path to a settings file.

    Returns:
        The schema-validated grid variant selected by ``type``.

    Raises:
        ParseError: On YAML syntax errors, schema violations or unknown types.
    """
    data = load_settings_data(source)
    try:
        return _GRID_ADAPTER.validate_python(data)
    except PydanticValidationError as e:
        raise ParseError(f"Schema validation failed:\n{e}") from e


def dump_settings(grid: BaseGrid) -> str:
    """Render grid settings as block-style YAML that ``parse_settings`` reads back."""
    data = grid.model_dump(mode="json")
    # Keep the discriminator first for readability
    ordered = {"type": data.pop("type"), **data}

    yml = YAML(typ="rt")
    yml.default_flow_style = False
    stream = StringIO()
    yml.dump(ordered, stream)
    return stream.getvalue()
