"""CLI defaults from the [tool.arbor] section of pyproject.toml.

Example::

    [tool.arbor]
    display_field = "title"
    page_size = 25

Command-line options always win over these values.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArborConfig:
    """Defaults read from [tool.arbor]."""

    display_field: str = "name"
    page_size: int = 10


def find_pyproject(start: Path | None = None) -> Path | None:
    """Return the nearest pyproject.toml at or above *start* (default: cwd)."""
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / "pyproject.toml"
        if candidate.is_file():
            return candidate
    return None


def _read_section(path: Path) -> dict[str, Any]:
    if sys.version_info >= (3, 11):
        import tomllib
    else:
        try:
            import tomli as tomllib
        except ImportError:
            return {}

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Ignoring %s: %s", path, e)
        return {}
    section = data.get("tool", {}).get("arbor", {})
    return section if isinstance(section, dict) else {}


def _valid(name: str, value: Any) -> bool:
    if name == "display_field":
        return isinstance(value, str) and bool(value)
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def load_config(start: Path | None = None) -> ArborConfig:
    """Load [tool.arbor] from the nearest pyproject.toml.

    Missing files, missing sections and unreadable TOML all give the
    defaults. Invalid values are skipped with a warning.
    """
    path = find_pyproject(start)
    if path is None:
        return ArborConfig()

    section = _read_section(path)
    values = {}
    for f in fields(ArborConfig):
        if f.name not in section:
            continue
        value = section[f.name]
        if _valid(f.name, value):
            values[f.name] = value
        else:
            logger.warning("Ignoring [tool.arbor] %s = %r in %s", f.name, value, path)
    return ArborConfig(**values)
