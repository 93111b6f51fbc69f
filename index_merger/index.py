"""
Package index documents.

Indexes are kept as the plain JSON values ``json.loads`` returns so that
fields this tool does not interpret pass through untouched.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List

from .workspace import IndexMergerError, InvalidOutput, MalformedInput, MissingInputFile

PACKAGE_FIELDS = ("name", "maintainer", "websiteURL", "help")


def load_index(path: Path, label: str | None = None) -> Dict[str, Any]:
    label = label or path.name
    if not path.is_file():
        raise MissingInputFile(f"Could not find {label} index at {path}")
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise IndexMergerError(f"Failed to read {label} index at {path}: {exc}") from exc
    except ValueError as exc:
        raise MalformedInput(f"{label} index at {path} is not valid JSON: {exc}") from exc
    package_entry(document, label)
    logging.debug("Loaded %s index from %s", label, path)
    return document


def package_entry(document: Any, label: str) -> Dict[str, Any]:
    if not isinstance(document, dict):
        raise MalformedInput(f"{label} index is not a JSON object")
    packages = document.get("packages")
    if not isinstance(packages, list):
        raise MalformedInput(f"{label} index has no 'packages' list")
    if not packages:
        raise MalformedInput(f"{label} index has an empty 'packages' list")
    package = packages[0]
    if not isinstance(package, dict):
        raise MalformedInput(f"{label} index 'packages[0]' is not a JSON object")
    return package


def entries(package: Dict[str, Any], field: str, label: str) -> List[Dict[str, Any]]:
    """Return ``package[field]``, treating an absent or null list as empty."""
    value = package.get(field)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedInput(f"{label} index '{field}' is not a list")
    for position, entry in enumerate(value):
        if not isinstance(entry, dict):
            raise MalformedInput(f"{label} index '{field}[{position}]' is not a JSON object")
    return value


def dump_index(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False, allow_nan=False) + "\n"


def parse_strict(text: str) -> Any:
    """Parse JSON, rejecting the NaN/Infinity extensions ``json.loads`` allows."""
    return json.loads(text, parse_constant=_reject_constant)


def validate_index(document: Dict[str, Any]) -> Dict[str, Any]:
    try:
        parsed = parse_strict(dump_index(document))
    except (TypeError, ValueError) as exc:
        raise InvalidOutput(f"Generated index is not valid JSON: {exc}") from exc
    _check_output_shape(parsed)
    return parsed


def write_index_atomic(document: Dict[str, Any], path: Path) -> None:
    try:
        text = dump_index(document)
    except (TypeError, ValueError) as exc:
        raise InvalidOutput(f"Generated index is not valid JSON: {exc}") from exc
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    except OSError as exc:
        raise IndexMergerError(f"Failed to write merged index to {path}: {exc}") from exc
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        try:
            written = parse_strict(tmp_path.read_text(encoding="utf-8"))
        except ValueError as exc:
            raise InvalidOutput(f"Generated index file is invalid: {exc}") from exc
        _check_output_shape(written)
        os.replace(tmp_path, path)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise IndexMergerError(f"Failed to write merged index to {path}: {exc}") from exc
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    logging.info("Wrote merged index to %s", path)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not valid JSON")


def _check_output_shape(document: Any) -> None:
    try:
        package = package_entry(document, "merged")
        entries(package, "platforms", "merged")
        entries(package, "tools", "merged")
    except MalformedInput as exc:
        raise InvalidOutput(str(exc)) from exc
