from __future__ import annotations

import logging
from typing import Any, Dict, Hashable, Iterable, List, Sequence, Tuple

from .index import PACKAGE_FIELDS, entries, package_entry, validate_index

PLATFORM_KEY = ("architecture", "version")
TOOL_KEY = ("name", "version")


def merge_indexes(
    original: Dict[str, Any],
    update_a: Dict[str, Any],
    update_b: Dict[str, Any],
) -> Dict[str, Any]:
    """Merge two update feeds into the canonical aggregate index.

    ``original`` supplies the package metadata. Platforms from the updates
    replace original platforms with the same architecture and version, and
    untouched original platforms are kept after them. Tools come from the
    updates only; original tools are dropped.
    """
    original_package = package_entry(original, "original")
    package_a = package_entry(update_a, "update A")
    package_b = package_entry(update_b, "update B")

    platforms = merge_platforms(
        entries(original_package, "platforms", "original"),
        entries(package_a, "platforms", "update A"),
        entries(package_b, "platforms", "update B"),
    )
    tools = merge_tools(
        entries(package_a, "tools", "update A"),
        entries(package_b, "tools", "update B"),
    )

    package: Dict[str, Any] = {field: original_package.get(field) for field in PACKAGE_FIELDS}
    package["platforms"] = platforms
    package["tools"] = tools
    merged = {"packages": [package]}
    validate_index(merged)
    logging.debug("Merged %d platform(s) and %d tool(s)", len(platforms), len(tools))
    return merged


def merge_platforms(
    original: Sequence[Dict[str, Any]],
    update_a: Sequence[Dict[str, Any]],
    update_b: Sequence[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    candidates = dedupe_by_key([*update_a, *update_b], PLATFORM_KEY)
    superseded = {composite_key(entry, PLATFORM_KEY) for entry in candidates}
    retained = [entry for entry in original if composite_key(entry, PLATFORM_KEY) not in superseded]
    return candidates + retained


def merge_tools(
    update_a: Sequence[Dict[str, Any]],
    update_b: Sequence[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    return dedupe_by_key([*update_a, *update_b], TOOL_KEY)


def dedupe_by_key(
    items: Iterable[Dict[str, Any]],
    fields: Tuple[str, ...],
) -> List[Dict[str, Any]]:
    """Keep the first entry seen for each composite key, in first-seen order."""
    kept: Dict[Tuple[Hashable, ...], Dict[str, Any]] = {}
    for item in items:
        key = composite_key(item, fields)
        if key in kept:
            logging.debug("Dropping duplicate entry %s", key)
            continue
        kept[key] = item
    return list(kept.values())


def composite_key(item: Dict[str, Any], fields: Tuple[str, ...]) -> Tuple[Hashable, ...]:
    return tuple(_hashable(item.get(field)) for field in fields)


def _hashable(value: Any) -> Hashable:
    if isinstance(value, (dict, list)):
        return repr(value)
    return value
