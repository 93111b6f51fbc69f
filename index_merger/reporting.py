from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

from .index import entries, package_entry
from .workspace import IndexMergerError


@dataclass
class FeedCount:
    label: str
    version: str
    platforms: int
    tools: int


@dataclass
class MergeStats:
    feeds: List[FeedCount] = field(default_factory=list)
    merged_platforms: int = 0
    merged_tools: int = 0


def collect_stats(
    feeds: Sequence[Tuple[str, str, Dict[str, Any]]],
    merged: Dict[str, Any],
) -> MergeStats:
    stats = MergeStats()
    for label, version, document in feeds:
        package = package_entry(document, label)
        stats.feeds.append(
            FeedCount(
                label=label,
                version=version,
                platforms=len(entries(package, "platforms", label)),
                tools=len(entries(package, "tools", label)),
            )
        )
    merged_package = package_entry(merged, "merged")
    stats.merged_platforms = len(entries(merged_package, "platforms", "merged"))
    stats.merged_tools = len(entries(merged_package, "tools", "merged"))
    return stats


def platform_lines(merged: Dict[str, Any]) -> List[str]:
    package = package_entry(merged, "merged")
    return sorted(
        f"{entry.get('architecture')}: {entry.get('name')} v{entry.get('version')}"
        for entry in entries(package, "platforms", "merged")
    )


def tool_lines(merged: Dict[str, Any]) -> List[str]:
    package = package_entry(merged, "merged")
    return sorted(
        f"{entry.get('name')} v{entry.get('version')}"
        for entry in entries(package, "tools", "merged")
    )


def architecture_versions(merged: Dict[str, Any]) -> List[Tuple[str, str]]:
    """First version listed for each architecture, sorted by architecture."""
    package = package_entry(merged, "merged")
    first_seen: Dict[str, str] = {}
    for entry in entries(package, "platforms", "merged"):
        architecture = str(entry.get("architecture"))
        first_seen.setdefault(architecture, str(entry.get("version")))
    return sorted(first_seen.items())


def summarize_cli(stats: MergeStats, merged: Dict[str, Any]) -> str:
    lines = []
    lines.append("Merge Statistics")
    lines.append("================")
    for feed in stats.feeds:
        lines.append(f"  {feed.label} new platforms: {feed.platforms}")
    lines.append(f"  Total platforms after merge: {stats.merged_platforms}")
    for feed in stats.feeds:
        lines.append(f"  {feed.label} tools: {feed.tools}")
    lines.append(f"  Total tools after merge: {stats.merged_tools}")

    lines.append("")
    lines.append("Included platform architectures and versions:")
    lines.extend(f"  - {line}" for line in platform_lines(merged))

    lines.append("")
    lines.append("Included tools:")
    lines.extend(f"  - {line}" for line in tool_lines(merged))

    lines.append("")
    lines.append("Platform update check:")
    for architecture, version in architecture_versions(merged):
        lines.append(f"  - {architecture}: v{version} (merged)")
    return "\n".join(lines)


def write_markdown_report(output_path: Path, stats: MergeStats, merged: Dict[str, Any]) -> None:
    lines = ["# Package Index Merge Report", ""]

    lines.append("## Feeds")
    lines.append("")
    for feed in stats.feeds:
        lines.append(f"- **{feed.label}** `{feed.version}`: {feed.platforms} platform(s), {feed.tools} tool(s)")
    lines.append(f"- **merged**: {stats.merged_platforms} platform(s), {stats.merged_tools} tool(s)")
    lines.append("")

    lines.append("## Platforms")
    lines.append("")
    for line in platform_lines(merged):
        lines.append(f"- {line}")
    lines.append("")

    lines.append("## Tools")
    lines.append("")
    for line in tool_lines(merged):
        lines.append(f"- {line}")
    lines.append("")

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text("\n".join(lines).rstrip() + "\n")
    except OSError as exc:
        raise IndexMergerError(f"Failed to write report to {output_path}: {exc}") from exc
    logging.info("Wrote report to %s", output_path)
