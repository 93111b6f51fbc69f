from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path
from typing import List, Optional, Sequence

VERSION_DIR_PATTERN = "*.*.*"


class IndexMergerError(Exception):
    """Base exception for index merge failures."""


class MissingInputFile(IndexMergerError):
    """A feed version directory, feed file, or base index is missing."""


class MalformedInput(IndexMergerError):
    """An input document lacks the minimal package index shape."""


class InvalidOutput(IndexMergerError):
    """The merged document failed validation and was not committed."""


@dataclass(frozen=True)
class FeedSource:
    label: str
    directory: Path
    filename: str


@dataclass(frozen=True)
class StagedFeed:
    label: str
    version: str
    source: Path
    staged: Path


def find_latest_version(family_dir: Path) -> Optional[str]:
    if not family_dir.is_dir():
        return None
    candidates = [
        entry.name
        for entry in family_dir.iterdir()
        if entry.is_dir() and fnmatch(entry.name, VERSION_DIR_PATTERN)
    ]
    if not candidates:
        return None
    return max(candidates, key=_version_key)


def stage_feed(source: FeedSource, build_dir: Path, *, dry_run: bool = False) -> StagedFeed:
    logging.info("Looking for %s package index...", source.label)
    version = find_latest_version(source.directory)
    if not version:
        raise MissingInputFile(
            f"No {source.label} version directories found in {source.directory}"
        )

    index_file = source.directory / version / source.filename
    if not index_file.is_file():
        raise MissingInputFile(f"Could not find {index_file}")

    if dry_run:
        logging.info("Dry run: reading %s package index in place from %s", source.label, index_file)
        return StagedFeed(label=source.label, version=version, source=index_file, staged=index_file)

    staged = build_dir / f"package_{source.label}_index.json"
    try:
        shutil.copy2(index_file, staged)
    except OSError as exc:
        raise IndexMergerError(f"Failed to stage {index_file} into {staged}: {exc}") from exc
    logging.info("Copied %s package index from version %s", source.label, version)
    return StagedFeed(label=source.label, version=version, source=index_file, staged=staged)


def require_base_index(path: Path) -> None:
    if not path.is_file():
        raise MissingInputFile(
            f"{path} does not exist, please create a base version first"
        )


def prepare_build_dir(path: Path, *, dry_run: bool = False) -> bool:
    """Create the build directory; return True only if this call created it."""
    if dry_run:
        logging.debug("Dry run: build directory %s not created", path)
        return False
    if path.exists():
        if not path.is_dir():
            raise IndexMergerError(f"Build path exists but is not a directory: {path}")
        logging.debug("Reusing existing build directory at %s", path)
        return False
    try:
        path.mkdir(parents=True)
    except OSError as exc:
        raise IndexMergerError(f"Failed to create build directory {path}: {exc}") from exc
    return True


def cleanup_build_dir(
    path: Path,
    *,
    created: bool,
    staged: Sequence[StagedFeed] = (),
) -> None:
    # A directory that existed before the run only loses the copies staged into it.
    try:
        if created:
            if path.is_dir():
                logging.info("Cleaning up build directory %s", path)
                shutil.rmtree(path)
            return
        for feed in staged:
            if feed.staged != feed.source:
                logging.debug("Removing staged copy %s", feed.staged)
                feed.staged.unlink(missing_ok=True)
    except OSError as exc:
        logging.warning("Failed to clean up build directory %s: %s", path, exc)


def _version_key(name: str) -> List[tuple[int, int | str]]:
    # Numeric runs compare as integers so 1.10.0 sorts after 1.9.2.
    parts = re.findall(r"\d+|[^\d]+", name)
    return [(0, int(part)) if part.isdigit() else (1, part) for part in parts]
