from __future__ import annotations

import json
from pathlib import Path

import pytest

from index_merger.workspace import (
    FeedSource,
    IndexMergerError,
    MissingInputFile,
    cleanup_build_dir,
    find_latest_version,
    prepare_build_dir,
    require_base_index,
    stage_feed,
)


def make_feed(family_dir: Path, version: str, filename: str, payload: dict | None = None) -> Path:
    version_dir = family_dir / version
    version_dir.mkdir(parents=True, exist_ok=True)
    index_file = version_dir / filename
    index_file.write_text(json.dumps(payload or {"packages": [{"platforms": [], "tools": []}]}))
    return index_file


def test_find_latest_version_uses_natural_order(tmp_path: Path) -> None:
    family = tmp_path / "esp32"
    for name in ["1.2.0", "1.9.2", "1.10.0", "0.99.99"]:
        (family / name).mkdir(parents=True)
    (family / "latest").mkdir()
    (family / "2.0.0.txt").write_text("not a directory")

    assert find_latest_version(family) == "1.10.0"


def test_find_latest_version_missing_or_empty(tmp_path: Path) -> None:
    assert find_latest_version(tmp_path / "absent") is None
    family = tmp_path / "nrf52"
    (family / "docs").mkdir(parents=True)
    assert find_latest_version(family) is None


def test_stage_feed_copies_latest_index(tmp_path: Path) -> None:
    family = tmp_path / "arduino" / "esp32"
    make_feed(family, "1.0.0", "package_fobe_esp32_index.json", {"packages": [{"name": "old"}]})
    latest = make_feed(family, "1.1.0", "package_fobe_esp32_index.json", {"packages": [{"name": "new"}]})
    build = tmp_path / "build"
    prepare_build_dir(build)

    staged = stage_feed(FeedSource("esp32", family, "package_fobe_esp32_index.json"), build)

    assert staged.version == "1.1.0"
    assert staged.source == latest
    assert staged.staged == build / "package_esp32_index.json"
    assert json.loads(staged.staged.read_text()) == {"packages": [{"name": "new"}]}


def test_stage_feed_dry_run_reads_in_place(tmp_path: Path) -> None:
    family = tmp_path / "nrf52"
    index_file = make_feed(family, "0.2.1", "package_fobe_nrf52_index.json")
    build = tmp_path / "build"

    staged = stage_feed(FeedSource("nrf52", family, "package_fobe_nrf52_index.json"), build, dry_run=True)

    assert staged.staged == index_file
    assert not build.exists()


def test_stage_feed_without_versions_errors(tmp_path: Path) -> None:
    with pytest.raises(MissingInputFile, match="No nrf52 version directories"):
        stage_feed(FeedSource("nrf52", tmp_path / "nrf52", "index.json"), tmp_path / "build")


def test_stage_feed_without_index_file_errors(tmp_path: Path) -> None:
    family = tmp_path / "esp32"
    make_feed(family, "1.0.0", "other.json")

    with pytest.raises(MissingInputFile, match="Could not find"):
        stage_feed(FeedSource("esp32", family, "package_fobe_esp32_index.json"), tmp_path / "build")


def test_require_base_index(tmp_path: Path) -> None:
    base = tmp_path / "package_fobe_index.json"
    with pytest.raises(MissingInputFile, match="create a base version first"):
        require_base_index(base)
    base.write_text("{}")
    require_base_index(base)


def test_build_dir_lifecycle(tmp_path: Path) -> None:
    build = tmp_path / "build"
    created = prepare_build_dir(build)
    (build / "staged.json").write_text("{}")

    cleanup_build_dir(build, created=created)

    assert created is True
    assert not build.exists()
    cleanup_build_dir(build, created=created)


def test_existing_build_dir_only_loses_staged_copies(tmp_path: Path) -> None:
    build = tmp_path / "build"
    build.mkdir()
    (build / "keep.txt").write_text("user data")
    family = tmp_path / "esp32"
    make_feed(family, "1.0.0", "package_fobe_esp32_index.json")

    created = prepare_build_dir(build)
    staged = stage_feed(FeedSource("esp32", family, "package_fobe_esp32_index.json"), build)
    cleanup_build_dir(build, created=created, staged=[staged])

    assert created is False
    assert (build / "keep.txt").read_text() == "user data"
    assert not staged.staged.exists()
    assert staged.source.exists()


def test_dry_run_never_touches_build_dir(tmp_path: Path) -> None:
    build = tmp_path / "build"
    build.mkdir()
    (build / "keep.txt").write_text("user data")

    created = prepare_build_dir(build, dry_run=True)
    cleanup_build_dir(build, created=created)

    assert (build / "keep.txt").exists()


def test_stage_feed_copy_failure_is_wrapped(tmp_path: Path) -> None:
    family = tmp_path / "nrf52"
    make_feed(family, "0.1.0", "package_fobe_nrf52_index.json")

    with pytest.raises(IndexMergerError, match="Failed to stage"):
        stage_feed(FeedSource("nrf52", family, "package_fobe_nrf52_index.json"), tmp_path / "missing-build")


def test_prepare_build_dir_rejects_file(tmp_path: Path) -> None:
    build = tmp_path / "build"
    build.write_text("oops")

    with pytest.raises(IndexMergerError):
        prepare_build_dir(build)
