from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Tuple

from .index import load_index, write_index_atomic
from .merge import merge_indexes
from .reporting import collect_stats, summarize_cli, write_markdown_report
from .workspace import (
    FeedSource,
    IndexMergerError,
    StagedFeed,
    cleanup_build_dir,
    prepare_build_dir,
    require_base_index,
    stage_feed,
)

DEFAULT_FEEDS = [
    "esp32=arduino/esp32:package_fobe_esp32_index.json",
    "nrf52=arduino/nrf52:package_fobe_nrf52_index.json",
]
DEFAULT_OUTPUT = Path("arduino/package_fobe_index.json")
DEFAULT_BUILD_DIR = Path("build")


@dataclass(frozen=True)
class MergeConfig:
    root: Path
    feeds: Tuple[FeedSource, ...]
    output: Path
    build_dir: Path
    report: Path | None = None
    dry_run: bool = False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="index-merger",
        description="Merge the latest platform package index feeds into the canonical aggregate index.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--root",
        type=Path,
        default=Path("."),
        help="Project root that relative paths are resolved against (default: current directory).",
    )
    parser.add_argument(
        "--feed",
        dest="feeds",
        action="append",
        default=[],
        type=parse_feed,
        metavar="LABEL=DIR:FILE",
        help=(
            "Update feed: family directory holding version subdirectories and the index "
            "file name inside them (repeat twice; the first feed wins on collisions). "
            f"Default: {' '.join(DEFAULT_FEEDS)}"
        ),
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT,
        help="Canonical aggregate index; read as the base and replaced with the merge result.",
    )
    parser.add_argument(
        "--build-dir",
        type=Path,
        default=DEFAULT_BUILD_DIR,
        help="Transient directory used to stage feed copies (removed on exit).",
    )
    parser.add_argument(
        "--report",
        type=Path,
        help="Optional path for a Markdown merge report.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Merge and summarize without replacing the canonical index.",
    )
    return parser


def parse_feed(value: str) -> FeedSource:
    label, sep, location = value.partition("=")
    label = label.strip()
    directory, colon, filename = location.rpartition(":")
    if not sep or not colon or not label or not directory or not filename:
        raise argparse.ArgumentTypeError(
            f"Invalid feed '{value}'; expected LABEL=DIR:FILE"
        )
    if any(ch in label for ch in "/\\"):
        raise argparse.ArgumentTypeError(f"Feed label '{label}' must not contain path separators")
    return FeedSource(label=label, directory=Path(directory), filename=filename)


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def resolve_config(args: argparse.Namespace) -> MergeConfig:
    root = args.root.expanduser().resolve()
    feeds: List[FeedSource] = list(args.feeds) or [parse_feed(value) for value in DEFAULT_FEEDS]
    if len(feeds) != 2:
        raise IndexMergerError(f"Exactly two --feed values are required, got {len(feeds)}")
    labels = [feed.label for feed in feeds]
    if len(set(labels)) != len(labels):
        raise IndexMergerError(f"Feed labels must be distinct: {', '.join(labels)}")

    return MergeConfig(
        root=root,
        feeds=tuple(
            FeedSource(label=feed.label, directory=_under(root, feed.directory), filename=feed.filename)
            for feed in feeds
        ),
        output=_under(root, args.output),
        build_dir=_under(root, args.build_dir),
        report=_under(root, args.report) if args.report else None,
        dry_run=args.dry_run,
    )


def run(args: argparse.Namespace) -> int:
    configure_logging(args.verbose)
    logging.debug("Arguments: %s", args)
    config = resolve_config(args)
    logging.info("Project root: %s", config.root)

    logging.info("Loading package index files from local directories...")
    require_base_index(config.output)
    created = prepare_build_dir(config.build_dir, dry_run=config.dry_run)
    staged: List[StagedFeed] = []
    try:
        _run_merge(config, staged)
    finally:
        cleanup_build_dir(config.build_dir, created=created, staged=staged)
    return 0


def _run_merge(config: MergeConfig, staged: List[StagedFeed]) -> None:
    for feed in config.feeds:
        staged.append(stage_feed(feed, config.build_dir, dry_run=config.dry_run))
        logging.debug("Feed %s: %s staged at %s", feed.label, staged[-1].source, staged[-1].staged)
    documents = [load_index(feed.staged, feed.label) for feed in staged]
    original = load_index(config.output, "base")

    logging.info("Starting merge of %s", ", ".join(feed.label for feed in staged))
    merged = merge_indexes(original, documents[0], documents[1])

    if config.dry_run:
        logging.info("Dry run: %s not replaced.", config.output)
    else:
        write_index_atomic(merged, config.output)
        logging.info("Merge completed!")

    stats = collect_stats(
        [(feed.label, feed.version, document) for feed, document in zip(staged, documents)],
        merged,
    )
    print(summarize_cli(stats, merged))
    if config.report:
        write_markdown_report(config.report, stats, merged)


def _under(root: Path, path: Path) -> Path:
    path = path.expanduser()
    return path if path.is_absolute() else root / path


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return run(args)
    except IndexMergerError as exc:
        logging.error("%s", exc)
        return 2
    except KeyboardInterrupt:
        logging.error("Interrupted")
        return 130


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
