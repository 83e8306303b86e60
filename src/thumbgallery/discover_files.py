from __future__ import annotations

import logging
import mimetypes
import os
import time
from collections.abc import Container, Iterable
from pathlib import Path
from shutil import copy2
from typing import Any

from thumbgallery.cache import Cache
from thumbgallery.config_utils import GalleryConfig
from thumbgallery.errors import DiscoveryError, ErrorLog, TransformError
from thumbgallery.progress import ProgressCallback, ProgressContext
from thumbgallery.schema import (
    COPIED_FACT,
    PAGE_FILENAME_PATTERN,
    Branch,
    Leaf,
    make_branch,
    make_leaf,
)
from thumbgallery.task_utils import SerialScheduler
from thumbgallery.transforms import call_plugin

try:
    import magic  # type: ignore[import-not-found]
except ImportError:
    magic = None  # type: ignore[assignment]


logger = logging.getLogger(__name__)

STAGE = "discover"
FALLBACK_MIME_TYPE = "application/octet-stream"


def _is_hidden(name: str) -> bool:
    return name.startswith(".")


def _count_files(
    root_directory: Path, excluded: Container[Path] | None = None
) -> int:
    """Count files discovery will visit, for progress tracking."""
    excluded = excluded if excluded is not None else set()
    count = 0
    logger.info("Counting files in %s...", root_directory)
    start_time = time.time()

    for dirpath, dirnames, filenames in os.walk(root_directory):
        current = Path(dirpath)
        dirnames[:] = [
            name
            for name in dirnames
            if not _is_hidden(name) and (current / name) not in excluded
        ]
        count += sum(
            1
            for name in filenames
            if not _is_hidden(name) and (current / name) not in excluded
        )

    elapsed = time.time() - start_time
    logger.info("Found %d files in %.2f seconds", count, elapsed)
    return count


def _create_mime_detector() -> Any:
    if magic is None:
        return None

    try:
        return magic.Magic(mime=True)
    except Exception as exc:  # pragma: no cover - depends on system libmagic
        logger.warning(
            "python-magic could not initialize libmagic (%s). "
            "Falling back to extension-only detection.",
            exc,
        )
        return None


def _detect_mime_type(path: Path, mime_detector: Any) -> str:
    guessed_type, _ = mimetypes.guess_type(str(path))
    if guessed_type:
        logger.debug("Guessed MIME type for %s: %s", path.name, guessed_type)
        return guessed_type

    if mime_detector is not None:
        try:
            mime_type = mime_detector.from_file(str(path))
            logger.debug("Sniffed MIME type for %s: %s", path.name, mime_type)
            return mime_type
        except Exception as exc:
            logger.debug("Magic detection failed for %s: %s", path.name, exc)

    logger.debug("Using fallback MIME type for %s", path.name)
    return FALLBACK_MIME_TYPE


class GeneratedFiles:
    """Recognizes what a build writes into the output directory.

    Supports ``in`` checks on paths. Discovery skips these when the output
    directory sits inside, or is, the source directory.
    """

    def __init__(self, config: GalleryConfig, assets: Iterable[str] = ()):
        self.output = config.output
        self.paths = {
            config.output,
            config.thumbs_dir,
            config.full_dir,
            config.cache_path,
            config.output / config.index_filename,
        }
        self.paths.update(config.output / name for name in assets)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, Path):
            return False
        if path in self.paths:
            return True
        return (
            path.parent == self.output
            and PAGE_FILENAME_PATTERN.fullmatch(path.name) is not None
        )


class TreeBuilder:
    """Builds the content tree one directory level per scheduled task."""

    def __init__(
        self,
        root: Path,
        config: GalleryConfig,
        cache: Cache,
        progress: ProgressContext,
        errors: ErrorLog,
        transform: Any = None,
        mime_detector: Any = None,
        excluded: Container[Path] | None = None,
    ):
        self.root = root
        self.config = config
        self.cache = cache
        self.progress = progress
        self.errors = errors
        self.transform = transform
        self.mime_detector = mime_detector
        self.scheduler = SerialScheduler()
        self.excluded = excluded if excluded is not None else GeneratedFiles(config)

    def build(self) -> Branch:
        root_branch = make_branch(self.root)
        self.scheduler.add(lambda: self.list_directory(root_branch))
        self.scheduler.run()
        return root_branch

    def list_directory(self, branch: Branch, parent: Branch | None = None) -> Branch:
        directory = Path(branch.path)
        try:
            with os.scandir(directory) as iterator:
                entries = sorted(iterator, key=lambda entry: entry.name)
        except OSError as exc:
            raise DiscoveryError(f"Cannot list directory {directory}: {exc}") from exc

        if parent is not None:
            parent.children.append(branch)

        subtasks = []
        for entry in entries:
            if _is_hidden(entry.name):
                continue
            path = Path(entry.path)
            if path in self.excluded:
                logger.debug("Skipping generated output %s", path)
                continue

            try:
                if entry.is_dir(follow_symlinks=False):
                    child = make_branch(path)
                    subtasks.append(
                        lambda child=child: self.list_directory(child, branch)
                    )
                    continue
                if not entry.is_file():
                    continue
                leaf = make_leaf(path, _detect_mime_type(path, self.mime_detector))
            except OSError as exc:
                logger.error("Failed to process file %s: %s", path, exc)
                self.errors.add(str(path), STAGE, exc)
                continue

            branch.children.append(leaf)
            if self.config.copy_files:
                subtasks.append(lambda leaf=leaf: self.copy_to_output(leaf))
            else:
                self.progress.advance(leaf.path)

        self.scheduler.defer(subtasks)
        return branch

    def destination_for(self, leaf: Leaf) -> Path:
        return self.config.full_dir / Path(leaf.path).relative_to(self.root)

    def copy_to_output(self, leaf: Leaf) -> Leaf:
        """Copy or transform ``leaf`` into the output tree, recording failures."""
        dest = self.destination_for(leaf)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            if self.transform is not None:
                self._run_transform(leaf, dest)
            else:
                self._copy_file(leaf, dest)
        except Exception as exc:
            logger.error("Failed to copy %s to %s: %s", leaf.path, dest, exc)
            self.errors.add(leaf.path, STAGE, exc)
        else:
            leaf.public_href = Path(os.path.relpath(dest, self.config.output)).as_posix()

        self.progress.advance(leaf.path)
        return leaf

    def _copy_file(self, leaf: Leaf, dest: Path) -> None:
        if self.cache.is_valid(leaf, COPIED_FACT, True) and dest.exists():
            logger.debug("Copy of %s is current", leaf.path)
            return

        if dest.exists() or dest.is_symlink():
            dest.unlink()
        copy2(leaf.path, dest)
        self.cache.record(leaf, COPIED_FACT, True)
        logger.debug("Copied %s to %s", leaf.path, dest)

    def _run_transform(self, leaf: Leaf, dest: Path) -> None:
        try:
            current = call_plugin(self.transform, "read", Path(leaf.path), dest)
            if self.cache.is_valid(leaf, COPIED_FACT, True) and current is True:
                logger.debug("Transformed copy of %s is current", leaf.path)
                return
            call_plugin(self.transform, "write", Path(leaf.path), dest)
        except TransformError:
            raise
        except Exception as exc:
            raise TransformError(f"Transform failed for {leaf.path}: {exc}") from exc
        self.cache.record(leaf, COPIED_FACT, True)


def discover(
    root_directory: Path,
    config: GalleryConfig,
    cache: Cache,
    errors: ErrorLog | None = None,
    progress_callback: ProgressCallback | None = None,
    transform: Any = None,
    assets: Iterable[str] = (),
) -> Branch:
    """Walk ``root_directory`` and return the content tree rooted there.

    ``assets`` names files the template installs into the output directory;
    like pages and thumbnails from earlier builds they are never listed as
    content.
    """
    root_directory = Path(root_directory).expanduser().resolve()
    if not root_directory.is_dir():
        raise DiscoveryError(
            f"Root directory does not exist or is not a directory: {root_directory}"
        )
    errors = errors if errors is not None else ErrorLog()

    logger.info("Starting file discovery in %s", root_directory)
    if config.copy_files:
        try:
            config.full_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DiscoveryError(
                f"Could not create copy directory {config.full_dir}: {exc}"
            ) from exc

    generated = GeneratedFiles(config, assets)
    total_files = _count_files(root_directory, generated)
    progress = ProgressContext(STAGE, total_files, progress_callback)
    mime_detector = _create_mime_detector()

    start_time = time.time()
    try:
        builder = TreeBuilder(
            root_directory,
            config,
            cache,
            progress,
            errors,
            transform=transform,
            mime_detector=mime_detector,
            excluded=generated,
        )
        tree = builder.build()
    finally:
        if mime_detector is not None and hasattr(mime_detector, "close"):
            try:
                mime_detector.close()
                logger.debug("Closed MIME detector")
            except Exception as exc:
                logger.warning("Failed to close MIME detector: %s", exc)

    logger.info(
        "Discovered %d files in %.2f seconds", progress.complete, time.time() - start_time
    )
    failures = errors.for_stage(STAGE)
    if failures:
        logger.warning("Encountered %d errors during discovery", len(failures))
    return tree
