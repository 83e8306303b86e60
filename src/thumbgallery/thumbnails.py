"""Thumbnail stage: make sure every supported media file has a thumbnail."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from thumbgallery.cache import Cache
from thumbgallery.config_utils import GalleryConfig
from thumbgallery.errors import ErrorLog, OutputDirectoryError
from thumbgallery.progress import ProgressCallback, ProgressContext
from thumbgallery.schema import THUMBNAIL_FACT, Branch, Leaf, iter_leaves
from thumbgallery.task_utils import Task, run_serially
from thumbgallery.thumbnailers import extract_frame, resize_image

logger = logging.getLogger(__name__)

STAGE = "thumbnail"
VIDEO_THUMBNAIL_SUFFIX = ".jpg"

ImageResizer = Callable[[Path, Path, int, int], object]
FrameExtractor = Callable[[Path, Path, str, int], object]


@dataclass
class ThumbnailStats:
    generated: int = 0
    cached: int = 0
    failed: int = 0
    skipped: int = 0


def thumbnail_path_for(leaf: Leaf, thumbs_dir: Path) -> Path:
    """Return the deterministic thumbnail location for a supported leaf."""
    if leaf.is_video:
        return thumbs_dir / f"{leaf.identifier}{VIDEO_THUMBNAIL_SUFFIX}"
    return thumbs_dir / f"{leaf.identifier}{leaf.extension}"


def _is_cached(cache: Cache, leaf: Leaf, output_file: Path) -> bool:
    # Both the recorded fact and the file on disk are required.
    return cache.is_valid(leaf, THUMBNAIL_FACT, True) and output_file.exists()


def generate_thumbnails(
    root: Branch,
    config: GalleryConfig,
    cache: Cache,
    errors: ErrorLog | None = None,
    progress_callback: ProgressCallback | None = None,
    image_resizer: ImageResizer = resize_image,
    frame_extractor: FrameExtractor = extract_frame,
) -> ThumbnailStats:
    """Generate missing thumbnails below ``root``; failures never stop the batch."""
    errors = errors if errors is not None else ErrorLog()
    thumbs_dir = config.thumbs_dir
    try:
        thumbs_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputDirectoryError(
            f"Could not create thumbnail directory {thumbs_dir}: {exc}"
        ) from exc

    stats = ThumbnailStats()
    leaves = list(iter_leaves(root))
    progress = ProgressContext(
        STAGE,
        sum(1 for leaf in leaves if leaf.is_image or leaf.is_video),
        progress_callback,
    )

    def make_task(leaf: Leaf, output_file: Path) -> Task:
        def task() -> Leaf:
            try:
                if leaf.is_video:
                    frame_extractor(
                        Path(leaf.path), thumbs_dir, output_file.name, config.width
                    )
                else:
                    image_resizer(
                        Path(leaf.path), output_file, config.width, config.height
                    )
            except Exception as exc:
                stats.failed += 1
                logger.error("Thumbnail failed for %s: %s", leaf.path, exc)
                errors.add(leaf.path, STAGE, exc)
            else:
                stats.generated += 1
                leaf.assign_thumbnail(output_file)
                cache.record(leaf, THUMBNAIL_FACT, True)
            progress.advance(leaf.path)
            return leaf

        return task

    tasks: list[Task] = []
    for leaf in leaves:
        if not (leaf.is_image or leaf.is_video):
            leaf.valid = False
            stats.skipped += 1
            logger.debug(
                "Format %s not supported; no thumbnail for %s",
                leaf.media_kind,
                leaf.path,
            )
            continue

        output_file = thumbnail_path_for(leaf, thumbs_dir)
        if _is_cached(cache, leaf, output_file):
            stats.cached += 1
            leaf.assign_thumbnail(output_file)
            progress.advance(leaf.path, cached=True)
            continue

        tasks.append(make_task(leaf, output_file))

    logger.info(
        "Generating %d thumbnail(s); %d already cached", len(tasks), stats.cached
    )
    run_serially(tasks)

    logger.info(
        "Thumbnails: %d generated, %d cached, %d failed, %d unsupported",
        stats.generated,
        stats.cached,
        stats.failed,
        stats.skipped,
    )
    return stats
