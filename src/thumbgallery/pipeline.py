"""Orchestrates discovery, thumbnail generation and rendering for one build."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from thumbgallery.cache import Cache
from thumbgallery.config_utils import GalleryConfig
from thumbgallery.discover_files import discover
from thumbgallery.errors import ErrorLog, OutputDirectoryError
from thumbgallery.page_compiler import GalleryTemplate, PageCompiler
from thumbgallery.progress import ProgressCallback
from thumbgallery.render import render_gallery
from thumbgallery.schema import Branch
from thumbgallery.thumbnailers import extract_frame, resize_image
from thumbgallery.thumbnails import (
    STAGE as THUMBNAIL_STAGE,
    FrameExtractor,
    ImageResizer,
    ThumbnailStats,
    generate_thumbnails,
)
from thumbgallery.transforms import load_transform

logger = logging.getLogger("thumbgallery.pipeline")


@dataclass
class BuildReport:
    """Summary of a completed build."""

    tree: Branch
    thumbnails: ThumbnailStats
    pages: list[Path]
    errors: ErrorLog = field(default_factory=ErrorLog)
    duration: float = 0.0

    @property
    def thumbnail_failures(self) -> int:
        return len(self.errors.for_stage(THUMBNAIL_STAGE))

    def summary_lines(self) -> list[str]:
        lines = [
            f"Rendered {len(self.pages)} page(s) in {self.duration:.2f}s",
            f"Thumbnails: {self.thumbnails.generated} generated, "
            f"{self.thumbnails.cached} cached",
        ]
        if self.thumbnail_failures:
            lines.append(f"{self.thumbnail_failures} thumbnail(s) failed")
        copy_failures = len(self.errors) - self.thumbnail_failures
        if copy_failures:
            lines.append(f"{copy_failures} file(s) could not be processed")
        return lines


def prepare_output_dir(output: Path) -> None:
    try:
        output.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputDirectoryError(
            f"Could not create output directory {output}: {exc}"
        ) from exc
    if not output.is_dir():
        raise OutputDirectoryError(f"Output path is not a directory: {output}")


def build_gallery(
    config: GalleryConfig,
    progress_callback: ProgressCallback | None = None,
    *,
    compiler: PageCompiler | None = None,
    image_resizer: ImageResizer = resize_image,
    frame_extractor: FrameExtractor = extract_frame,
    transform: Any = None,
    rng: random.Random | None = None,
) -> BuildReport:
    """Run discovery, thumbnails and rendering, then persist the cache.

    The cache is saved only after every page has been written, so an aborted
    run leaves the previous cache file untouched.
    """
    start_time = time.time()
    logger.info("Building gallery for %s into %s", config.source, config.output)

    prepare_output_dir(config.output)

    script = None
    if compiler is None:
        template = GalleryTemplate.load(config.template)
        compiler = template.compiler()
        script = template.install_assets(config.output)

    if config.transform and not config.copy_files:
        logger.warning(
            "Ignoring transform %s because file copying is disabled", config.transform
        )
        transform = None
    elif transform is None and config.transform:
        transform = load_transform(config.transform)

    cache = Cache(config.cache_path).load()
    errors = ErrorLog()

    logger.info("Stage 1: Discovering files")
    tree = discover(
        config.source,
        config,
        cache,
        errors=errors,
        progress_callback=progress_callback,
        transform=transform,
        assets=[script] if script else (),
    )

    logger.info("Stage 2: Generating thumbnails")
    stats = generate_thumbnails(
        tree,
        config,
        cache,
        errors=errors,
        progress_callback=progress_callback,
        image_resizer=image_resizer,
        frame_extractor=frame_extractor,
    )

    logger.info("Stage 3: Rendering pages")
    pages = render_gallery(
        tree,
        config,
        compiler,
        progress_callback=progress_callback,
        rng=rng,
        script=script,
    )

    cache.save()

    report = BuildReport(
        tree=tree,
        thumbnails=stats,
        pages=pages,
        errors=errors,
        duration=time.time() - start_time,
    )
    for line in report.summary_lines():
        logger.info(line)
    return report
