"""Render stage: one HTML page per directory in the content tree."""

from __future__ import annotations

import logging
import os
import random
from pathlib import Path

from thumbgallery.config_utils import GalleryConfig
from thumbgallery.page_compiler import PageCompiler
from thumbgallery.progress import ProgressCallback, ProgressContext
from thumbgallery.schema import (
    ROOT_TITLE,
    Branch,
    Leaf,
    ThumbnailRef,
    ViewItem,
    ViewModel,
    count_branches,
)
from thumbgallery.task_utils import Task, run_serially

logger = logging.getLogger(__name__)

STAGE = "render"


def _relative_href(path: str | Path, output: Path) -> str:
    return Path(os.path.relpath(path, output)).as_posix()


def leaf_thumbnails(leaf: Leaf, output: Path) -> list[ThumbnailRef]:
    if not leaf.thumbnail_path:
        return []
    return [ThumbnailRef(src=_relative_href(leaf.thumbnail_path, output))]


def sample_thumbnails(
    thumbnails: list[ThumbnailRef], size: int, rng: random.Random
) -> list[ThumbnailRef]:
    """Pick at most ``size`` thumbnails at random."""
    return rng.sample(thumbnails, min(size, len(thumbnails)))


def sort_items(items: list[ViewItem]) -> list[ViewItem]:
    """Directories first, then files; each group ordered by label."""
    return sorted(items, key=lambda item: (not item.is_dir, item.label))


def preview_rng(config: GalleryConfig, branch: Branch) -> random.Random:
    """Return the sampling RNG for a directory preview, stable across runs."""
    return random.Random(f"{config.seed}:{branch.identifier}")


def build_view_model(
    branch: Branch,
    config: GalleryConfig,
    title: str,
    rng: random.Random | None = None,
    script: str | None = None,
) -> ViewModel:
    items: list[ViewItem] = []
    for child in branch.children:
        match child:
            case Leaf():
                items.append(
                    ViewItem(
                        kind="file",
                        href=child.public_href
                        or _relative_href(child.path, config.output),
                        label=child.name,
                        thumbnails=leaf_thumbnails(child, config.output),
                        mime_type=child.media_kind,
                        valid=child.valid,
                    )
                )
            case Branch():
                # Previews only use the directory's own files, not nested ones.
                thumbnails = [
                    thumbnail
                    for leaf in child.leaves()
                    for thumbnail in leaf_thumbnails(leaf, config.output)
                ]
                items.append(
                    ViewItem(
                        kind="dir",
                        href=child.page_filename,
                        label=child.name,
                        thumbnails=sample_thumbnails(
                            thumbnails,
                            config.preview_size,
                            rng or preview_rng(config, child),
                        ),
                    )
                )

    return ViewModel(title=title, items=sort_items(items), script=script)


def render_gallery(
    root: Branch,
    config: GalleryConfig,
    compiler: PageCompiler,
    progress_callback: ProgressCallback | None = None,
    rng: random.Random | None = None,
    script: str | None = None,
) -> list[Path]:
    """Write every directory page; the root index page is always written last."""
    progress = ProgressContext(STAGE, count_branches(root) + 1, progress_callback)
    config.output.mkdir(parents=True, exist_ok=True)

    def make_task(branch: Branch, filename: str, title: str) -> Task:
        def task() -> Path:
            view_model = build_view_model(branch, config, title, rng, script)
            markup = compiler.render(view_model)
            page_path = config.output / filename
            page_path.write_text(markup, encoding="utf-8")
            logger.debug("Wrote page %s for %s", page_path, branch.path)
            progress.advance(filename)
            return page_path

        return task

    tasks: list[Task] = []
    stack: list[tuple[Branch, bool]] = [(root, False)]
    while stack:
        branch, expanded = stack.pop()
        if expanded:
            if branch is root:
                tasks.append(make_task(branch, config.index_filename, ROOT_TITLE))
            else:
                tasks.append(make_task(branch, branch.page_filename, branch.name))
            continue
        stack.append((branch, True))
        stack.extend((child, False) for child in reversed(branch.branches()))

    pages = run_serially(tasks)
    logger.info("Rendered %d page(s) into %s", len(pages), config.output)
    return pages
