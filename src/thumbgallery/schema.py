from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Annotated, Any, Iterator, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

SUPPORTED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif"})
SUPPORTED_VIDEO_TYPES = frozenset(
    {"video/mp4", "video/quicktime", "video/ogg", "video/webm"}
)

# Fact names stored in the cache
THUMBNAIL_FACT = "thumbnail"
COPIED_FACT = "copied"

ROOT_TITLE = "Home"

# Directory pages are named after the SHA-256 identifier of their path
PAGE_FILENAME_PATTERN = re.compile(r"[0-9a-f]{64}\.html")


def path_identifier(path: str | Path) -> str:
    """Return the content-addressed identifier for a filesystem path."""
    return hashlib.sha256(str(path).encode("utf-8")).hexdigest()


def modified_at_ms(path: Path) -> int:
    """Return the modification time of ``path`` in epoch milliseconds."""
    return path.stat().st_mtime_ns // 1_000_000


class BaseEntry(BaseModel):
    """Fields shared by files and directories in the content tree."""

    path: str
    name: str
    identifier: str
    modified_at: int


class Leaf(BaseEntry):
    """A regular file discovered in the source tree."""

    kind: Literal["leaf"] = "leaf"
    media_kind: str
    extension: str = ""
    thumbnail_path: str = ""
    public_href: str | None = None
    valid: bool = True

    @property
    def is_image(self) -> bool:
        return self.media_kind in SUPPORTED_IMAGE_TYPES

    @property
    def is_video(self) -> bool:
        return self.media_kind in SUPPORTED_VIDEO_TYPES

    def assign_thumbnail(self, thumbnail_path: str | Path) -> None:
        """Set the thumbnail path; it may only be set once per run."""
        thumbnail_path = str(thumbnail_path)
        if self.thumbnail_path and self.thumbnail_path != thumbnail_path:
            raise ValueError(f"Thumbnail already assigned for {self.path}")
        self.thumbnail_path = thumbnail_path


class Branch(BaseEntry):
    """A directory together with its discovered children."""

    kind: Literal["branch"] = "branch"
    children: list[ContentEntry] = Field(default_factory=list)

    @property
    def page_filename(self) -> str:
        return f"{self.identifier}.html"

    def leaves(self) -> list[Leaf]:
        return [child for child in self.children if isinstance(child, Leaf)]

    def branches(self) -> list[Branch]:
        return [child for child in self.children if isinstance(child, Branch)]


ContentEntry = Annotated[Union[Leaf, Branch], Field(discriminator="kind")]

Branch.model_rebuild()


def make_leaf(path: Path, media_kind: str) -> Leaf:
    path = Path(path)
    return Leaf(
        path=str(path),
        name=path.name,
        identifier=path_identifier(path),
        modified_at=modified_at_ms(path),
        media_kind=media_kind,
        extension=path.suffix,
    )


def make_branch(path: Path) -> Branch:
    path = Path(path)
    return Branch(
        path=str(path),
        name=path.name,
        identifier=path_identifier(path),
        modified_at=modified_at_ms(path),
    )


def iter_entries(root: Branch) -> Iterator[Leaf | Branch]:
    """Yield every entry below ``root`` depth-first, in discovery order."""
    stack: list[Leaf | Branch] = list(reversed(root.children))
    while stack:
        entry = stack.pop()
        yield entry
        match entry:
            case Branch():
                stack.extend(reversed(entry.children))
            case Leaf():
                pass


def iter_leaves(root: Branch) -> Iterator[Leaf]:
    for entry in iter_entries(root):
        if isinstance(entry, Leaf):
            yield entry


def count_branches(root: Branch) -> int:
    """Count directories below ``root`` (the root itself excluded)."""
    return sum(1 for entry in iter_entries(root) if isinstance(entry, Branch))


class CacheFact(BaseModel):
    """A single named fact stored against an identifier."""

    model_config = ConfigDict(populate_by_name=True)

    observed_at: int = Field(alias="observedAt")
    value: Any = None


class CacheDocument(BaseModel):
    """Schema of the persisted cache file."""

    model_config = ConfigDict(populate_by_name=True)

    last_run: int = Field(alias="lastRun")
    files: dict[str, dict[str, CacheFact]] = Field(default_factory=dict)


class ThumbnailRef(BaseModel):
    src: str


class ViewItem(BaseModel):
    """One row of a rendered directory page."""

    kind: Literal["file", "dir"]
    href: str
    label: str
    thumbnails: list[ThumbnailRef] = Field(default_factory=list)
    mime_type: str | None = None
    valid: bool = True

    @property
    def is_dir(self) -> bool:
        return self.kind == "dir"

    @property
    def empty(self) -> bool:
        return not self.thumbnails


class ViewModel(BaseModel):
    """Data handed to the page compiler for a single directory page."""

    title: str
    items: list[ViewItem] = Field(default_factory=list)
    script: str | None = None
