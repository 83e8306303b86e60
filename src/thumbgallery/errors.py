"""Exception types and the recoverable-error log used by the build pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field


class GalleryError(RuntimeError):
    """Base class for failures that abort a gallery build."""


class OutputDirectoryError(GalleryError):
    """The output directory could not be created or accessed."""


class CacheCorruptError(GalleryError):
    """The cache file exists but could not be parsed."""


class DiscoveryError(GalleryError):
    """A directory listing failed while building the content tree."""


class TemplateError(GalleryError):
    """The page template is missing a required asset or is misconfigured."""


class MediaError(Exception):
    """A single thumbnail could not be produced."""


class TransformError(Exception):
    """A copy/transform plugin is unusable or failed for one file."""


@dataclass(frozen=True)
class RecordedError:
    path: str
    stage: str
    message: str


@dataclass
class ErrorLog:
    """Collects recoverable per-entry failures for the end-of-run summary."""

    errors: list[RecordedError] = field(default_factory=list)

    def add(self, path: str, stage: str, error: BaseException | str) -> None:
        self.errors.append(RecordedError(path=path, stage=stage, message=str(error)))

    def for_stage(self, stage: str) -> list[RecordedError]:
        return [error for error in self.errors if error.stage == stage]

    def __len__(self) -> int:
        return len(self.errors)
