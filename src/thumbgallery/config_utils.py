"""Helpers for loading the gallery configuration."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

CONFIG_PATH = Path("thumbgallery.yaml")
DEFAULT_TEMPLATE = Path(__file__).resolve().parent / "templates" / "basic"

DEFAULT_OUTPUT_DIR_NAME = "html"
DEFAULT_THUMB_SIZE = 300
DEFAULT_PREVIEW_SIZE = 10


class GalleryConfig(BaseModel):
    """Settings for a single gallery build."""

    model_config = ConfigDict(extra="forbid")

    source: Path = Field(default_factory=Path.cwd)
    output: Path = Field(default_factory=lambda: Path.cwd() / DEFAULT_OUTPUT_DIR_NAME)
    thumbs_dir_name: str = "_thumbs"
    full_dir_name: str = "_full"
    cache_filename: str = ".cache"
    index_filename: str = "index.html"
    width: int = Field(default=DEFAULT_THUMB_SIZE, gt=0)
    height: int = Field(default=DEFAULT_THUMB_SIZE, gt=0)
    copy_files: bool = False
    transform: str | None = None
    template: Path = DEFAULT_TEMPLATE
    preview_size: int = Field(default=DEFAULT_PREVIEW_SIZE, ge=0)
    seed: int | None = None

    @field_validator("source", "output", "template", mode="after")
    @classmethod
    def _absolute(cls, value: Path) -> Path:
        return value.expanduser().resolve()

    @property
    def thumbs_dir(self) -> Path:
        return self.output / self.thumbs_dir_name

    @property
    def full_dir(self) -> Path:
        return self.output / self.full_dir_name

    @property
    def cache_path(self) -> Path:
        return self.output / self.cache_filename


def load_config(path: Path | str = CONFIG_PATH) -> dict[str, Any]:
    """Load the YAML configuration."""
    with Path(path).open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TypeError(f"Configuration file {path} must contain a mapping.")
    return dict(data)


def build_config(
    overrides: Mapping[str, Any] | None = None,
    config_path: Path | str | None = None,
) -> GalleryConfig:
    """Merge the optional config file with explicit overrides.

    Overrides whose value is ``None`` are ignored so CLI defaults never mask
    values coming from the config file.
    """
    values: dict[str, Any] = {}
    if config_path is not None:
        values.update(load_config(config_path))
    elif CONFIG_PATH.exists():
        values.update(load_config(CONFIG_PATH))

    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    return GalleryConfig.model_validate(values)
