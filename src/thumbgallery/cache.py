"""Persistent cache of per-file facts used to skip unchanged work."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from thumbgallery.errors import CacheCorruptError
from thumbgallery.schema import BaseEntry, CacheDocument, CacheFact

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class Cache:
    """Maps entry identifiers to named, timestamped facts.

    Facts are stamped with the entry's *source* modification time rather than
    the wall clock, so a fact stays valid for as long as the source file has
    not been modified after it was recorded.
    """

    def __init__(self, cache_path: Path):
        self.cache_path = Path(cache_path)
        self.document = CacheDocument(last_run=_now_ms())

    def load(self) -> Cache:
        """Read the cache file, starting empty when it does not exist yet."""
        if not self.cache_path.exists():
            logger.info("No cache found at %s; starting fresh", self.cache_path)
            self.document = CacheDocument(last_run=_now_ms())
            return self

        try:
            with self.cache_path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
            self.document = CacheDocument.model_validate(data)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
            raise CacheCorruptError(
                f"Cache file {self.cache_path} is corrupted: {exc}"
            ) from exc
        except OSError as exc:
            raise CacheCorruptError(
                f"Cache file {self.cache_path} could not be read: {exc}"
            ) from exc

        logger.info(
            "Loaded cache with %d entries from %s",
            len(self.document.files),
            self.cache_path,
        )
        return self

    def record(self, entry: BaseEntry, fact: str, value: Any = True) -> None:
        """Upsert ``fact`` for ``entry``, stamped with its source mtime."""
        facts = self.document.files.setdefault(entry.identifier, {})
        facts[fact] = CacheFact(observed_at=entry.modified_at, value=value)
        logger.debug("Recorded %s=%r for %s", fact, value, entry.path)

    def is_valid(self, entry: BaseEntry, fact: str, value: Any = True) -> bool:
        """Return True when ``fact`` was recorded with ``value`` and is not stale."""
        facts = self.document.files.get(entry.identifier)
        if not facts or fact not in facts:
            return False

        stored = facts[fact]
        if stored.value != value:
            return False
        return stored.observed_at >= entry.modified_at

    def save(self) -> None:
        """Atomically overwrite the cache file with the current document."""
        self.document.last_run = _now_ms()
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        data = self.document.model_dump(mode="json", by_alias=True)

        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.cache_path.parent,
                prefix=f"{self.cache_path.name}-",
                suffix=".tmp",
                delete=False,
            ) as tmp_file:
                temp_path = Path(tmp_file.name)
                json.dump(data, tmp_file)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            os.replace(temp_path, self.cache_path)
            temp_path = None
        finally:
            if temp_path and temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError:
                    pass

        logger.info(
            "Saved cache with %d entries to %s",
            len(self.document.files),
            self.cache_path,
        )

    @property
    def last_run(self) -> int:
        return self.document.last_run

    def fact_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for facts in self.document.files.values():
            for name in facts:
                counts[name] = counts.get(name, 0) + 1
        return counts

    def __contains__(self, identifier: object) -> bool:
        return identifier in self.document.files

    def __len__(self) -> int:
        return len(self.document.files)
