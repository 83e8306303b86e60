from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import pytest

from thumbgallery.config_utils import GalleryConfig
from thumbgallery.errors import CacheCorruptError, OutputDirectoryError, TemplateError
from thumbgallery.pipeline import build_gallery
from thumbgallery.schema import ViewModel


class FakeCodecs:
    def __init__(self, fail_on: set[str] | None = None):
        self.fail_on = fail_on or set()
        self.calls: list[str] = []

    def resize(self, source, dest, width, height):
        self.calls.append(Path(source).name)
        if Path(source).name in self.fail_on:
            raise ValueError("corrupt image")
        Path(dest).write_bytes(b"thumb")

    def extract(self, source, dest_dir, dest_filename, width_hint):
        self.calls.append(Path(source).name)
        (Path(dest_dir) / dest_filename).write_bytes(b"frame")


class ExplodingCompiler:
    def render(self, view_model: ViewModel) -> str:
        raise RuntimeError("compiler failed")


@pytest.fixture
def config(tmp_path):
    source = tmp_path / "root"
    (source / "sub").mkdir(parents=True)
    (source / "a.jpg").write_bytes(b"a")
    (source / "b.png").write_bytes(b"b")
    (source / "sub" / "c.mp4").write_bytes(b"c")
    return GalleryConfig(source=source, output=tmp_path / "html")


def _run(config, codecs, **kwargs):
    return build_gallery(
        config, image_resizer=codecs.resize, frame_extractor=codecs.extract, **kwargs
    )


def _pages(config):
    return {page.name: page.read_bytes() for page in config.output.glob("*.html")}


def test_first_run_generates_everything(config):
    codecs = FakeCodecs()

    report = _run(config, codecs)

    assert (report.thumbnails.generated, report.thumbnails.cached) == (3, 0)
    assert sorted(codecs.calls) == ["a.jpg", "b.png", "c.mp4"]
    assert len(report.pages) == 2
    assert report.pages[-1] == config.output / "index.html"
    assert (config.output / "gallery.js").exists()

    cache = json.loads(config.cache_path.read_text(encoding="utf-8"))
    assert len(cache["files"]) == 3
    assert all("thumbnail" in facts for facts in cache["files"].values())


def test_second_run_is_fully_cached_and_identical(config):
    _run(config, FakeCodecs())
    first_pages = _pages(config)

    codecs = FakeCodecs()
    report = _run(config, codecs)

    assert codecs.calls == []
    assert (report.thumbnails.generated, report.thumbnails.cached) == (0, 3)
    assert _pages(config) == first_pages


def test_touched_source_is_regenerated(config):
    _run(config, FakeCodecs())
    source = config.source / "a.jpg"
    stat = source.stat()
    bumped = stat.st_mtime_ns + 5_000_000_000
    os.utime(source, ns=(bumped, bumped))

    codecs = FakeCodecs()
    report = _run(config, codecs)

    assert codecs.calls == ["a.jpg"]
    assert report.thumbnails.cached == 2


def test_corrupt_media_does_not_block_siblings_or_render(config):
    codecs = FakeCodecs(fail_on={"a.jpg"})

    report = _run(config, codecs)

    assert report.thumbnails.generated == 2
    assert report.thumbnail_failures == 1
    assert "1 thumbnail(s) failed" in report.summary_lines()
    assert (config.output / "index.html").exists()


def test_render_failure_keeps_previous_cache(config):
    _run(config, FakeCodecs())
    before = config.cache_path.read_bytes()
    (config.source / "new.jpg").write_bytes(b"new")

    with pytest.raises(RuntimeError, match="compiler failed"):
        _run(config, FakeCodecs(), compiler=ExplodingCompiler())

    assert config.cache_path.read_bytes() == before


def test_corrupt_cache_aborts_before_work(config):
    config.output.mkdir(parents=True)
    config.cache_path.write_text("{broken", encoding="utf-8")
    codecs = FakeCodecs()

    with pytest.raises(CacheCorruptError):
        _run(config, codecs)
    assert codecs.calls == []


def test_missing_template_aborts_before_work(config, tmp_path):
    broken = config.model_copy(update={"template": tmp_path / "no-template"})
    codecs = FakeCodecs()

    with pytest.raises(TemplateError):
        _run(broken, codecs)
    assert codecs.calls == []


def test_output_path_that_is_a_file_is_fatal(config, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    broken = config.model_copy(update={"output": blocker})

    with pytest.raises(OutputDirectoryError):
        _run(broken, FakeCodecs())


def test_copy_mode_links_copied_files(config):
    copying = config.model_copy(update={"copy_files": True})

    _run(copying, FakeCodecs())

    index = (config.output / "index.html").read_text(encoding="utf-8")
    assert 'href="_full/a.jpg"' in index
    assert (config.full_dir / "sub" / "c.mp4").read_bytes() == b"c"


def test_output_inside_source_is_not_rediscovered(tmp_path):
    source = tmp_path / "photos"
    source.mkdir()
    (source / "a.jpg").write_bytes(b"a")
    in_place = GalleryConfig(source=source, output=source)

    runs = []
    pages = []
    for _ in range(3):
        report = _run(in_place, FakeCodecs())
        runs.append(
            (report.thumbnails.generated, report.thumbnails.cached, len(report.pages))
        )
        pages.append(_pages(in_place))

    assert runs == [(1, 0, 1), (0, 1, 1), (0, 1, 1)]
    assert pages[0] == pages[1] == pages[2]
    assert len(list(in_place.thumbs_dir.iterdir())) == 1
    assert [leaf.name for leaf in report.tree.leaves()] == ["a.jpg"]
    assert report.tree.branches() == []


def test_transform_is_ignored_without_copy_mode(config, caplog):
    ignored = config.model_copy(update={"transform": "missing_gallery_plugin:hook"})

    with caplog.at_level(logging.WARNING, logger="thumbgallery.pipeline"):
        report = _run(ignored, FakeCodecs())

    assert report.thumbnails.generated == 3
    assert not config.full_dir.exists()
    assert "Ignoring transform missing_gallery_plugin:hook" in caplog.text
