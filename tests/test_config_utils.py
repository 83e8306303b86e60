from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from thumbgallery.config_utils import DEFAULT_TEMPLATE, GalleryConfig, build_config, load_config


def test_defaults_and_derived_paths(tmp_path):
    config = GalleryConfig(source=tmp_path, output=tmp_path / "html")

    assert (config.width, config.height) == (300, 300)
    assert config.thumbs_dir == tmp_path / "html" / "_thumbs"
    assert config.full_dir == tmp_path / "html" / "_full"
    assert config.cache_path == tmp_path / "html" / ".cache"
    assert config.index_filename == "index.html"
    assert config.template == DEFAULT_TEMPLATE
    assert (DEFAULT_TEMPLATE / "index.html").is_file()


def test_load_config_reads_yaml(tmp_path):
    path = tmp_path / "gallery.yaml"
    path.write_text("width: 200\ncopy_files: true\n", encoding="utf-8")

    assert load_config(path) == {"width": 200, "copy_files": True}


def test_load_config_empty_file(tmp_path):
    path = tmp_path / "gallery.yaml"
    path.write_text("", encoding="utf-8")

    assert load_config(path) == {}


def test_load_config_requires_mapping(tmp_path):
    path = tmp_path / "gallery.yaml"
    path.write_text("- width\n", encoding="utf-8")

    with pytest.raises(TypeError):
        load_config(path)


def test_overrides_win_but_none_is_ignored(tmp_path):
    path = tmp_path / "gallery.yaml"
    path.write_text(
        f"width: 200\nheight: 150\noutput: {tmp_path / 'site'}\n", encoding="utf-8"
    )

    config = build_config({"width": 50, "height": None, "source": tmp_path}, path)

    assert config.width == 50
    assert config.height == 150
    assert config.output == (tmp_path / "site").resolve()


def test_unknown_keys_are_rejected(tmp_path):
    path = tmp_path / "gallery.yaml"
    path.write_text("thumb_width: 200\n", encoding="utf-8")

    with pytest.raises(ValidationError):
        build_config({}, path)


def test_relative_paths_are_resolved(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    config = build_config({"source": Path("photos"), "output": Path("out")})

    assert config.source == tmp_path.resolve() / "photos"
    assert config.output == tmp_path.resolve() / "out"
