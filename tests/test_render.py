from __future__ import annotations

import random

import pytest

from thumbgallery.config_utils import GalleryConfig
from thumbgallery.render import build_view_model, render_gallery, sort_items
from thumbgallery.schema import ViewItem, ViewModel, make_branch, make_leaf


class RecordingCompiler:
    def __init__(self, fail_on: str | None = None):
        self.models: list[ViewModel] = []
        self.fail_on = fail_on

    def render(self, view_model: ViewModel) -> str:
        if view_model.title == self.fail_on:
            raise RuntimeError("template exploded")
        self.models.append(view_model)
        labels = ",".join(item.label for item in view_model.items)
        return f"<h1>{view_model.title}</h1>{labels}"


@pytest.fixture
def config(tmp_path):
    return GalleryConfig(source=tmp_path / "src", output=tmp_path / "html")


def _with_thumb(leaf, config):
    leaf.assign_thumbnail(config.thumbs_dir / f"{leaf.identifier}{leaf.extension}")
    return leaf


@pytest.fixture
def tree(tmp_path, config):
    source = tmp_path / "src"
    (source / "Zeta" / "inner").mkdir(parents=True)
    (source / "alpha").mkdir()
    paths = [
        "b.jpg",
        "A.jpg",
        "notes.txt",
        "Zeta/z1.jpg",
        "Zeta/inner/deep.jpg",
    ] + [f"alpha/{index:02d}.jpg" for index in range(15)]
    for rel in paths:
        (source / rel).write_bytes(b"data")

    root = make_branch(source)
    zeta = make_branch(source / "Zeta")
    inner = make_branch(source / "Zeta" / "inner")
    alpha = make_branch(source / "alpha")

    inner.children.append(_with_thumb(make_leaf(source / "Zeta/inner/deep.jpg", "image/jpeg"), config))
    zeta.children.extend([_with_thumb(make_leaf(source / "Zeta/z1.jpg", "image/jpeg"), config), inner])
    alpha.children.extend(
        _with_thumb(make_leaf(source / f"alpha/{index:02d}.jpg", "image/jpeg"), config)
        for index in range(15)
    )
    notes = make_leaf(source / "notes.txt", "text/plain")
    notes.valid = False
    root.children.extend(
        [
            _with_thumb(make_leaf(source / "b.jpg", "image/jpeg"), config),
            zeta,
            _with_thumb(make_leaf(source / "A.jpg", "image/jpeg"), config),
            notes,
            alpha,
        ]
    )
    return root


def test_sort_items_puts_directories_first():
    items = [
        ViewItem(kind="file", href="a", label="a"),
        ViewItem(kind="dir", href="z", label="z"),
        ViewItem(kind="file", href="B", label="B"),
        ViewItem(kind="dir", href="C", label="C"),
    ]

    ordered = [(item.kind, item.label) for item in sort_items(items)]

    assert ordered == [("dir", "C"), ("dir", "z"), ("file", "B"), ("file", "a")]


def test_view_model_items(tree, config):
    model = build_view_model(tree, config, "Home", random.Random(1))

    assert [(item.kind, item.label) for item in model.items] == [
        ("dir", "Zeta"),
        ("dir", "alpha"),
        ("file", "A.jpg"),
        ("file", "b.jpg"),
        ("file", "notes.txt"),
    ]
    zeta, alpha, a_jpg, _, notes = model.items
    assert zeta.href == tree.children[1].page_filename
    assert a_jpg.href == "../src/A.jpg"
    assert a_jpg.mime_type == "image/jpeg"
    assert a_jpg.thumbnails[0].src.startswith("_thumbs/")
    assert notes.thumbnails == [] and notes.empty and not notes.valid


def test_directory_preview_uses_only_direct_children(tree, config):
    model = build_view_model(tree, config, "Home", random.Random(1))
    zeta = model.items[0]
    deep = tree.children[1].children[1].children[0]

    assert len(zeta.thumbnails) == 1
    assert deep.identifier not in zeta.thumbnails[0].src


def test_directory_preview_is_capped(tree, config):
    model = build_view_model(tree, config, "Home", random.Random(1))
    alpha = model.items[1]

    assert len(alpha.thumbnails) == 10
    assert len({thumb.src for thumb in alpha.thumbnails}) == 10


def test_directory_preview_is_stable_without_rng(tree, config):
    first = build_view_model(tree, config, "Home")
    second = build_view_model(tree, config, "Home")

    assert first == second


def test_render_writes_one_page_per_directory_root_last(tree, config):
    compiler = RecordingCompiler()

    pages = render_gallery(tree, config, compiler)

    titles = [model.title for model in compiler.models]
    assert titles == ["inner", "Zeta", "alpha", "Home"]
    assert pages[-1] == config.output / "index.html"
    assert len(pages) == 4
    assert all(page.exists() for page in pages)
    zeta = tree.children[1]
    assert (config.output / zeta.page_filename).read_text(encoding="utf-8").startswith(
        "<h1>Zeta</h1>"
    )


def test_render_passes_script_reference(tree, config):
    compiler = RecordingCompiler()

    render_gallery(tree, config, compiler, script="gallery.js")

    assert {model.script for model in compiler.models} == {"gallery.js"}


def test_render_failure_propagates(tree, config):
    with pytest.raises(RuntimeError, match="template exploded"):
        render_gallery(tree, config, RecordingCompiler(fail_on="alpha"))

    assert not (config.output / "index.html").exists()


def test_render_progress(tree, config):
    events = []

    render_gallery(
        tree,
        config,
        RecordingCompiler(),
        progress_callback=lambda label, pct: events.append((label, pct)),
    )

    assert events[-1] == ("index.html", 100.0)
    assert len(events) == 4
