"""Gallery templates and the Jinja2 page compiler."""

from __future__ import annotations

import logging
from pathlib import Path
from shutil import copy2
from typing import Any, Protocol

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from thumbgallery.errors import TemplateError
from thumbgallery.schema import ViewModel

logger = logging.getLogger(__name__)

INDEX_TEMPLATE = "index.html"
MANIFEST_FILENAME = "template.yaml"


class PageCompiler(Protocol):
    def render(self, view_model: ViewModel) -> str: ...


class JinjaPageCompiler:
    """Renders a view model through a Jinja2 template file."""

    def __init__(self, template_root: Path, template_name: str = INDEX_TEMPLATE):
        self.environment = Environment(
            loader=FileSystemLoader(str(template_root)),
            autoescape=select_autoescape(["html", "htm", "xml"]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self.template_name = template_name

    def render(self, view_model: ViewModel) -> str:
        template = self.environment.get_template(self.template_name)
        return template.render(
            title=view_model.title,
            items=view_model.items,
            script=view_model.script,
        )


class GalleryTemplate:
    """A template directory: an ``index.html`` page plus optional assets.

    ``template.yaml`` may name a prebuilt ``script`` (relative to the
    template directory) that is copied next to the rendered pages.
    """

    def __init__(self, root: Path, script: str | None = None):
        self.root = Path(root)
        self.script = script

    @classmethod
    def load(cls, root: Path) -> GalleryTemplate:
        root = Path(root).expanduser().resolve()
        if not root.is_dir():
            raise TemplateError(f"Template directory not found: {root}")
        if not (root / INDEX_TEMPLATE).is_file():
            raise TemplateError(
                f'Template file "{INDEX_TEMPLATE}" not found within template path {root}'
            )

        manifest = cls._read_manifest(root / MANIFEST_FILENAME)
        script = manifest.get("script")
        if script is not None:
            if not isinstance(script, str) or not (root / script).is_file():
                raise TemplateError(f"Template script {script!r} not found in {root}")

        logger.info("Using template %s", root)
        return cls(root, script=script)

    @staticmethod
    def _read_manifest(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise TemplateError(f"Invalid template manifest {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise TemplateError(f"Template manifest {path} must contain a mapping.")
        return data

    def compiler(self) -> JinjaPageCompiler:
        return JinjaPageCompiler(self.root)

    def install_assets(self, output: Path) -> str | None:
        """Copy the template script into ``output`` and return its href."""
        if not self.script:
            return None
        source = self.root / self.script
        dest = Path(output) / Path(self.script).name
        if not dest.exists() or dest.read_bytes() != source.read_bytes():
            copy2(source, dest)
            logger.debug("Installed template script %s", dest)
        return dest.name
