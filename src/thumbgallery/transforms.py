"""Loading and invoking user-supplied copy/transform plugins.

A plugin is any object exposing two callables:

``read(source, dest)``
    Return ``True`` when ``dest`` already reflects ``source`` and no rewrite
    is needed.
``write(source, dest)``
    Produce ``dest`` from ``source``.

Both may be plain functions or coroutines. Plugins are referenced either as
``package.module:attribute`` or as a path to a ``.py`` file whose module
itself provides ``read`` and ``write``.
"""

from __future__ import annotations

import asyncio
import importlib
import importlib.util
import inspect
import logging
from pathlib import Path
from types import ModuleType
from typing import Any

from thumbgallery.errors import TransformError

logger = logging.getLogger(__name__)

REQUIRED_METHODS = ("read", "write")


def _load_module_from_file(path: Path) -> ModuleType:
    spec = importlib.util.spec_from_file_location(f"thumbgallery_plugin_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise TransformError(f"Cannot load transform plugin from {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def load_transform(reference: str) -> Any:
    """Resolve ``reference`` to a plugin object and validate its interface."""
    path = Path(reference).expanduser()
    if path.suffix == ".py":
        if not path.is_file():
            raise TransformError(f"Transform plugin not found: {path}")
        plugin: Any = _load_module_from_file(path.resolve())
    else:
        module_name, _, attribute = reference.partition(":")
        try:
            plugin = importlib.import_module(module_name)
        except ImportError as exc:
            raise TransformError(
                f"Cannot import transform plugin {module_name}: {exc}"
            ) from exc
        if attribute:
            try:
                plugin = getattr(plugin, attribute)
            except AttributeError as exc:
                raise TransformError(
                    f"Transform plugin {module_name} has no attribute {attribute}"
                ) from exc

    for method in REQUIRED_METHODS:
        if not callable(getattr(plugin, method, None)):
            raise TransformError(
                f'Transform plugin must provide the method "{method}".'
            )

    logger.info("Loaded transform plugin %s", reference)
    return plugin


def call_plugin(plugin: Any, method: str, source: Path, dest: Path) -> Any:
    """Invoke ``plugin.method`` and wait for the result if it is awaitable."""
    func = getattr(plugin, method, None)
    if not callable(func):
        raise TransformError(f'Transform plugin must provide the method "{method}".')

    result = func(str(source), str(dest))
    if inspect.isawaitable(result):
        result = asyncio.run(_await(result))
    return result


async def _await(awaitable: Any) -> Any:
    return await awaitable
