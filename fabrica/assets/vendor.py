"""Vendor library resolution from Bower metadata.

The project's ``bower.json`` lists dependencies; each installed package
under ``bower_components/<name>`` declares its entry files in the
``main`` property of ``.bower.json`` (written by bower on install) or
``bower.json``. The project can replace a package's ``main`` through
``overrides``:

    {
      "dependencies": {"jquery": "^3.0", "slick": "^1.8"},
      "overrides": {"slick": {"main": ["dist/slick.js", "dist/slick.css"]}}
    }

Packages are visited depth first, dependencies before dependents, so
libraries come out in load order.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..exceptions import TransformError
from ..logging import get_logger
from .sources import SourceFile, discover

logger = get_logger('vendor')

COMPONENTS_DIR = 'bower_components'


def _read_json(path: Path) -> Optional[Dict[str, Any]]:
    if not path.exists():
        return None
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise TransformError(f"invalid JSON in {path}: {e}", stage='vendor')
    if not isinstance(data, dict):
        raise TransformError(f"{path} must contain an object", stage='vendor')
    return data


def _package_metadata(package_dir: Path) -> Dict[str, Any]:
    for filename in ('.bower.json', 'bower.json'):
        data = _read_json(package_dir / filename)
        if data is not None:
            return data
    return {}


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def resolve_main_files(src: Path, asset_class: str = 'vendor') -> List[SourceFile]:
    """Return the main files of every installed Bower dependency.

    Args:
        src: Source tree containing bower.json and bower_components/
        asset_class: Asset class name stored on each SourceFile

    Returns:
        SourceFiles in load order; empty if the project has no bower.json

    Raises:
        TransformError: If a dependency is not installed
    """
    project = _read_json(Path(src) / 'bower.json')
    if project is None:
        return []

    components = (Path(src) / COMPONENTS_DIR).resolve()
    overrides = project.get('overrides') or {}
    files: List[SourceFile] = []
    visited = set()

    def visit(name: str) -> None:
        if name in visited:
            return
        visited.add(name)

        package_dir = components / name
        if not package_dir.is_dir():
            raise TransformError(
                f"vendor package '{name}' is not installed in {components}",
                stage='vendor',
            )

        metadata = _package_metadata(package_dir)
        override = overrides.get(name) or {}

        for dependency in (override.get('dependencies') or metadata.get('dependencies') or {}):
            visit(dependency)

        main = [
            m[2:] if m.startswith('./') else m
            for m in _as_list(override.get('main', metadata.get('main')))
        ]
        if not main:
            logger.warning("vendor package '%s' declares no main files", name)
        for source in discover(package_dir, main, asset_class):
            # Relative to bower_components so source maps name the package
            files.append(SourceFile(path=source.path, base=components, asset_class=asset_class))

    for name in (project.get('dependencies') or {}):
        visit(name)

    return files
