"""
File source.

Reads a JSON or YAML document holding a list of record hashes. The file is
read in a worker thread so the event loop is never blocked.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import yaml

from kcollection.sources.base import Source, register_source


def load_payload(path: Path) -> Any:
    """Load a JSON or YAML file.

    ``.yaml``/``.yml`` files are parsed with ``yaml.safe_load``; everything
    else is parsed as JSON.
    """
    path = Path(path)
    with open(path) as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(f)
        return json.load(f)


@register_source("file")
class FileSource(Source):
    """Source reading records from JSON/YAML files.

    The file is ``options.params["path"]`` when given, otherwise the
    collection's ``url``; relative paths resolve against ``root``.
    """

    def __init__(self, root: Optional[Path] = None, **kwargs):
        """Initialize source.

        Args:
            root: Directory relative paths resolve against (default: cwd)
            **kwargs: Ignored (allows shared kwargs across sources)
        """
        self.root = Path(root) if root else None

    @property
    def name(self) -> str:
        return "file"

    def _resolve(self, collection: Any, options: Any) -> Optional[Path]:
        location = options.params.get("path") or getattr(collection, "url", "")
        if not location:
            return None
        path = Path(location)
        if self.root and not path.is_absolute():
            path = self.root / path
        return path

    async def fetch(self, collection: Any, options: Any) -> None:
        path = self._resolve(collection, options)
        if path is None:
            options.fail(collection, options, {"error": "No path or url to read from"})
            return

        try:
            payload = await asyncio.to_thread(load_payload, path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            options.fail(collection, options, {"error": str(e), "path": str(path)})
            return

        options.success(collection, options, payload)
