"""
Renderer seam — turns MapData into an artifact reference.

The browser screenshot step lives outside this package. HtmlTemplateRenderer
covers the part that does not need a browser: it injects the map data into
an HTML template and writes the page to disk for an external capturer.
"""

import json
from pathlib import Path
from typing import Optional, Protocol

from sentry_kernel.models.config import RenderConfig
from sentry_kernel.models.geo import MapData

DATA_PLACEHOLDER = "__MAP_DATA__"


class RenderError(Exception):
    """Raised when a renderer cannot produce an artifact."""
    pass


class MapRenderer(Protocol):
    async def render(self, map_data: MapData, message_id: str) -> str:
        ...


class HtmlTemplateRenderer:
    """Writes map_<message_id>.html with the map data embedded."""

    def __init__(self, config: Optional[RenderConfig] = None):
        self.config = config or RenderConfig()

    def build_html(self, map_data: MapData) -> str:
        try:
            template = Path(self.config.template_path).read_text(encoding="utf-8")
        except OSError as exc:
            raise RenderError(
                f"Cannot read template {self.config.template_path}: {exc}"
            ) from exc
        data = json.dumps(map_data.model_dump(mode="json"))
        return template.replace(DATA_PLACEHOLDER, data)

    async def render(self, map_data: MapData, message_id: str) -> str:
        html = self.build_html(map_data)
        output = Path(self.config.output_dir) / f"map_{message_id}.html"
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(html, encoding="utf-8")
        except OSError as exc:
            raise RenderError(f"Cannot write {output}: {exc}") from exc
        return str(output)
