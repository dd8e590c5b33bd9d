"""
Map Pipeline — from active groups to a rendered map.

  groups → geocode endpoints (concurrently, pass-scoped cache)
         → resolve headings → drop unplottable objects
         → compute view → renderer

A pass that ends with nothing plottable produces no map; that is reported
as None, never as an exception.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from sentry_kernel.audit.store import AuditStore
from sentry_kernel.geo.direction import DirectionResolver
from sentry_kernel.geo.geocoder import Geocoder, GeocodingPass
from sentry_kernel.geo.view import ViewComputer
from sentry_kernel.models.audit import MapGenerationRecord
from sentry_kernel.models.config import RenderConfig
from sentry_kernel.models.geo import MapData, MapResult, PlottableObject
from sentry_kernel.models.world import ActiveObjectGroup
from sentry_kernel.rendering.renderer import MapRenderer, RenderError

log = logging.getLogger(__name__)

NO_COORDINATES = "PROCESS_FAIL"


class MapPipeline:
    """Runs one rendering pass per message."""

    def __init__(
        self,
        geocoder: Geocoder,
        renderer: MapRenderer,
        view_computer: Optional[ViewComputer] = None,
        direction_resolver: Optional[DirectionResolver] = None,
        render_config: Optional[RenderConfig] = None,
        audit: Optional[AuditStore] = None,
    ):
        self.geocoder = geocoder
        self.renderer = renderer
        self.view_computer = view_computer or ViewComputer()
        self.direction_resolver = direction_resolver or DirectionResolver()
        self.render_config = render_config or RenderConfig()
        self.audit = audit

    async def _plot_one(
        self, group: ActiveObjectGroup, geocoding: GeocodingPass
    ) -> Optional[PlottableObject]:
        origin, destination = await asyncio.gather(
            geocoding.resolve(group.origin),
            geocoding.resolve(group.destination),
        )
        if group.heading and origin is not None:
            destination = await self.direction_resolver.resolve(
                origin, group.heading, geocoding
            )
        if origin is None or destination is None:
            return None
        return PlottableObject(
            **group.model_dump(),
            origin_coords=origin,
            destination_coords=destination,
        )

    async def plot(
        self, groups: Sequence[ActiveObjectGroup], message_id: Optional[str] = None
    ) -> List[PlottableObject]:
        """Resolve groups to plottable objects; unresolvable ones are dropped."""
        geocoding = self.geocoder.begin_pass(message_id)
        resolved = await asyncio.gather(*(self._plot_one(g, geocoding) for g in groups))
        log.debug("Geocoded %d distinct names for %d groups", geocoding.lookups, len(groups))
        return [obj for obj in resolved if obj is not None]

    def build_map_data(self, objects: List[PlottableObject]) -> MapData:
        cfg = self.render_config
        return MapData(
            objects=objects,
            view=self.view_computer.compute_view(objects),
            model_paths=cfg.model_info,
            map_pitch=cfg.map_pitch,
            map_bearing=cfg.map_bearing,
            width=cfg.width,
            height=cfg.height,
            model_scale_factor=cfg.model_scale_factor,
            model_altitude=cfg.model_altitude,
            show_map_labels=cfg.show_map_labels,
        )

    async def generate(
        self, groups: Sequence[ActiveObjectGroup], message_id: str
    ) -> Optional[MapResult]:
        """Render the map for `groups`. None when there is nothing to draw."""
        if not groups:
            log.info("No active groups, not generating a map")
            return None

        objects = await self.plot(groups, message_id)
        if not objects:
            log.error("No plottable objects for message %s, aborting map", message_id)
            self._log_generation(
                message_id, NO_COORDINATES, [], {"error": "No valid coordinates"}
            )
            return None
        if len(objects) < len(groups):
            log.warning(
                "Only %d of %d groups could be plotted", len(objects), len(groups)
            )

        map_data = self.build_map_data(objects)
        view_parameters = map_data.view.model_dump(mode="json")
        plotted = [o.model_dump(mode="json") for o in objects]
        try:
            artifact = await self.renderer.render(map_data, message_id)
        except RenderError as exc:
            log.error("Renderer failed for message %s: %s", message_id, exc)
            self._log_generation(
                message_id, f"RENDER_ERROR: {exc}", plotted, view_parameters
            )
            return None

        log.info("Map for message %s written to %s", message_id, artifact)
        self._log_generation(message_id, artifact, plotted, view_parameters)
        return MapResult(
            message_id=message_id,
            artifact=artifact,
            objects=objects,
            view=map_data.view,
        )

    def _log_generation(
        self, message_id: str, artifact: str, objects: List[dict], view: dict
    ) -> None:
        if self.audit is None:
            return
        self.audit.log_map_generation(MapGenerationRecord(
            message_id=message_id,
            artifact=artifact,
            plottable_objects=objects,
            view_parameters=view,
        ))
