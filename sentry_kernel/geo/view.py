"""
View computation — frames a camera around the operationally relevant area.

Algorithm:
  1. Split endpoints into specific ("core") and all points. Regional
     descriptions (oblasts, compass words) are too coarse to frame on.
  2. Use core points when there are at least two, otherwise all points.
  3. Drop points farther than max_distance_km from the centre of their
     bounding box; if nothing survives keep the first point alone.
  4. Pad the surviving box: fixed padding for point-like spans, a fraction
     of the span otherwise.
"""

import math
import re
from typing import List, Optional, Sequence, Tuple

from sentry_kernel.models.config import ViewConfig
from sentry_kernel.models.geo import Bounds, Coordinates, MapView, PlottableObject

EARTH_RADIUS_KM = 6371.0

_REGIONAL = re.compile(
    r"oblast|region|western|southern|northern|eastern|west|south|north|east|district",
    re.IGNORECASE,
)


def is_regional(place: Optional[str]) -> bool:
    """True for administrative or compass-qualified descriptions."""
    return bool(place) and _REGIONAL.search(place) is not None


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance in kilometres."""
    d_lat = math.radians(b.lat - a.lat)
    d_lon = math.radians(b.lon - a.lon)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def _extent(points: Sequence[Coordinates]) -> Tuple[float, float, float, float]:
    """(min_lon, max_lon, min_lat, max_lat)"""
    lons = [p.lon for p in points]
    lats = [p.lat for p in points]
    return min(lons), max(lons), min(lats), max(lats)


def framing_points(objects: Sequence[PlottableObject]) -> List[Coordinates]:
    """Point set the view should frame, before outlier filtering."""
    core: List[Coordinates] = []
    every: List[Coordinates] = []
    for obj in objects:
        every.extend([obj.origin_coords, obj.destination_coords])
        if not is_regional(obj.origin):
            core.append(obj.origin_coords)
        # Static and heading-only objects would count the same point twice
        if not is_regional(obj.destination) and obj.destination != obj.origin:
            core.append(obj.destination_coords)
    return core if len(core) > 1 else every


class ViewComputer:
    """Computes a padded bounding-box view for a set of plottable objects."""

    def __init__(self, config: Optional[ViewConfig] = None):
        self.config = config or ViewConfig()

    def default_view(self) -> MapView:
        return MapView(
            center=self.config.default_center,
            zoom=self.config.default_zoom,
            default_center=self.config.default_center,
            default_zoom=self.config.default_zoom,
        )

    def filter_outliers(self, points: Sequence[Coordinates]) -> List[Coordinates]:
        min_lon, max_lon, min_lat, max_lat = _extent(points)
        centre = Coordinates(lat=(min_lat + max_lat) / 2, lon=(min_lon + max_lon) / 2)
        kept = [
            p for p in points
            if haversine_km(centre, p) < self.config.max_distance_km
        ]
        return kept or [points[0]]

    def pad(self, min_lon: float, max_lon: float, min_lat: float, max_lat: float) -> Bounds:
        cfg = self.config

        def padding(span: float) -> float:
            return cfg.min_padding_deg if span < cfg.min_span_deg else span * cfg.padding_ratio

        lon_pad = padding(max_lon - min_lon)
        lat_pad = padding(max_lat - min_lat)
        return Bounds(
            west=min_lon - lon_pad,
            south=min_lat - lat_pad,
            east=max_lon + lon_pad,
            north=max_lat + lat_pad,
        )

    def compute_view(self, objects: Sequence[PlottableObject]) -> MapView:
        view = self.default_view()
        if not objects:
            return view

        points = self.filter_outliers(framing_points(objects))
        view.bounds = self.pad(*_extent(points))
        return view
