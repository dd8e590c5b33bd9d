"""Geospatial records produced per rendering pass."""

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

from sentry_kernel.models.world import ActiveObjectGroup


class Coordinates(BaseModel):
    lat: float
    lon: float


class PlottableObject(ActiveObjectGroup):
    """An active group whose endpoints both resolved to coordinates."""

    origin_coords: Coordinates
    destination_coords: Coordinates


class Bounds(BaseModel):
    west: float
    south: float
    east: float
    north: float

    @property
    def width(self) -> float:
        return self.east - self.west

    @property
    def height(self) -> float:
        return self.north - self.south


class MapView(BaseModel):
    """Camera framing. Bounds take precedence; center/zoom are the fallback."""

    bounds: Optional[Bounds] = None
    center: Tuple[float, float]             # (lon, lat)
    zoom: float
    default_center: Tuple[float, float]
    default_zoom: float


class MapData(BaseModel):
    """Everything the external renderer needs to draw one map."""

    objects: List[PlottableObject]
    view: MapView
    model_paths: Dict[str, dict]
    map_pitch: float
    map_bearing: float
    width: int                              # Viewport in pixels
    height: int
    model_scale_factor: float
    model_altitude: float
    show_map_labels: bool


class MapResult(BaseModel):
    """Outcome of one successful rendering pass."""

    message_id: str
    artifact: str
    objects: List[PlottableObject]
    view: MapView
