"""
Direction resolution — turns a heading token into a destination point.

Cardinal words map to a fixed degree offset from the origin. The offsets
are a flat-earth approximation tuned for Ukraine-scale distances and are
not geodesically meaningful far from there.
"""

import logging
import re
from typing import Dict, Optional, Tuple

from sentry_kernel.geo.geocoder import GeocodingPass
from sentry_kernel.models.geo import Coordinates

log = logging.getLogger(__name__)

_PRIMARY = 1.5
_DIAGONAL = 1.06

# (dlat, dlon)
CARDINAL_OFFSETS: Dict[str, Tuple[float, float]] = {
    "north": (_PRIMARY, 0.0),
    "n": (_PRIMARY, 0.0),
    "south": (-_PRIMARY, 0.0),
    "s": (-_PRIMARY, 0.0),
    "east": (0.0, _PRIMARY),
    "e": (0.0, _PRIMARY),
    "west": (0.0, -_PRIMARY),
    "w": (0.0, -_PRIMARY),
    "north-east": (_DIAGONAL, _DIAGONAL),
    "northeast": (_DIAGONAL, _DIAGONAL),
    "ne": (_DIAGONAL, _DIAGONAL),
    "north-west": (_DIAGONAL, -_DIAGONAL),
    "northwest": (_DIAGONAL, -_DIAGONAL),
    "nw": (_DIAGONAL, -_DIAGONAL),
    "south-east": (-_DIAGONAL, _DIAGONAL),
    "southeast": (-_DIAGONAL, _DIAGONAL),
    "se": (-_DIAGONAL, _DIAGONAL),
    "south-west": (-_DIAGONAL, -_DIAGONAL),
    "southwest": (-_DIAGONAL, -_DIAGONAL),
    "sw": (-_DIAGONAL, -_DIAGONAL),
}

_STRIP = re.compile(r"[\s,.]")


def normalize_heading(text: str) -> str:
    """'Towards North-East.' -> 'north-east'"""
    return _STRIP.sub("", text.lower()).replace("towards", "")


def cardinal_offset(heading: str) -> Optional[Tuple[float, float]]:
    return CARDINAL_OFFSETS.get(normalize_heading(heading))


class DirectionResolver:
    """Resolves (origin, heading) into a destination coordinate."""

    async def resolve(
        self,
        origin: Coordinates,
        heading: str,
        geocoding: GeocodingPass,
    ) -> Coordinates:
        offset = cardinal_offset(heading)
        if offset is not None:
            dlat, dlon = offset
            return Coordinates(lat=origin.lat + dlat, lon=origin.lon + dlon)

        target = await geocoding.resolve(heading)
        if target is not None:
            return target

        log.warning("Could not resolve heading %r, object will be static", heading)
        return origin
