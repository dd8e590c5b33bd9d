"""
Geocoder — resolves free-text place names to coordinates.

Lookups are scoped to a rendering pass: `Geocoder.begin_pass()` returns a
GeocodingPass whose cache lives exactly as long as the pass. Inside a pass
each distinct name hits the provider at most once, even when resolved
concurrently (the first caller's task is shared).

Failures never raise: a provider error or an empty candidate list resolves
to None and is recorded in the audit log. There is no retry.
"""

import asyncio
import logging
import sqlite3
from typing import Dict, List, Optional, Protocol, Sequence
from urllib.parse import quote

import httpx

from sentry_kernel.audit.store import AuditStore
from sentry_kernel.models.audit import GeocodingAttempt
from sentry_kernel.models.config import GeocoderConfig
from sentry_kernel.models.geo import Coordinates

log = logging.getLogger(__name__)


class GeocodingError(Exception):
    """Raised by a provider when a lookup cannot be completed."""
    pass


class GeocodingProvider(Protocol):
    async def forward_geocode(
        self,
        name: str,
        languages: Sequence[str],
        countries: Sequence[str],
    ) -> List[Coordinates]:
        ...


class MapTilerProvider:
    """Forward geocoding against the MapTiler geocoding API."""

    def __init__(self, config: GeocoderConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client

    async def forward_geocode(
        self,
        name: str,
        languages: Sequence[str],
        countries: Sequence[str],
    ) -> List[Coordinates]:
        url = f"{self.config.base_url}/geocoding/{quote(name, safe='')}.json"
        params = {
            "key": self.config.api_key or "",
            "language": ",".join(languages),
            "country": ",".join(countries),
            "limit": 1,
        }
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
                    response = await client.get(url, params=params)
            response.raise_for_status()
            features = response.json().get("features", [])
        except (httpx.HTTPError, ValueError) as exc:
            raise GeocodingError(f"MapTiler lookup failed for {name!r}: {exc}") from exc

        candidates = []
        for feature in features:
            center = feature.get("center") or []
            if len(center) >= 2:
                candidates.append(Coordinates(lon=center[0], lat=center[1]))
        return candidates


class GeocodingPass:
    """Pass-scoped, single-flight name resolution."""

    def __init__(
        self,
        provider: GeocodingProvider,
        config: GeocoderConfig,
        message_id: Optional[str] = None,
        audit: Optional[AuditStore] = None,
    ):
        self.provider = provider
        self.config = config
        self.message_id = message_id
        self.audit = audit
        self._tasks: Dict[str, "asyncio.Task[Optional[Coordinates]]"] = {}

    async def resolve(self, name: Optional[str]) -> Optional[Coordinates]:
        if not name:
            return None
        task = self._tasks.get(name)
        if task is None:
            task = asyncio.ensure_future(self._lookup(name))
            self._tasks[name] = task
        return await task

    @property
    def lookups(self) -> int:
        """Distinct names sent to the provider in this pass."""
        return len(self._tasks)

    async def _lookup(self, name: str) -> Optional[Coordinates]:
        coords = None
        try:
            candidates = await self.provider.forward_geocode(
                name, self.config.languages, self.config.countries
            )
            if candidates:
                coords = candidates[0]
            else:
                log.warning("Failed to geocode: %r", name)
        except Exception as exc:
            log.error("Error geocoding %r: %s", name, exc)

        self._record(name, coords)
        return coords

    def _record(self, name: str, coords: Optional[Coordinates]) -> None:
        if self.audit is None or self.message_id is None:
            return
        try:
            self.audit.log_geocoding_attempt(GeocodingAttempt(
                message_id=self.message_id,
                location_name=name,
                latitude=coords.lat if coords else None,
                longitude=coords.lon if coords else None,
                success=coords is not None,
            ))
        except sqlite3.Error as exc:
            log.error("Failed to log geocoding attempt for %r: %s", name, exc)


class Geocoder:
    """Factory for geocoding passes sharing one provider and audit log."""

    def __init__(
        self,
        provider: GeocodingProvider,
        config: Optional[GeocoderConfig] = None,
        audit: Optional[AuditStore] = None,
    ):
        self.provider = provider
        self.config = config or GeocoderConfig()
        self.audit = audit

    def begin_pass(self, message_id: Optional[str] = None) -> GeocodingPass:
        return GeocodingPass(self.provider, self.config, message_id, self.audit)
