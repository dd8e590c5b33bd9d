"""Configuration models for the state owner and the map pipeline."""

import logging
import os
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field

log = logging.getLogger(__name__)


class StateConfig(BaseModel):
    """Configuration for the StateManager."""

    idle_timeout_seconds: float = Field(gt=0, default=60 * 60)


class ViewConfig(BaseModel):
    """Bounding-box framing parameters (degrees unless noted)."""

    max_distance_km: float = 800.0          # Outlier cut-off from the centroid
    min_span_deg: float = 0.5               # Below this a dimension is point-like
    min_padding_deg: float = 1.5
    padding_ratio: float = 0.3
    default_center: Tuple[float, float] = (31.16558, 48.379433)   # (lon, lat)
    default_zoom: float = 5


class GeocoderConfig(BaseModel):
    base_url: str = "https://api.maptiler.com"
    api_key: Optional[str] = None
    languages: List[str] = ["en", "uk", "ru"]
    countries: List[str] = ["ua", "ru"]
    timeout_seconds: float = 10.0


class RenderConfig(BaseModel):
    """Styling handed through to the renderer."""

    output_dir: str = "history/screenshots"
    template_path: str = "template.html"
    width: int = 1280
    height: int = 720
    map_pitch: float = 30
    map_bearing: float = 0
    model_scale_factor: float = 8000
    model_altitude: float = 7500
    show_map_labels: bool = False
    model_info: Dict[str, dict] = {
        "shahed": {"path": "/assets/shahed.gltf", "rotation": 90},
        "rocket": {"path": "/assets/rocket.gltf", "rotation": 90},
        "default": {"path": "/assets/shahed.gltf", "rotation": 90},
    }


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("Config: %s=%r is not a number, using %s", name, raw, default)
        return default


class SentryConfig(BaseModel):
    """Top-level configuration."""

    db_path: str = "history/db/sentry.sqlite"
    log_level: str = "INFO"
    state: StateConfig = StateConfig()
    view: ViewConfig = ViewConfig()
    geocoder: GeocoderConfig = GeocoderConfig()
    render: RenderConfig = RenderConfig()

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "SentryConfig":
        """Build a config from the process environment (and a .env file)."""
        load_dotenv(env_file)

        defaults = cls()
        api_key = os.getenv("MAPTILER_KEY")
        if not api_key:
            log.warning("Config: MAPTILER_KEY is missing, geocoding will fail")

        return cls(
            db_path=os.getenv("SENTRY_DB_PATH", defaults.db_path),
            log_level=os.getenv("SENTRY_LOG_LEVEL", defaults.log_level).upper(),
            state=StateConfig(
                idle_timeout_seconds=_env_float(
                    "SENTRY_STATE_RESET_TIMEOUT",
                    defaults.state.idle_timeout_seconds,
                ),
            ),
            geocoder=GeocoderConfig(api_key=api_key or None),
            render=RenderConfig(
                output_dir=os.getenv(
                    "SENTRY_SCREENSHOTS_PATH", defaults.render.output_dir
                ),
                template_path=os.getenv(
                    "SENTRY_TEMPLATE_PATH", defaults.render.template_path
                ),
            ),
        )


def configure_logging(level: str = "INFO") -> None:
    """Process-wide logging setup. Call once at startup."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
