"""
Service assembly — builds every kernel component from one SentryConfig.

The messaging-platform client is not part of the kernel: it calls
`processor.process()` for each report and `processor.handle_expiry()` for
each notice drained from `state_manager.notifications`.
"""

from typing import Optional

from fastapi import FastAPI

from sentry_kernel.api.app import create_app
from sentry_kernel.audit.store import AuditStore
from sentry_kernel.classification.parser import EventClassifier
from sentry_kernel.geo.geocoder import Geocoder, GeocodingProvider, MapTilerProvider
from sentry_kernel.geo.view import ViewComputer
from sentry_kernel.models.config import SentryConfig, configure_logging
from sentry_kernel.reconciler.expiry import Scheduler
from sentry_kernel.reconciler.state_manager import StateManager
from sentry_kernel.rendering.pipeline import MapPipeline
from sentry_kernel.rendering.renderer import HtmlTemplateRenderer, MapRenderer
from sentry_kernel.reports.processor import ReportProcessor
from sentry_kernel.world_model.store import WorldStateStore


class SentryService:
    """Owns one instance of every kernel component."""

    def __init__(
        self,
        config: SentryConfig,
        classifier: EventClassifier,
        provider: Optional[GeocodingProvider] = None,
        renderer: Optional[MapRenderer] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.config = config
        self.world_store = WorldStateStore(config.db_path)
        self.audit = AuditStore(config.db_path)
        self.state_manager = StateManager(
            self.world_store, config.state, scheduler=scheduler
        )
        self.view_computer = ViewComputer(config.view)
        self.geocoder = Geocoder(
            provider or MapTilerProvider(config.geocoder),
            config.geocoder,
            audit=self.audit,
        )
        self.pipeline = MapPipeline(
            self.geocoder,
            renderer or HtmlTemplateRenderer(config.render),
            view_computer=self.view_computer,
            render_config=config.render,
            audit=self.audit,
        )
        self.processor = ReportProcessor(
            self.state_manager, classifier, self.pipeline, audit=self.audit
        )

    @classmethod
    def from_env(
        cls, classifier: EventClassifier, env_file: Optional[str] = None, **kwargs
    ) -> "SentryService":
        """Process entry point: load config, set up logging, build the service."""
        config = SentryConfig.from_env(env_file)
        configure_logging(config.log_level)
        return cls(config, classifier, **kwargs)

    def create_api(self) -> FastAPI:
        return create_app(self.state_manager, self.audit, self.view_computer)

    def close(self) -> None:
        self.state_manager.close()
        self.world_store.close()
        self.audit.close()
