"""
Application wiring — one store, one gateway, one context pipeline.

Everything is constructed here once and passed by reference; no module
holds a global store or client.

Usage::

    app = build_app("~/.halte/halte.db", GatewayConfig.from_env())
    result = await app.catalog("herbarium").lookup("Lavande")
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from halte.context.accessors import default_accessors
from halte.context.aggregator import ContextAggregator
from halte.context.permissions import PermissionRegistry
from halte.features.catalog import Catalog, RhythmAdvisor
from halte.features.journey import GuidedJourneyWorkflow
from halte.features.path import PersonalizedPathWorkflow
from halte.features.review import WeeklyReviewWorkflow
from halte.features.sounds import CustomSoundLibrary
from halte.features.synthesis import ThematicSynthesisWorkflow
from halte.features.wounds import WoundsWorkflow
from halte.gateway.backends import GatewayConfig
from halte.gateway.llm_gateway import GenerationGateway
from halte.store.db import PersistentStore

__all__ = ["DEFAULT_DB_PATH", "App", "build_app", "default_db_path"]

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "~/.halte/halte.db"


def default_db_path() -> str:
    return os.environ.get("HALTE_DB", DEFAULT_DB_PATH)


@dataclass
class App:
    store:      PersistentStore
    gateway:    GenerationGateway
    registry:   PermissionRegistry
    aggregator: ContextAggregator
    _catalogs:  dict[str, Catalog] = field(default_factory=dict, repr=False)
    _rhythm:    Optional[RhythmAdvisor] = field(default=None, repr=False)

    def catalog(self, name: str) -> Catalog:
        # One instance per catalog so concurrent lookups share in-flight calls.
        if name not in self._catalogs:
            self._catalogs[name] = Catalog.named(name, self.store, self.gateway)
        return self._catalogs[name]

    def rhythm(self) -> RhythmAdvisor:
        if self._rhythm is None:
            self._rhythm = RhythmAdvisor(self.store, self.gateway)
        return self._rhythm

    def sounds(self) -> CustomSoundLibrary:
        return CustomSoundLibrary(self.store)

    def journey(self) -> GuidedJourneyWorkflow:
        return GuidedJourneyWorkflow(self.store, self.gateway)

    def path(self) -> PersonalizedPathWorkflow:
        return PersonalizedPathWorkflow(self.store, self.gateway, self.aggregator)

    def weekly_review(self) -> WeeklyReviewWorkflow:
        return WeeklyReviewWorkflow(self.store, self.gateway, self.aggregator)

    def wounds(self) -> WoundsWorkflow:
        return WoundsWorkflow(self.store, self.gateway)

    def synthesis(self) -> ThematicSynthesisWorkflow:
        return ThematicSynthesisWorkflow(self.gateway, self.aggregator)

    def reload(self) -> None:
        """Forget in-memory state after the store was imported into or wiped."""
        self.registry.reload()
        for catalog in self._catalogs.values():
            catalog.cache.reload()
        if self._rhythm is not None:
            self._rhythm.cache.reload()


def build_app(
    db_path: Optional[str] = None,
    config: Optional[GatewayConfig] = None,
    gateway: Optional[GenerationGateway] = None,
) -> App:
    """Open the store at *db_path* and wire the gateway and context pipeline."""
    store = PersistentStore(db_path or default_db_path())
    gateway = gateway or GenerationGateway(config or GatewayConfig.from_env())
    registry = PermissionRegistry(store)
    aggregator = ContextAggregator(registry, default_accessors(store))
    logger.debug("App wired: store=%s model=%s", store.path, gateway.model)
    return App(store=store, gateway=gateway, registry=registry, aggregator=aggregator)
