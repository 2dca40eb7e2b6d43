"""
Reference catalogs — generated, cached info records for named items.

Every catalog is one KeyedContentCache namespace plus a prompt and a
response schema. Looking up "Lavande" in the herbarium calls the oracle
once; later lookups (and later runs) are served from the store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Optional

from halte import namespaces
from halte.gateway.llm_gateway import GenerationGateway
from halte.gateway.models import GenerationRequest, GenerationResult, Modality
from halte.store.cache import KeyedContentCache
from halte.store.db import PersistentStore

from . import prompts

__all__ = ["CatalogDefinition", "CATALOGS", "Catalog", "RhythmAdvisor"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogDefinition:
    """Static description of one catalog."""
    name:          str
    namespace_key: str
    schema:        dict[str, Any]
    prompt:        Callable[[str], str]


CATALOGS: dict[str, CatalogDefinition] = {
    "herbarium": CatalogDefinition(
        name="herbarium",
        namespace_key=namespaces.HERBARIUM_CACHE,
        schema=prompts.HERBARIUM_SCHEMA,
        prompt=lambda item: (
            f"Give information about the plant \"{item}\" for a wellness app: a "
            f"short description, its main benefits, two or three simple uses, "
            f"and the important precautions."
        ),
    ),
    "crystals": CatalogDefinition(
        name="crystals",
        namespace_key=namespaces.CRYSTALS_CACHE,
        schema=prompts.CRYSTAL_SCHEMA,
        prompt=lambda item: (
            f"For the crystal \"{item}\", write a short intention, a positive "
            f"affirmation and a brief meditation prompt."
        ),
    ),
    "arboretum": CatalogDefinition(
        name="arboretum",
        namespace_key=namespaces.ARBORETUM_CACHE,
        schema=prompts.TREE_SCHEMA,
        prompt=lambda item: (
            f"Describe the tree \"{item}\": a short description, its symbolism "
            f"in a few keywords, and one reflection question inspired by it."
        ),
    ),
    "bestiary": CatalogDefinition(
        name="bestiary",
        namespace_key=namespaces.BESTIARY_CACHE,
        schema=prompts.ANIMAL_SCHEMA,
        prompt=lambda item: (
            f"Describe the animal \"{item}\" as a totem: a short description, "
            f"its symbolism in a few keywords, and the life lesson it teaches."
        ),
    ),
}


class Catalog:
    """
    Cached lookup for one catalog.

    Usage::
        herbarium = Catalog.named("herbarium", store, gateway)
        result = await herbarium.lookup("Lavande")
    """

    def __init__(
        self,
        definition: CatalogDefinition,
        store: PersistentStore,
        gateway: GenerationGateway,
    ) -> None:
        self.definition = definition
        self.cache: KeyedContentCache[dict[str, Any]] = KeyedContentCache(
            store, definition.namespace_key
        )
        self._gateway = gateway

    @classmethod
    def named(cls, name: str, store: PersistentStore, gateway: GenerationGateway) -> "Catalog":
        try:
            definition = CATALOGS[name]
        except KeyError:
            raise ValueError(
                f"Unknown catalog: {name!r}. Choose from: {sorted(CATALOGS)}"
            ) from None
        return cls(definition, store, gateway)

    async def lookup(self, item: str) -> GenerationResult[dict[str, Any]]:
        """
        Return the info record for *item*, generating it on first request.

        *item* is the cache key as given: case-sensitive and never rewritten.
        """
        if not item.strip():
            raise ValueError("Catalog item name must not be empty")
        if item != item.strip():
            raise ValueError(f"Catalog item name has surrounding whitespace: {item!r}")
        request = GenerationRequest(
            prompt=self.definition.prompt(item),
            response_schema=self.definition.schema,
            modality=Modality.JSON,
        )
        return await self.cache.get_or_generate(
            item, lambda: self._gateway.generate_json(request)
        )


class RhythmAdvisor:
    """Daily advice for a (chronotype, inner season) pair, cached per day."""

    def __init__(self, store: PersistentStore, gateway: GenerationGateway) -> None:
        self.cache: KeyedContentCache[dict[str, Any]] = KeyedContentCache(
            store, namespaces.RHYTHM_ADVICE_CACHE
        )
        self._gateway = gateway

    @staticmethod
    def cache_key(chronotype: str, season: str, day: Optional[date] = None) -> str:
        day = day or date.today()
        return f"{day.isoformat()}:{chronotype}:{season}"

    async def advice_for(
        self,
        chronotype: str,
        season: str,
        day: Optional[date] = None,
    ) -> GenerationResult[dict[str, Any]]:
        if not chronotype.strip() or not season.strip():
            raise ValueError("chronotype and season are required")
        request = GenerationRequest(
            prompt=prompts.rhythm_advice_prompt(chronotype, season),
            response_schema=prompts.RHYTHM_ADVICE_SCHEMA,
            modality=Modality.JSON,
        )
        return await self.cache.get_or_generate(
            self.cache_key(chronotype, season, day),
            lambda: self._gateway.generate_json(request),
        )
