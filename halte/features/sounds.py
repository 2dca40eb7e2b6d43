"""User-authored ambient sounds, stored per id in a keyed namespace."""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass
from typing import Any

from halte import namespaces
from halte.store.cache import KeyedContentCache
from halte.store.cell import Codec
from halte.store.db import PersistentStore

__all__ = ["CustomSound", "CustomSoundLibrary"]

logger = logging.getLogger(__name__)


@dataclass
class CustomSound:
    id:   str
    name: str
    url:  str
    icon: str = "🎵"

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "CustomSound":
        return cls(id=d["id"], name=d["name"], url=d["url"], icon=d.get("icon", "🎵"))


_SOUND_CODEC: Codec[CustomSound] = Codec(encode=asdict, decode=CustomSound.from_dict)


class CustomSoundLibrary:
    def __init__(self, store: PersistentStore) -> None:
        self._entries: KeyedContentCache[CustomSound] = KeyedContentCache(
            store, namespaces.CUSTOM_SOUNDS, codec=_SOUND_CODEC
        )

    def sounds(self) -> list[CustomSound]:
        return sorted((e.value for e in self._entries), key=lambda s: s.name.casefold())

    def get(self, sound_id: str) -> CustomSound:
        sound = self._entries.get(sound_id)
        if sound is None:
            raise KeyError(sound_id)
        return sound

    def add(self, name: str, url: str, icon: str = "🎵") -> CustomSound:
        name, url = name.strip(), url.strip()
        if not name or not url:
            raise ValueError("A custom sound needs a name and a URL")
        sound = CustomSound(id=uuid.uuid4().hex, name=name, url=url, icon=icon)
        self._entries.put(sound.id, sound)
        logger.info("Added custom sound %s (%r)", sound.id, name)
        return sound

    def rename(self, sound_id: str, name: str) -> CustomSound:
        if not name.strip():
            raise ValueError("Sound name must not be empty")
        sound = self.get(sound_id)
        sound.name = name.strip()
        self._entries.put(sound_id, sound)
        return sound

    def remove(self, sound_id: str) -> bool:
        return self._entries.remove(sound_id)
