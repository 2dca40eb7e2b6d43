"""
store — SQLite-backed persistence layer for all application state.

Public API
──────────
PersistentStore    — namespaced JSON store (read, write, export, import, wipe)
StoreRecord        — one live namespace
ExportBundle       — backup snapshot of every namespace
StateCell, Codec   — typed value bound to one namespace
KeyedContentCache  — item key → generated content, at most one generation per key
CacheEntry         — one memoized item
"""

from halte.store.cache import CacheEntry, KeyedContentCache
from halte.store.cell import JSON_CODEC, Codec, StateCell
from halte.store.db import PersistentStore
from halte.store.models import ExportBundle, StoreRecord

__all__ = [
    "PersistentStore",
    "StoreRecord",
    "ExportBundle",
    "StateCell",
    "Codec",
    "JSON_CODEC",
    "KeyedContentCache",
    "CacheEntry",
]
