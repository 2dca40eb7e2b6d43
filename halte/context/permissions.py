"""
PermissionRegistry — per-module consent to share data with the oracle.

Deny by default: a module missing from the map is not shared.
"""

import logging
from typing import Any, Iterable, Union

from halte.store.cell import Codec, StateCell
from halte.store.db import PersistentStore

from .models import SHARABLE_MODULES, ModuleId, module_key

__all__ = ["PermissionRegistry", "PERMISSIONS_NAMESPACE"]

logger = logging.getLogger(__name__)

PERMISSIONS_NAMESPACE = "shareContextWithAI"


def _decode(payload: Any) -> dict[str, bool]:
    # Older settings stored a single on/off switch for every module.
    if isinstance(payload, bool):
        return {m: payload for m in SHARABLE_MODULES}
    if not isinstance(payload, dict):
        raise TypeError(f"Expected a permission map, got {type(payload).__name__}")
    return {str(k): v for k, v in payload.items() if isinstance(v, bool)}


_PERMISSION_CODEC: Codec[dict[str, bool]] = Codec(encode=dict, decode=_decode)


class PermissionRegistry:
    """
    Read/mutate view over the persisted PermissionMap.

    Usage::

        registry = PermissionRegistry(store)
        registry.set_allowed_for_set(["journal", "values"], True)
        registry.is_allowed("journal")   # True
        registry.is_allowed("dreams")    # False (absent)
    """

    def __init__(self, store: PersistentStore) -> None:
        self._cell = StateCell(store, PERMISSIONS_NAMESPACE, {}, codec=_PERMISSION_CODEC)

    def is_allowed(self, module_id: Union[str, ModuleId]) -> bool:
        return self._cell.value.get(module_key(module_id), False) is True

    def set_allowed(self, module_id: Union[str, ModuleId], allowed: bool) -> None:
        key = module_key(module_id)
        self._cell.update(lambda perms: {**perms, key: bool(allowed)})
        logger.info("Context sharing for %r set to %s", key, allowed)

    def set_allowed_for_set(
        self,
        module_ids: Iterable[Union[str, ModuleId]],
        allowed: bool,
    ) -> None:
        """Bulk toggle; one write for the whole set."""
        keys = [module_key(m) for m in module_ids]
        self._cell.update(lambda perms: {**perms, **{k: bool(allowed) for k in keys}})
        logger.info("Context sharing for %d module(s) set to %s", len(keys), allowed)

    def allowed_modules(self) -> list[str]:
        """Module ids currently allowed, in stored order."""
        return [k for k, v in self._cell.value.items() if v]

    def as_dict(self) -> dict[str, bool]:
        """Every sharable module with its effective flag, plus any extra stored keys."""
        perms = self._cell.value
        merged = {m: perms.get(m, False) for m in SHARABLE_MODULES}
        merged.update({k: v for k, v in perms.items() if k not in merged})
        return merged

    def reload(self) -> None:
        self._cell.reload()
