"""
CLI entry point for halte.

Usage
─────
  # Back up everything to ./halte-backup-YYYY-MM-DD.json, then restore it
  halte export --output ./backups/
  halte import ./backups/halte-backup-2025-01-15.json

  # Delete all local data
  halte wipe --yes

  # Choose what the oracle may see
  halte permissions list
  halte permissions allow journal dream-journal
  halte permissions deny --all

  # Preview the context block a feature would send
  halte context --module journal --module thought-court --theme soleil

  # Catalog lookup (anthropic unless --backend or $HALTE_BACKEND says otherwise)
  halte catalog herbarium Lavande --backend openai
  halte catalog herbarium Lavande --backend stub --offline
  halte cache list herbarium
  halte cache remove herbarium Lavande

Subcommands are implemented as standalone functions (cmd_export, cmd_import,
cmd_wipe, cmd_permissions, cmd_context, cmd_catalog, cmd_cache_list,
cmd_cache_remove) so they can be unit-tested without invoking argparse.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from halte.app import default_db_path
from halte.context.accessors import default_accessors
from halte.context.aggregator import ContextAggregator
from halte.context.models import SHARABLE_MODULES, ContextResult
from halte.context.permissions import PermissionRegistry
from halte.exceptions import GatewayError, HalteBaseError
from halte.features.catalog import CATALOGS, Catalog
from halte.gateway.backends import BACKENDS, GatewayConfig
from halte.gateway.llm_gateway import GenerationGateway
from halte.store.backup import read_backup, write_backup
from halte.store.cache import KeyedContentCache
from halte.store.db import PersistentStore

__all__ = [
    "build_parser",
    "cmd_export",
    "cmd_import",
    "cmd_wipe",
    "cmd_permissions",
    "cmd_context",
    "cmd_catalog",
    "cmd_cache_list",
    "cmd_cache_remove",
    "main",
]

logger = logging.getLogger(__name__)


# ── Argument parser ────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    """
    Build and return the top-level argument parser.

    Subcommands: export | import | wipe | permissions | context | catalog | cache
    """
    parser = argparse.ArgumentParser(
        prog="halte",
        description="Local-first wellness data store with permissioned AI generation",
    )
    parser.add_argument(
        "--db",
        default=None,
        metavar="PATH",
        help="SQLite database path (default: $HALTE_DB or ~/.halte/halte.db)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable verbose debug logging",
    )

    sub = parser.add_subparsers(dest="subcommand")

    # ── export / import / wipe ────────────────────────────────────────────
    exp = sub.add_parser("export", help="Write a full backup file")
    exp.add_argument(
        "--output",
        default=None,
        metavar="DIR",
        help="Output directory (default: current directory)",
    )

    imp = sub.add_parser("import", help="Restore a backup file (all or nothing)")
    imp.add_argument("file", metavar="FILE", help="Backup file written by 'export'")

    wipe = sub.add_parser("wipe", help="Delete every stored namespace")
    wipe.add_argument(
        "--yes",
        action="store_true",
        default=False,
        help="Confirm the deletion",
    )

    # ── permissions ───────────────────────────────────────────────────────
    perm = sub.add_parser("permissions", help="Show or change AI context sharing")
    perm.add_argument("action", choices=["list", "allow", "deny"])
    perm.add_argument("modules", nargs="*", metavar="MODULE", help="Module ids")
    perm.add_argument(
        "--all",
        action="store_true",
        default=False,
        help="Apply to every sharable module",
    )

    # ── context ───────────────────────────────────────────────────────────
    ctx = sub.add_parser("context", help="Preview the context block sent to the oracle")
    ctx.add_argument(
        "--module",
        action="append",
        default=None,
        dest="modules",
        metavar="MODULE",
        help="Candidate module (repeatable; default: all sharable modules)",
    )
    ctx.add_argument("--theme", default=None, metavar="THEME", help="Keep entries mentioning THEME")

    # ── catalog ───────────────────────────────────────────────────────────
    cat = sub.add_parser("catalog", help="Look up an item, generating it on first request")
    cat.add_argument("name", choices=sorted(CATALOGS))
    cat.add_argument("item", metavar="ITEM")
    cat.add_argument(
        "--backend",
        choices=list(BACKENDS),
        default=None,
        help="Oracle backend (default: $HALTE_BACKEND or anthropic)",
    )
    cat.add_argument(
        "--offline",
        action="store_true",
        default=False,
        help="Allow the stub backend to cache placeholder records",
    )
    cat.add_argument(
        "--model",
        default="",
        metavar="MODEL",
        help="Model override (default: backend-specific default)",
    )
    cat.add_argument(
        "--api-key",
        default="",
        dest="api_key",
        metavar="KEY",
        help="API key (or use ANTHROPIC_API_KEY / OPENAI_API_KEY env var)",
    )

    # ── cache ─────────────────────────────────────────────────────────────
    cache = sub.add_parser("cache", help="Inspect or prune a catalog cache")
    cache_sub = cache.add_subparsers(dest="cache_action")
    cache_list = cache_sub.add_parser("list", help="List cached items")
    cache_list.add_argument("name", choices=sorted(CATALOGS))
    cache_rm = cache_sub.add_parser("remove", help="Forget one cached item")
    cache_rm.add_argument("name", choices=sorted(CATALOGS))
    cache_rm.add_argument("item", metavar="ITEM")

    return parser


# ── Helpers ───────────────────────────────────────────────────────────────────


def _catalog_cache(store: PersistentStore, name: str) -> KeyedContentCache:
    if name not in CATALOGS:
        raise ValueError(f"Unknown catalog: {name!r}. Choose from: {sorted(CATALOGS)}")
    return KeyedContentCache(store, CATALOGS[name].namespace_key)


def _gateway_config(backend: Optional[str], model: str, api_key: str) -> GatewayConfig:
    config = GatewayConfig.from_env()
    if backend:
        config.backend = backend
    if model:
        config.model = model
    if api_key:
        config.api_key = api_key
    return config


# ── Command implementations ───────────────────────────────────────────────────


def cmd_export(store: PersistentStore, output_dir: Optional[str]) -> Path:
    """Export every namespace to a backup file and return its path."""
    bundle = store.export_all()
    out_path = write_backup(bundle, output_dir)
    print(f"Exported {len(bundle.namespaces)} namespace(s) → {out_path}")
    return out_path


def cmd_import(store: PersistentStore, path: str) -> int:
    """Restore a backup file. Nothing is written if the file is rejected."""
    count = store.import_all(read_backup(path))
    print(f"Imported {count} namespace(s) from {path}")
    return count


def cmd_wipe(store: PersistentStore, confirmed: bool) -> int:
    if not confirmed:
        raise ValueError("Refusing to delete all data without --yes")
    count = store.wipe_all()
    print(f"Deleted {count} namespace(s).")
    return count


def cmd_permissions(
    registry: PermissionRegistry,
    action: str,
    modules: Sequence[str],
    all_modules: bool = False,
) -> dict[str, bool]:
    """List, allow or deny sharing; returns the resulting permission map."""
    if action in ("allow", "deny"):
        targets = list(SHARABLE_MODULES) if all_modules else list(modules)
        if not targets:
            raise ValueError(f"Name at least one module to {action}, or pass --all")
        unknown = [m for m in targets if m not in SHARABLE_MODULES]
        if unknown:
            raise ValueError(f"Unknown module(s): {', '.join(unknown)}")
        registry.set_allowed_for_set(targets, action == "allow")

    state = registry.as_dict()
    for module_id in SHARABLE_MODULES:
        mark = "shared" if state.get(module_id) else "private"
        print(f"  {module_id:<22} {mark}")
    return state


def cmd_context(
    aggregator: ContextAggregator,
    modules: Optional[Sequence[str]],
    theme: Optional[str],
) -> ContextResult:
    result = aggregator.build_context(modules or SHARABLE_MODULES, theme=theme)
    print(result.text)
    return result


def cmd_catalog(
    store: PersistentStore,
    name: str,
    item: str,
    config: Optional[GatewayConfig] = None,
    gateway: Optional[GenerationGateway] = None,
    offline: bool = False,
) -> dict[str, Any]:
    """
    Look *item* up in catalog *name*; generates through the oracle on a miss.

    Cached entries are never regenerated, so placeholder stub records are
    only written when *offline* is set explicitly.
    """
    gateway = gateway or GenerationGateway(config or GatewayConfig.from_env())
    if gateway.is_stub and not offline:
        raise ValueError(
            "The stub backend only produces placeholder content and would cache it "
            "permanently. Choose --backend anthropic|openai, or pass --offline."
        )
    catalog = Catalog.named(name, store, gateway)
    result = asyncio.run(catalog.lookup(item))
    if not result.ok:
        raise GatewayError(f"Generation failed: {result}")
    print(json.dumps(result.value, ensure_ascii=False, indent=2))
    return result.value


def cmd_cache_list(store: PersistentStore, name: str) -> list[str]:
    cache = _catalog_cache(store, name)
    entries = list(cache)
    if not entries:
        print(f"0 cached {name} item(s).")
        return []
    for entry in entries:
        written = entry.written_at.strftime("%Y-%m-%d %H:%M") if entry.written_at else "-"
        print(f"  {entry.item_key:<30} {written}")
    return [e.item_key for e in entries]


def cmd_cache_remove(store: PersistentStore, name: str, item: str) -> bool:
    removed = _catalog_cache(store, name).remove(item)
    print(f"Removed {item!r} from {name}." if removed else f"{item!r} is not cached in {name}.")
    return removed


# ── Entry point ───────────────────────────────────────────────────────────────


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point. Returns exit code."""
    parser = build_parser()
    ns = parser.parse_args(argv)

    level = logging.DEBUG if ns.debug else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")

    if ns.subcommand is None:
        parser.print_help()
        return 0

    try:
        store = PersistentStore(db_path=ns.db or default_db_path())

        if ns.subcommand == "export":
            cmd_export(store, output_dir=ns.output)
        elif ns.subcommand == "import":
            cmd_import(store, ns.file)
        elif ns.subcommand == "wipe":
            cmd_wipe(store, confirmed=ns.yes)
        elif ns.subcommand == "permissions":
            cmd_permissions(PermissionRegistry(store), ns.action, ns.modules, all_modules=ns.all)
        elif ns.subcommand == "context":
            registry = PermissionRegistry(store)
            aggregator = ContextAggregator(registry, default_accessors(store))
            cmd_context(aggregator, ns.modules, ns.theme)
        elif ns.subcommand == "catalog":
            config = _gateway_config(ns.backend, ns.model, ns.api_key)
            cmd_catalog(store, ns.name, ns.item, config=config, offline=ns.offline)
        elif ns.subcommand == "cache":
            if ns.cache_action == "list":
                cmd_cache_list(store, ns.name)
            elif ns.cache_action == "remove":
                cmd_cache_remove(store, ns.name, ns.item)
            else:
                parser.print_help()
        else:
            parser.print_help()
    except (HalteBaseError, ValueError, ImportError) as exc:
        logger.debug("%s failed", ns.subcommand, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
