"""
Runtime Assembly

Builds the engine objects for one process from an AppConfig. Nothing here is
global: callers own the returned Runtime and may build as many as they need.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Sequence

from blockpress.blocks.catalog import BlockCatalog
from blockpress.composition.resolver import CompositionResolver
from blockpress.composition.session import EditSession
from blockpress.core.config.models import AppConfig, StorageConfig
from blockpress.core.plugins.hooks import HookPipeline
from blockpress.core.plugins.loader import (
    LoadSummary,
    PluginCandidate,
    PluginLoader,
    builtin_candidates,
    entry_point_candidates,
    external_candidates,
)
from blockpress.core.plugins.registry import PluginRegistry
from blockpress.core.state.sqlite_store import SQLiteRevisionStore
from blockpress.core.state.store import InMemoryRevisionStore, RevisionStore
from blockpress.plugins.builtin import BUILTIN_PLUGINS
from blockpress.service import DocumentService

logger = logging.getLogger("blockpress.runtime")


@dataclass
class Runtime:
    """Everything needed to serve document operations."""
    config: AppConfig
    catalog: BlockCatalog
    pipeline: HookPipeline
    registry: PluginRegistry
    loader_summary: LoadSummary
    store: RevisionStore
    resolver: CompositionResolver
    service: DocumentService

    def open_session(self, document_id: str) -> EditSession:
        return EditSession(document_id, self.resolver, self.store)

    def close(self) -> None:
        self.store.close()


def create_store(storage: StorageConfig) -> RevisionStore:
    """Create the revision store selected by the storage configuration."""
    if storage.backend == "memory":
        return InMemoryRevisionStore(
            conflict_policy=storage.conflict_policy,
            queue_timeout=storage.queue_timeout,
        )
    return SQLiteRevisionStore(
        db_path=storage.db_path,
        conflict_policy=storage.conflict_policy,
        queue_timeout=storage.queue_timeout,
    )


def activation_rows(config: AppConfig, store: RevisionStore) -> List[Any]:
    """
    Collect external plugin activation rows from the configured source.

    With ``both``, configured rows come first and stored rows only add
    plugins the configuration does not name.
    """
    source = config.plugins.activation_source
    rows: List[Any] = []

    if source in ("config", "both"):
        rows.extend(config.plugins.external)
    if source in ("store", "both"):
        configured = {row.name for row in rows}
        rows.extend(row for row in store.list_plugin_activations() if row.name not in configured)

    return rows


def build_runtime(
    config: Optional[AppConfig] = None,
    store: Optional[RevisionStore] = None,
    builtin_plugins: Optional[Mapping[str, Callable[[], Any]]] = None,
    extra_candidates: Sequence[PluginCandidate] = ()
) -> Runtime:
    """
    Assemble catalog, pipeline, registry, store, resolver and service.

    Args:
        config: Application configuration (defaults when omitted)
        store: Revision store to use instead of the configured one
        builtin_plugins: Built-in plugin factories by name
        extra_candidates: Additional external candidates, loaded last

    Returns:
        The assembled runtime; plugin load failures are reported in
        ``loader_summary`` rather than raised
    """
    config = config or AppConfig()
    store = store if store is not None else create_store(config.storage)

    catalog = BlockCatalog()
    pipeline = HookPipeline(max_failures=config.max_hook_failures)
    registry = PluginRegistry(catalog=catalog, pipeline=pipeline)

    builtin = builtin_candidates(
        config.plugins.builtin,
        BUILTIN_PLUGINS if builtin_plugins is None else builtin_plugins,
    )
    external = external_candidates(activation_rows(config, store))
    if config.plugins.discover_entry_points:
        external.extend(entry_point_candidates(config.plugins.entry_point_group))
    external.extend(extra_candidates)

    loader = PluginLoader(
        registry,
        max_workers=config.plugins.load_workers,
        disabled_plugins=config.plugins.disabled_plugins,
    )
    summary = loader.load(builtin=builtin, external=external)

    for failure in summary.failures:
        logger.warning(f"Plugin {failure.origin}:{failure.name} not loaded: {failure.reason}")

    resolver = CompositionResolver(catalog, pipeline)
    service = DocumentService(resolver, store)

    logger.debug(f"Runtime ready with {len(catalog)} block type(s) from {summary.registered_count} plugin(s)")
    return Runtime(
        config=config,
        catalog=catalog,
        pipeline=pipeline,
        registry=registry,
        loader_summary=summary,
        store=store,
        resolver=resolver,
        service=service,
    )
