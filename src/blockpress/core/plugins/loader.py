"""
Plugin Loader

Discovers plugin candidates, loads them in isolation and registers the ones
that loaded into a PluginRegistry.

Each candidate moves through ``discovered -> loading -> registered | failed``.
Loads may run concurrently on a thread pool, but registration is applied in a
fixed order: built-ins in listed order, then external plugins in discovery
order. A failure affects only the candidate it happened in.
"""

import importlib
import importlib.util
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from blockpress.core.exceptions import PluginLoadFailure
from blockpress.core.plugins.registry import PluginRegistry, coerce_plugin

DEFAULT_ENTRY_POINT_GROUP = "blockpress.plugins"


class PluginState(Enum):
    """Lifecycle of a plugin candidate."""
    DISCOVERED = "discovered"
    LOADING = "loading"
    REGISTERED = "registered"
    FAILED = "failed"


@dataclass
class PluginCandidate:
    """
    A plugin that can be loaded.

    ``load`` is the injected capability that produces the plugin: a Plugin,
    a dictionary bundle or a module.
    """
    name: str
    origin: str
    load: Callable[[], Any]
    source: str = ""

    @property
    def key(self) -> str:
        return f"{self.origin}:{self.name}"


@dataclass
class CandidateRecord:
    """Tracked state of one candidate."""
    candidate: PluginCandidate
    state: PluginState = PluginState.DISCOVERED
    plugin_name: Optional[str] = None
    version: Optional[str] = None
    reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class PluginFailure:
    """A candidate that ended in the failed state."""
    name: str
    origin: str
    reason: str


@dataclass
class LoadSummary:
    """Result of a loader run."""
    records: List[CandidateRecord] = field(default_factory=list)

    @property
    def registered(self) -> List[str]:
        """Names of registered plugins, unique, in registration order."""
        names: List[str] = []
        for record in self.records:
            if record.state is PluginState.REGISTERED and record.plugin_name not in names:
                names.append(record.plugin_name)
        return names

    @property
    def failures(self) -> List[PluginFailure]:
        return [
            PluginFailure(name=r.candidate.name, origin=r.candidate.origin, reason=r.reason or "unknown error")
            for r in self.records
            if r.state is PluginState.FAILED
        ]

    @property
    def registered_count(self) -> int:
        return len(self.registered)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'registered': self.registered_count,
            'failed': self.failed_count,
            'plugins': self.registered,
            'failures': {f"{f.origin}:{f.name}": f.reason for f in self.failures},
        }


class PluginLoader:
    """
    Drives plugin discovery, loading and registration.

    Plugin sources are plain candidate sequences, so the isolation and
    ordering logic runs the same whether candidates import real modules or
    return in-memory bundles.
    """

    def __init__(
        self,
        registry: PluginRegistry,
        max_workers: int = 4,
        disabled_plugins: Optional[Iterable[str]] = None
    ):
        """
        Initialize the plugin loader.

        Args:
            registry: Registry receiving loaded plugins
            max_workers: Maximum concurrent candidate loads
            disabled_plugins: Names never loaded even when discovered
        """
        self.registry = registry
        self.max_workers = max(1, max_workers)
        self.disabled_plugins = set(disabled_plugins or [])
        self.logger = logging.getLogger("blockpress.plugins.loader")
        self._records: List[CandidateRecord] = []

    def load(
        self,
        builtin: Sequence[PluginCandidate] = (),
        external: Sequence[PluginCandidate] = ()
    ) -> LoadSummary:
        """
        Load and register candidates.

        Args:
            builtin: Built-in candidates, registered first in listed order
            external: External candidates, registered afterwards in order

        Returns:
            Summary of registered and failed candidates
        """
        ordered = [c for c in list(builtin) + list(external) if self._is_enabled(c)]
        records = [CandidateRecord(candidate=c) for c in ordered]
        self._records.extend(records)

        self.logger.info(f"Discovered {len(records)} plugin candidate(s)")
        if not records:
            return LoadSummary(records=records)

        workers = min(self.max_workers, len(records))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="plugin-load-") as executor:
            futures = []
            for record in records:
                record.state = PluginState.LOADING
                futures.append(executor.submit(record.candidate.load))

            # Registration order follows candidate order, not completion order
            for record, future in zip(records, futures):
                self._finish(record, future)

        summary = LoadSummary(records=records)
        self.logger.info(
            f"Plugin loading complete: {summary.registered_count} registered, "
            f"{summary.failed_count} failed"
        )
        return summary

    def _is_enabled(self, candidate: PluginCandidate) -> bool:
        if candidate.name in self.disabled_plugins:
            self.logger.info(f"Skipping disabled plugin: {candidate.name}")
            return False
        return True

    def _finish(self, record: CandidateRecord, future: Future) -> None:
        candidate = record.candidate
        try:
            plugin = coerce_plugin(future.result())
            if plugin.name in self.disabled_plugins:
                raise PluginLoadFailure(f"Plugin '{plugin.name}' is disabled", plugin_name=plugin.name)
            report = self.registry.register_plugin(plugin)
        except Exception as e:
            record.state = PluginState.FAILED
            record.reason = str(e) or type(e).__name__
            self.logger.error(f"Failed to load plugin '{candidate.name}' ({candidate.origin}): {record.reason}")
            return

        record.state = PluginState.REGISTERED
        record.plugin_name = plugin.name
        record.version = plugin.version
        record.warnings = list(report.warnings)
        self.logger.debug(f"Plugin {candidate.key} registered as {plugin.name} {plugin.version}")

    @property
    def states(self) -> Dict[str, PluginState]:
        """Latest state of every candidate seen by this loader."""
        return {record.candidate.key: record.state for record in self._records}


def builtin_candidates(
    names: Iterable[str],
    available: Mapping[str, Callable[[], Any]]
) -> List[PluginCandidate]:
    """
    Build candidates for built-in plugins.

    An unknown built-in name still yields a candidate, which fails on load so
    the summary reports it.
    """
    candidates = []
    for name in names:
        factory = available.get(name)
        if factory is None:
            candidates.append(PluginCandidate(
                name=name,
                origin="builtin",
                load=_missing_builtin(name),
                source="builtin",
            ))
        else:
            candidates.append(PluginCandidate(name=name, origin="builtin", load=factory, source="builtin"))
    return candidates


def _missing_builtin(name: str) -> Callable[[], Any]:
    def _load():
        raise PluginLoadFailure(f"No built-in plugin named '{name}'", plugin_name=name)
    return _load


def external_candidates(activations: Iterable[Any]) -> List[PluginCandidate]:
    """
    Build candidates for externally-configured plugins.

    Each activation row needs ``name``, ``module`` and ``is_active``, as
    attributes or mapping keys. Inactive rows are not discovered.
    """
    candidates = []
    for row in activations:
        name = _field(row, 'name')
        module_path = _field(row, 'module')
        if not _field(row, 'is_active', True):
            continue
        candidates.append(PluginCandidate(
            name=name,
            origin="external",
            load=_module_loader(name, module_path),
            source=str(module_path),
        ))
    return candidates


def _field(row: Any, key: str, default: Any = None) -> Any:
    if isinstance(row, Mapping):
        return row.get(key, default)
    return getattr(row, key, default)


def _module_loader(name: str, module_path: Optional[str]) -> Callable[[], Any]:
    def _load():
        if not module_path:
            raise PluginLoadFailure(f"Plugin '{name}' has no module configured", plugin_name=name)
        return import_plugin(module_path)
    return _load


def import_plugin(module_path: str) -> Any:
    """
    Import the object describing a plugin.

    Accepts a dotted module path, ``package.module:attribute`` or a path to a
    ``.py`` file.

    Raises:
        PluginLoadFailure: If the module or attribute cannot be loaded
    """
    if module_path.endswith('.py'):
        return _import_file(Path(module_path))

    module_name, _, attribute = module_path.partition(':')
    try:
        module = importlib.import_module(module_name)
    except Exception as e:
        raise PluginLoadFailure(f"Could not import {module_name}: {e}", cause=e) from e

    if not attribute:
        return module

    try:
        target = getattr(module, attribute)
    except AttributeError as e:
        raise PluginLoadFailure(f"{module_name} has no attribute {attribute}", cause=e) from e

    return _resolve_target(target)


def _resolve_target(target: Any) -> Any:
    # A factory function produces the bundle
    if callable(target) and not isinstance(target, type):
        return target()
    return target


def _import_file(plugin_path: Path) -> Any:
    if not plugin_path.exists():
        raise PluginLoadFailure(f"Plugin path does not exist: {plugin_path}")

    spec = importlib.util.spec_from_file_location(f"blockpress_plugin_{plugin_path.stem}", plugin_path)
    if not spec or not spec.loader:
        raise PluginLoadFailure(f"Could not create spec for {plugin_path}")

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise PluginLoadFailure(f"Error executing {plugin_path}: {e}", cause=e) from e
    return module


def entry_point_candidates(group: str = DEFAULT_ENTRY_POINT_GROUP) -> List[PluginCandidate]:
    """Discover plugins published under a package entry point group."""
    from importlib.metadata import entry_points

    candidates = []
    for ep in entry_points(group=group):
        candidates.append(PluginCandidate(
            name=ep.name,
            origin="entry_point",
            load=_entry_point_loader(ep),
            source=ep.value,
        ))
    return candidates


def _entry_point_loader(ep: Any) -> Callable[[], Any]:
    def _load():
        return _resolve_target(ep.load())
    return _load
