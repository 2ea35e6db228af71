"""
Plugin Registry

Plugin bundles and the registry that merges their block definitions and hook
contributions into a block catalog and a hook pipeline.
"""

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from blockpress.blocks.base import BlockDefinition, unknown_capabilities
from blockpress.blocks.catalog import BlockCatalog
from blockpress.core.plugins.hooks import PROJECT_NAME, HookPipeline

BlockEntry = Union[BlockDefinition, Mapping[str, Any]]


@dataclass
class Plugin:
    """
    Static description of a plugin bundle.

    ``blocks`` may mix BlockDefinition objects and raw mappings, and each
    ``hooks`` value may be a single callable or a list of them; malformed
    entries are reported at registration rather than here.
    """
    name: str
    version: str = "0.0.0"
    blocks: List[BlockEntry] = field(default_factory=list)
    hooks: Dict[str, Any] = field(default_factory=dict)
    description: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Plugin':
        """Build a plugin from a dictionary bundle."""
        if not isinstance(data, Mapping):
            raise ValueError(f"Plugin bundle must be a mapping, got {type(data).__name__}")

        name = data.get('name')
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Plugin bundle requires a non-empty name")

        hooks = data.get('hooks', data.get('hookContributions', {})) or {}
        if not isinstance(hooks, Mapping):
            raise ValueError(f"Plugin hooks must be a mapping, got {type(hooks).__name__}")
        return cls(
            name=name,
            version=str(data.get('version', '0.0.0')),
            blocks=list(data.get('blocks', [])),
            hooks=dict(hooks),
            description=data.get('description', ''),
        )

    @classmethod
    def from_module(cls, module: Any) -> 'Plugin':
        """
        Build a plugin from an imported module.

        Supported conventions, in order of precedence:

        - ``get_plugin()`` returning a Plugin or a dictionary bundle
        - a ``PLUGIN`` attribute holding a Plugin or a dictionary bundle
        - ``__plugin_info__`` metadata plus an optional ``BLOCKS`` list and
          module-level functions marked with ``@hookimpl``
        """
        if callable(getattr(module, 'get_plugin', None)):
            return coerce_plugin(module.get_plugin())

        if hasattr(module, 'PLUGIN'):
            return coerce_plugin(module.PLUGIN)

        info = getattr(module, '__plugin_info__', None)
        if isinstance(info, Mapping):
            return cls(
                name=info.get('name', getattr(module, '__name__', '')),
                version=str(info.get('version', '0.0.0')),
                blocks=list(getattr(module, 'BLOCKS', [])),
                hooks=collect_hookimpls(module),
                description=info.get('description', '') or (module.__doc__ or '').strip().split('\n')[0],
            )

        raise ValueError(
            f"Module {getattr(module, '__name__', module)!r} does not define a plugin "
            f"(expected get_plugin, PLUGIN or __plugin_info__)"
        )


def _as_callbacks(callbacks: Any) -> List[Callable[..., Any]]:
    if callable(callbacks):
        return [callbacks]
    if isinstance(callbacks, (list, tuple)):
        return list(callbacks)
    raise TypeError(f"expected a callable or a list of callables, got {type(callbacks).__name__}")


def collect_hookimpls(namespace: Any) -> Dict[str, List[Callable[..., Any]]]:
    """Gather callables marked with ``@hookimpl`` from a module or object."""
    marker = f"{PROJECT_NAME}_impl"
    hooks: Dict[str, List[Callable[..., Any]]] = {}

    for attr_name in dir(namespace):
        if attr_name.startswith('_'):
            continue
        attr = getattr(namespace, attr_name)
        if inspect.isroutine(attr) and getattr(attr, marker, None) is not None:
            hooks.setdefault(attr_name, []).append(attr)

    return hooks


def coerce_plugin(candidate: Any) -> Plugin:
    """
    Normalize whatever a plugin source produced into a Plugin.

    Raises:
        ValueError: If the object cannot describe a plugin
    """
    if isinstance(candidate, Plugin):
        plugin = candidate
    elif isinstance(candidate, Mapping):
        plugin = Plugin.from_dict(candidate)
    elif inspect.ismodule(candidate):
        plugin = Plugin.from_module(candidate)
    else:
        raise ValueError(f"Cannot build a plugin from {type(candidate).__name__}")

    if not isinstance(plugin.name, str) or not plugin.name.strip():
        raise ValueError("Plugin requires a non-empty name")
    return plugin


@dataclass
class RegistrationReport:
    """Outcome of registering one plugin."""
    plugin_name: str
    version: str
    blocks: List[str] = field(default_factory=list)
    hooks: Dict[str, int] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    replaced: bool = False


class PluginRegistry:
    """
    Merges plugin contributions into a catalog and a hook pipeline.

    Plugins are additive for the lifetime of the registry; registering a
    second plugin under an existing name replaces that name's earlier blocks
    and hook subscriptions.
    """

    def __init__(self, catalog: Optional[BlockCatalog] = None, pipeline: Optional[HookPipeline] = None):
        self.catalog = catalog if catalog is not None else BlockCatalog()
        self.pipeline = pipeline if pipeline is not None else HookPipeline()
        self.logger = logging.getLogger("blockpress.plugins.registry")

        self._plugins: Dict[str, Plugin] = {}
        self._reports: Dict[str, RegistrationReport] = {}

    def register_plugin(self, plugin: Plugin) -> RegistrationReport:
        """
        Register a plugin's blocks and hook contributions.

        A malformed block entry or hook contribution is skipped with a
        warning; the remaining contributions still register. If registration
        fails anyway, everything the plugin contributed is withdrawn before
        the error propagates.

        Args:
            plugin: Plugin bundle to register

        Returns:
            Report of what was registered and what was skipped
        """
        report = RegistrationReport(plugin_name=plugin.name, version=plugin.version)

        if plugin.name in self._plugins:
            report.replaced = True
            self.logger.info(
                f"Re-registering plugin {plugin.name}: "
                f"{self._plugins[plugin.name].version} -> {plugin.version}"
            )
        self._withdraw(plugin.name)

        try:
            self._merge_blocks(plugin, report)
            self._merge_hooks(plugin, report)
        except Exception:
            self._withdraw(plugin.name)
            self.logger.error(f"Registration of plugin {plugin.name} failed, contributions withdrawn")
            raise

        for warning in report.warnings:
            self.logger.warning(warning)

        self._plugins[plugin.name] = plugin
        self._reports[plugin.name] = report

        self.logger.info(
            f"Registered plugin {plugin.name} {plugin.version}: "
            f"{len(report.blocks)} block(s), {sum(report.hooks.values())} hook(s)"
        )
        return report

    def _withdraw(self, plugin_name: str) -> None:
        self.catalog.remove_origin(plugin_name)
        self.pipeline.unsubscribe_origin(plugin_name)
        self._plugins.pop(plugin_name, None)
        self._reports.pop(plugin_name, None)

    def _merge_blocks(self, plugin: Plugin, report: RegistrationReport) -> None:
        for index, entry in enumerate(plugin.blocks):
            try:
                definition = entry if isinstance(entry, BlockDefinition) else BlockDefinition.from_dict(entry)
            except (TypeError, ValueError) as e:
                report.warnings.append(f"Skipped block #{index} from {plugin.name}: {e}")
                continue

            extra = unknown_capabilities(definition.capabilities)
            if extra:
                report.warnings.append(
                    f"Block '{definition.id}' declares unknown capabilities: {', '.join(extra)}"
                )

            self.catalog.register(definition, origin=plugin.name)
            report.blocks.append(definition.id)

    def _merge_hooks(self, plugin: Plugin, report: RegistrationReport) -> None:
        for hook_name, entry in plugin.hooks.items():
            try:
                callbacks = _as_callbacks(entry)
            except TypeError as e:
                report.warnings.append(f"Skipped hook '{hook_name}' from {plugin.name}: {e}")
                continue

            for callback in callbacks:
                try:
                    self.pipeline.subscribe(hook_name, callback, plugin.name)
                except (TypeError, ValueError) as e:
                    report.warnings.append(f"Skipped hook contribution from {plugin.name}: {e}")
                    continue
                report.hooks[hook_name] = report.hooks.get(hook_name, 0) + 1

    def is_registered(self, plugin_name: str) -> bool:
        return plugin_name in self._plugins

    def get_plugin(self, plugin_name: str) -> Optional[Plugin]:
        return self._plugins.get(plugin_name)

    def list_plugins(self) -> List[Plugin]:
        """Get registered plugins in registration order."""
        return list(self._plugins.values())

    def get_report(self, plugin_name: str) -> Optional[RegistrationReport]:
        return self._reports.get(plugin_name)

    @property
    def warnings(self) -> List[str]:
        """All warnings recorded by current registrations."""
        return [w for report in self._reports.values() for w in report.warnings]

    def get_plugin_status(self) -> Dict[str, Dict[str, Any]]:
        """Get status information for all registered plugins."""
        return {
            name: {
                'version': plugin.version,
                'description': plugin.description,
                'blocks': list(self._reports[name].blocks),
                'hooks': dict(self._reports[name].hooks),
                'warnings': list(self._reports[name].warnings),
            }
            for name, plugin in self._plugins.items()
        }
