"""
Built-in Plugins

Plugins shipped with BlockPress, keyed by name. Each factory imports the
plugin module on demand so the loader can isolate import failures.
"""

import importlib
from typing import Any, Callable, Dict


def _module_factory(module_path: str) -> Callable[[], Any]:
    def _load():
        return importlib.import_module(module_path)
    return _load


BUILTIN_PLUGINS: Dict[str, Callable[[], Any]] = {
    'basic': _module_factory('blockpress.plugins.builtin.basic'),
}

__all__ = ['BUILTIN_PLUGINS']
