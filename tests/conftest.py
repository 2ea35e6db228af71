"""
Shared Test Configuration and Fixtures

Fixtures for building catalogs, pipelines, registries, stores and resolvers
without touching the filesystem unless a test asks for a database.
"""

import pytest

from blockpress.blocks.base import CONTAINER, TEXT, BlockDefinition
from blockpress.blocks.catalog import BlockCatalog
from blockpress.composition.resolver import CompositionResolver
from blockpress.content.tree import ContentTree
from blockpress.core.config.models import AppConfig, StorageConfig
from blockpress.core.plugins.hooks import HookPipeline
from blockpress.core.plugins.registry import Plugin, PluginRegistry
from blockpress.core.state.sqlite_store import SQLiteRevisionStore
from blockpress.core.state.store import InMemoryRevisionStore
from blockpress.plugins.builtin import basic
from blockpress.service import DocumentService


@pytest.fixture
def catalog():
    """Empty block catalog."""
    return BlockCatalog()


@pytest.fixture
def pipeline():
    """Empty hook pipeline."""
    return HookPipeline()


@pytest.fixture
def registry(catalog, pipeline):
    """Registry wired to the catalog and pipeline fixtures."""
    return PluginRegistry(catalog=catalog, pipeline=pipeline)


@pytest.fixture
def basic_registry(registry):
    """Registry with the built-in basic plugin registered."""
    registry.register_plugin(Plugin.from_module(basic))
    return registry


@pytest.fixture
def simple_plugin():
    """Plugin bundle with a text block and a container block, no hooks."""
    return Plugin(
        name="simple",
        version="1.0.0",
        blocks=[
            BlockDefinition(id="text", default_properties={'body': ""}, capabilities=frozenset({TEXT})),
            BlockDefinition(id="group", capabilities=frozenset({CONTAINER})),
        ],
    )


@pytest.fixture
def memory_store():
    """In-memory revision store rejecting concurrent saves."""
    return InMemoryRevisionStore()


@pytest.fixture
def sqlite_store(tmp_path):
    """SQLite revision store in a temporary directory."""
    store = SQLiteRevisionStore(tmp_path / "revisions.db")
    yield store
    store.close()


@pytest.fixture
def resolver(basic_registry):
    """Resolver over the basic plugin."""
    return CompositionResolver.from_registry(basic_registry)


@pytest.fixture
def service(resolver, memory_store):
    """Document service over the basic plugin and an in-memory store."""
    return DocumentService(resolver, memory_store)


@pytest.fixture
def memory_config():
    """Application configuration using the memory backend."""
    return AppConfig(storage=StorageConfig(backend="memory"))


@pytest.fixture
def sample_payload():
    """A small landing page using the basic blocks."""
    return {
        'elements': [
            {'id': 'title', 'type': 'heading', 'properties': {'text': 'Welcome', 'level': 1}},
            {
                'id': 'cols',
                'type': 'columns',
                'properties': {'count': 2},
                'children': [
                    {'id': 'intro', 'type': 'paragraph', 'properties': {'text': 'Hello there'}},
                    {'id': 'cta', 'type': 'button', 'properties': {'label': 'Start', 'href': '/start'}},
                ],
            },
        ]
    }


@pytest.fixture
def sample_tree(sample_payload):
    """ContentTree parsed from the sample payload."""
    return ContentTree.from_payload(sample_payload)
