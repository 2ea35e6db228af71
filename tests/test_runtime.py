"""
Tests for runtime assembly
"""

import pytest

from blockpress.core.config.models import AppConfig, ExternalPluginConfig, PluginsConfig, StorageConfig
from blockpress.core.plugins.loader import PluginCandidate
from blockpress.core.state.sqlite_store import SQLiteRevisionStore
from blockpress.core.state.store import InMemoryRevisionStore, PluginActivation
from blockpress.runtime import activation_rows, build_runtime, create_store

QUOTE_PLUGIN = (
    "from blockpress.core.plugins.hooks import hookimpl\n"
    "__plugin_info__ = {'name': 'quotes', 'version': '0.2.0'}\n"
    "BLOCKS = [{'id': 'quote', 'display_name': 'Quote', 'default_properties': {'text': '', 'cite': ''}}]\n"
    "\n"
    "@hookimpl\n"
    "def element_render(properties, node):\n"
    "    if node.type == 'quote':\n"
    "        properties['text'] = properties['text'].strip('\"')\n"
    "    return properties\n"
)


@pytest.fixture
def quote_plugin(tmp_path):
    path = tmp_path / "quotes.py"
    path.write_text(QUOTE_PLUGIN)
    return path


class TestBuildRuntime:
    """Test building a runtime from configuration."""

    def test_defaults_with_memory_store(self, memory_config):
        """Test that the basic plugin is loaded by default."""
        runtime = build_runtime(memory_config)

        assert isinstance(runtime.store, InMemoryRevisionStore)
        assert runtime.loader_summary.registered == ["basic"]
        assert {d.id for d in runtime.catalog.list()} == {"heading", "paragraph", "image", "button", "columns"}

    def test_service_round_trip(self, memory_config, sample_payload):
        """Test that the assembled service saves and reads."""
        runtime = build_runtime(memory_config)

        assert runtime.service.save("home", sample_payload).sequence == 1
        assert runtime.service.read("home").tree.to_payload() == sample_payload

    def test_external_plugin_from_file(self, quote_plugin):
        """Test loading an externally-configured plugin file."""
        config = AppConfig(
            storage=StorageConfig(backend="memory"),
            plugins=PluginsConfig(external=[ExternalPluginConfig(name="quotes", module=str(quote_plugin))]),
        )
        runtime = build_runtime(config)

        assert runtime.loader_summary.registered == ["basic", "quotes"]
        assert runtime.catalog.origin_of("quote") == "quotes"

        result = runtime.service.save("q", [{'id': 'q1', 'type': 'quote', 'properties': {'text': '"Hi"'}}])
        assert result.resolved.find("q1").properties['text'] == "Hi"

    def test_inactive_external_skipped(self, quote_plugin):
        """Test that inactive external rows are not loaded."""
        config = AppConfig(
            storage=StorageConfig(backend="memory"),
            plugins=PluginsConfig(external=[
                ExternalPluginConfig(name="quotes", module=str(quote_plugin), is_active=False),
            ]),
        )

        assert build_runtime(config).loader_summary.registered == ["basic"]

    def test_broken_external_does_not_stop_startup(self, memory_config):
        """Test that a failing external plugin is reported, not raised."""
        memory_config.plugins = PluginsConfig(external=[
            ExternalPluginConfig(name="missing", module="blockpress_missing_plugin"),
        ])
        runtime = build_runtime(memory_config)

        assert runtime.loader_summary.registered == ["basic"]
        assert runtime.loader_summary.failures[0].name == "missing"

    def test_duplicate_basic_external(self, memory_config):
        """Test that 'basic' as a built-in and an external counts once."""
        memory_config.plugins = PluginsConfig(external=[
            ExternalPluginConfig(name="basic", module="blockpress.plugins.builtin.basic"),
        ])
        runtime = build_runtime(memory_config)

        assert runtime.loader_summary.registered_count == 1
        assert runtime.loader_summary.failed_count == 0
        assert len(runtime.catalog.list()) == 5

    def test_disabled_builtin(self, memory_config):
        """Test disabling the built-in plugin."""
        memory_config.plugins = PluginsConfig(disabled_plugins=["basic"])
        runtime = build_runtime(memory_config)

        assert runtime.loader_summary.registered_count == 0
        assert runtime.catalog.list() == []

    def test_extra_candidates_and_injected_store(self, memory_config):
        """Test injected candidates and an injected store."""
        store = InMemoryRevisionStore()
        extra = PluginCandidate(
            name="extra",
            origin="external",
            load=lambda: {'name': 'extra', 'blocks': [{'id': 'divider'}]},
        )

        runtime = build_runtime(memory_config, store=store, extra_candidates=[extra])

        assert runtime.store is store
        assert runtime.catalog.origin_of("divider") == "extra"

    def test_runtimes_are_independent(self, memory_config):
        """Test that two runtimes share no registry state."""
        first = build_runtime(memory_config)
        second = build_runtime(memory_config, builtin_plugins={})

        assert len(first.catalog) == 5
        assert len(second.catalog) == 0

    def test_open_session(self, memory_config, sample_payload):
        """Test opening an edit session from the runtime."""
        runtime = build_runtime(memory_config)
        runtime.service.save("home", sample_payload)

        session = runtime.open_session("home")
        assert session.base_sequence == 1


class TestStoreSelection:
    """Test backend selection."""

    def test_sqlite_backend(self, tmp_path):
        """Test that the SQLite backend opens the configured file."""
        store = create_store(StorageConfig(backend="sqlite", db_path=tmp_path / "rev.db"))
        try:
            assert isinstance(store, SQLiteRevisionStore)
            assert (tmp_path / "rev.db").exists()
        finally:
            store.close()

    def test_memory_backend_policy(self):
        """Test that storage settings reach the store."""
        store = create_store(StorageConfig(backend="memory", conflict_policy="queue", queue_timeout=2.5))

        assert store.conflict_policy == "queue"
        assert store.queue_timeout == 2.5


class TestActivationRows:
    """Test the activation source setting."""

    @pytest.fixture
    def store(self):
        return InMemoryRevisionStore(activations=[
            PluginActivation(name="stored", module="pkg.stored"),
            PluginActivation(name="shared", module="pkg.from_store"),
        ])

    def make_config(self, source):
        return AppConfig(plugins=PluginsConfig(
            activation_source=source,
            external=[
                ExternalPluginConfig(name="configured", module="pkg.configured"),
                ExternalPluginConfig(name="shared", module="pkg.from_config"),
            ],
        ))

    def test_config_source(self, store):
        assert [r.name for r in activation_rows(self.make_config("config"), store)] == ["configured", "shared"]

    def test_store_source(self, store):
        assert [r.name for r in activation_rows(self.make_config("store"), store)] == ["stored", "shared"]

    def test_both_prefers_config(self, store):
        """Test that configured rows win over stored rows of the same name."""
        rows = activation_rows(self.make_config("both"), store)

        assert [r.name for r in rows] == ["configured", "shared", "stored"]
        assert rows[1].module == "pkg.from_config"
