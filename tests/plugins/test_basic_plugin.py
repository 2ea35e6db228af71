"""
Tests for the built-in basic plugin
"""

from blockpress.blocks.base import CONTAINER
from blockpress.content.tree import ContentTree, ElementNode
from blockpress.core.plugins.registry import Plugin
from blockpress.plugins.builtin import BUILTIN_PLUGINS, basic


class TestBasicPlugin:
    """Test the plugin bundle."""

    def test_factory_builds_plugin(self):
        """Test that the built-in factory returns the basic module."""
        plugin = Plugin.from_module(BUILTIN_PLUGINS['basic']())

        assert plugin.name == "basic"
        assert plugin.version == "1.0.0"
        assert [b.id for b in plugin.blocks] == ["heading", "paragraph", "image", "button", "columns"]
        assert set(plugin.hooks) == {"before_save", "element_render", "element_controls"}

    def test_registration_has_no_warnings(self, basic_registry):
        """Test that every block and hook registers cleanly."""
        report = basic_registry.get_report("basic")

        assert report.warnings == []
        assert report.hooks == {'before_save': 1, 'element_render': 1, 'element_controls': 1}
        assert CONTAINER in basic_registry.catalog.get("columns").capabilities

    def test_defaults_pass_schemas(self):
        """Test that every block's defaults are valid properties."""
        for definition in basic.BLOCKS:
            assert definition.validate_properties(definition.defaults()) == []


class TestBasicHooks:
    """Test the hook implementations directly."""

    def test_before_save_collapses_whitespace(self):
        """Test text normalization on save."""
        tree = ContentTree(elements=[
            ElementNode(id="h", type="heading", properties={'text': "  Big \n\t title  "}),
            ElementNode(id="x", type="custom", properties={'text': "  left   alone "}),
        ])

        result = basic.before_save(tree, "doc")

        assert result is tree
        assert tree.get("h").properties['text'] == "Big title"
        assert tree.get("x").properties['text'] == "  left   alone "

    def test_element_render_clamps_heading(self):
        """Test heading level clamping."""
        node = ElementNode(id="h", type="heading")

        assert basic.element_render({'level': 0}, node)['level'] == 1
        assert basic.element_render({'level': "8"}, node)['level'] == 6
        assert basic.element_render({'level': "big"}, node)['level'] == "big"

    def test_element_render_ignores_other_blocks(self):
        """Test that non-heading properties pass through."""
        props = {'level': 42}
        assert basic.element_render(props, ElementNode(id="p", type="paragraph")) is props

    def test_element_controls(self, basic_registry):
        """Test controls for a basic block."""
        definition = basic_registry.catalog.get("image")
        node = ElementNode(id="img", type="image", properties={'src': "/a.png"})

        controls = basic.element_controls(node, definition)

        assert controls[0] == {'id': 'image.src', 'property': 'src', 'kind': 'url', 'value': '/a.png'}
        assert controls[1]['value'] == ""
        assert controls[-1] == {'id': 'image.remove', 'action': 'remove', 'element_id': 'img'}

    def test_element_controls_other_plugin_blocks(self, simple_plugin, basic_registry):
        """Test that blocks from other plugins get no basic controls."""
        basic_registry.register_plugin(simple_plugin)
        definition = basic_registry.catalog.get("text")

        assert basic.element_controls(ElementNode(id="t", type="text"), definition) == []
