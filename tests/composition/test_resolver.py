"""
Tests for the CompositionResolver
"""

import threading

import pytest

from blockpress.composition.resolver import PLACEHOLDER_TYPE, CompositionResolver
from blockpress.content.tree import ContentTree, ElementNode
from blockpress.core.exceptions import OperationCancelled, RevisionConflict, ValidationFailure
from blockpress.core.plugins.registry import Plugin


class TestResolve:
    """Test element resolution."""

    def test_known_blocks_merge_defaults(self, resolver, sample_tree):
        """Test that node properties are layered over block defaults."""
        resolved = resolver.resolve(sample_tree)

        cta = resolved.find("cta")
        assert cta.properties == {'label': 'Start', 'href': '/start', 'style': 'primary'}
        assert cta.display_name == "Button"
        assert resolved.placeholders == []
        assert resolved.issues == []

    def test_unknown_type_becomes_placeholder(self, resolver):
        """Test the placeholder substitution for unknown types only."""
        tree = ContentTree.from_payload([
            {'id': 'known', 'type': 'paragraph', 'properties': {'text': 'ok'}},
            {
                'id': 'mystery',
                'type': 'carousel',
                'properties': {'slides': 3},
                'children': [{'id': 'inner', 'type': 'image'}],
            },
        ])

        resolved = resolver.resolve(tree)
        mystery = resolved.find("mystery")

        assert mystery.placeholder
        assert mystery.type == PLACEHOLDER_TYPE
        assert mystery.unresolved_type == "carousel"
        assert mystery.properties == {'slides': 3}
        assert not resolved.find("known").placeholder
        assert not resolved.find("inner").placeholder
        assert resolved.placeholders == ["mystery"]

    def test_placeholder_is_deterministic(self, resolver):
        """Test that resolving twice gives the same placeholder."""
        tree = ContentTree.from_payload([{'id': 'x', 'type': 'unknown-widget'}])

        assert resolver.resolve(tree).to_dict() == resolver.resolve(tree).to_dict()

    def test_element_render_fold(self, resolver, basic_registry):
        """Test that element_render subscribers transform properties in order."""
        basic_registry.register_plugin(Plugin(
            name="shout",
            hooks={'element_render': [lambda props, node: {**props, 'text': props.get('text', '').upper()}]},
        ))
        tree = ContentTree.from_payload([{'id': 'p', 'type': 'paragraph', 'properties': {'text': 'quiet'}}])

        assert resolver.resolve(tree).find("p").properties['text'] == "QUIET"

    def test_heading_level_clamped(self, resolver):
        """Test the built-in heading clamp."""
        tree = ContentTree.from_payload([{'id': 'h', 'type': 'heading', 'properties': {'level': 9}}])

        heading = resolver.resolve(tree).find("h")
        assert heading.properties['level'] == 6
        assert heading.errors == []

    def test_schema_problems_recorded(self, resolver):
        """Test that schema violations are reported per element."""
        tree = ContentTree.from_payload([{'id': 'b', 'type': 'button', 'properties': {'style': 'neon'}}])

        resolved = resolver.resolve(tree)

        assert resolved.find("b").errors
        assert resolved.property_errors == resolved.find("b").errors

    def test_hooks_never_touch_input_tree(self, resolver, basic_registry):
        """Test that subscribers only receive copies."""
        def vandal(props, node):
            node.properties['vandalized'] = True
            props['vandalized'] = True
            return props

        basic_registry.register_plugin(Plugin(name="vandal", hooks={'element_render': [vandal]}))
        tree = ContentTree.from_payload([{'id': 'p', 'type': 'paragraph', 'properties': {'text': 'x'}}])

        resolver.resolve(tree)
        assert tree.get("p").properties == {'text': 'x'}

    def test_controls_for_selected_element_only(self, resolver, sample_tree):
        """Test that controls are gathered for the selection."""
        resolved = resolver.resolve(sample_tree, selected_id="title")

        controls = resolved.find("title").controls
        assert {c['property'] for c in controls if 'property' in c} == {'text', 'level', 'align'}
        assert resolved.find("intro").controls == []

    def test_controls_flatten_single_and_list(self, resolver, basic_registry):
        """Test that single controls and lists of controls are merged."""
        basic_registry.register_plugin(Plugin(name="extra", hooks={'element_controls': [
            lambda node, definition: {'id': 'extra.pin'},
            lambda node, definition: None,
        ]}))
        node = ElementNode(id="p", type="paragraph")

        controls = resolver.controls_for(node)
        assert controls[-1] == {'id': 'extra.pin'}
        assert None not in controls

    def test_controls_for_unknown_type(self, resolver):
        """Test that placeholders offer no controls."""
        assert resolver.controls_for(ElementNode(id="x", type="ghost")) == []


class TestRender:
    """Test the render path."""

    def test_before_render_notified_with_copy(self, resolver, basic_registry, sample_tree):
        """Test before_render notification."""
        seen = []

        def observe(tree):
            seen.append(tree)
            tree.elements.clear()

        basic_registry.register_plugin(Plugin(name="observer", hooks={'before_render': [observe]}))
        resolved = resolver.render(sample_tree)

        assert len(seen) == 1
        assert seen[0] is not sample_tree
        assert len(resolved.elements) == 2

    def test_render_rejects_invalid_tree(self, resolver):
        """Test structural validation on render."""
        tree = ContentTree(elements=[ElementNode(id="", type="paragraph")])
        with pytest.raises(ValidationFailure):
            resolver.render(tree)


class TestSave:
    """Test the save sequence."""

    def test_save_appends_transformed_tree(self, resolver, memory_store):
        """Test that before_save output is what gets stored."""
        tree = ContentTree.from_payload([{'id': 'p', 'type': 'paragraph', 'properties': {'text': '  lots   of\n space '}}])

        outcome = resolver.save(memory_store, "doc", tree)

        assert outcome.revision.sequence == 1
        assert memory_store.current("doc").snapshot.get("p").properties['text'] == "lots of space"
        assert tree.get("p").properties['text'] == "  lots   of\n space "

    def test_unknown_block_still_saved(self, resolver, memory_store, sample_tree):
        """Test that an unknown block type is saved with sequence previous+1."""
        resolver.save(memory_store, "doc", sample_tree)
        tree = sample_tree.copy()
        tree.insert(ElementNode(id="map", type="map-embed", properties={'lat': 1.5}))

        outcome = resolver.save(memory_store, "doc", tree)

        assert outcome.revision.sequence == 2
        assert outcome.resolved.placeholders == ["map"]
        assert memory_store.current("doc").snapshot.get("map").type == "map-embed"

    def test_after_save_notified(self, resolver, basic_registry, memory_store, sample_tree):
        """Test after_save receives the committed revision."""
        sequences = []
        basic_registry.register_plugin(Plugin(name="audit", hooks={'after_save': [lambda rev: sequences.append(rev.sequence)]}))

        resolver.save(memory_store, "doc", sample_tree)
        resolver.save(memory_store, "doc", sample_tree)

        assert sequences == [1, 2]

    def test_failing_hooks_do_not_abort_save(self, resolver, basic_registry, memory_store, sample_tree):
        """Test that subscriber failures are isolated during save."""
        def explode(*args):
            raise RuntimeError("plugin bug")

        basic_registry.register_plugin(Plugin(name="buggy", hooks={
            'before_save': [explode],
            'element_render': [explode],
            'after_save': [explode],
        }))

        outcome = resolver.save(memory_store, "doc", sample_tree)

        assert outcome.revision.sequence == 1
        assert len(basic_registry.pipeline.failures) >= 3

    def test_before_save_returning_garbage_ignored(self, resolver, basic_registry, memory_store, sample_tree):
        """Test that a before_save result of the wrong type is identity."""
        basic_registry.register_plugin(Plugin(name="lazy", hooks={'before_save': [lambda tree, doc: "oops"]}))

        outcome = resolver.save(memory_store, "doc", sample_tree)
        assert outcome.revision.snapshot.ids() == sample_tree.ids()

    def test_before_save_breaking_tree_blocks_save(self, resolver, basic_registry, memory_store, sample_tree):
        """Test that a transformed tree is validated before appending."""
        def duplicate(tree, document_id):
            tree.elements.append(tree.elements[0].copy())
            return tree

        basic_registry.register_plugin(Plugin(name="dup", hooks={'before_save': [duplicate]}))

        with pytest.raises(ValidationFailure):
            resolver.save(memory_store, "doc", sample_tree)
        assert memory_store.latest_sequence("doc") == 0

    def test_schema_violation_saved_with_errors(self, resolver, memory_store):
        """Test that invalid properties are reported without stopping the save."""
        tree = ContentTree.from_payload([
            {'id': 'p', 'type': 'paragraph', 'properties': {'text': 'Fine'}},
            {'id': 'img', 'type': 'image', 'properties': {'src': 'a.png', 'width': 0}},
        ])

        outcome = resolver.save(memory_store, "doc", tree)

        assert outcome.revision.sequence == 1
        assert outcome.revision.snapshot.get("img").properties['width'] == 0
        assert outcome.resolved.find("img").errors
        assert outcome.resolved.find("p").errors == []
        assert any(issue.startswith("img.width") for issue in outcome.resolved.issues)

    def test_render_hook_cannot_veto_save(self, resolver, basic_registry, memory_store):
        """Test that a render subscriber producing bad properties does not stop saves."""
        basic_registry.register_plugin(Plugin(
            name="rogue",
            hooks={'element_render': [lambda props, node: {**props, 'align': 'sideways'}]},
        ))
        tree = ContentTree.from_payload([{'id': 'h', 'type': 'heading', 'properties': {'text': 'Hi'}}])

        outcome = resolver.save(memory_store, "doc", tree)

        assert outcome.revision.sequence == 1
        assert outcome.resolved.find("h").errors
        assert 'align' not in memory_store.current("doc").snapshot.get("h").properties

    def test_stale_expected_sequence(self, resolver, memory_store, sample_tree):
        """Test that conflicts surface unchanged."""
        resolver.save(memory_store, "doc", sample_tree)

        with pytest.raises(RevisionConflict):
            resolver.save(memory_store, "doc", sample_tree, expected_sequence=0)

    def test_cancelled_save(self, resolver, memory_store, sample_tree):
        """Test that a cancelled save appends nothing."""
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(OperationCancelled):
            resolver.save(memory_store, "doc", sample_tree, cancel=cancel)
        assert memory_store.history("doc") == []

    def test_save_then_read_round_trip(self, resolver, memory_store, sample_tree):
        """Test that a saved tree reads back equal."""
        resolver.save(memory_store, "doc", sample_tree)
        assert memory_store.current("doc").snapshot.to_payload() == sample_tree.to_payload()


class TestResolverWithoutPlugins:
    """Test a resolver over an empty registry."""

    def test_everything_is_placeholder(self, catalog, pipeline, sample_tree):
        """Test that an empty catalog never fails a tree."""
        resolved = CompositionResolver(catalog, pipeline).resolve(sample_tree)

        assert resolved.placeholders == ["title", "intro", "cta", "cols"]
        assert all(element.placeholder for element in resolved.walk())
