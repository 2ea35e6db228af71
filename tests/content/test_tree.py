"""
Tests for ContentTree and ElementNode
"""

import pytest

from blockpress.content.tree import MAX_DEPTH, ContentTree, ElementNode
from blockpress.core.exceptions import ElementNotFound, ValidationFailure


def node(element_id, block_type="paragraph", children=None, **properties):
    return ElementNode(id=element_id, type=block_type, properties=properties, children=children or [])


class TestPayloadCodec:
    """Test parsing and serializing payloads."""

    def test_from_payload_nested(self, sample_payload):
        """Test parsing a nested payload."""
        tree = ContentTree.from_payload(sample_payload)

        assert tree.ids() == ["title", "cols", "intro", "cta"]
        assert tree.get("cta").properties == {'label': 'Start', 'href': '/start'}
        assert len(tree) == 4

    def test_bare_list_payload(self):
        """Test that a bare element list is accepted."""
        tree = ContentTree.from_payload([{'id': 'a', 'type': 'heading'}])
        assert tree.get("a").properties == {}

    def test_payload_round_trip(self, sample_payload):
        """Test that serializing a parsed payload restores it."""
        assert ContentTree.from_payload(sample_payload).to_payload() == sample_payload

    def test_reports_every_problem(self):
        """Test that all structural problems are listed at once."""
        with pytest.raises(ValidationFailure) as exc_info:
            ContentTree.from_payload({'elements': [
                {'type': 'heading'},
                {'id': 'a'},
                {'id': 'b', 'type': 'image', 'properties': ['not', 'a', 'map']},
                {'id': 'b', 'type': 'image'},
                "loose string",
            ]})

        problems = exc_info.value.problems
        assert any("missing id" in p for p in problems)
        assert any("missing type" in p for p in problems)
        assert any("properties must be a mapping" in p for p in problems)
        assert any("duplicate id 'b'" in p for p in problems)
        assert any("expected a mapping" in p for p in problems)
        assert exc_info.value.reason == "validation_failed"

    def test_elements_must_be_list(self):
        """Test rejection of a non-list element collection."""
        with pytest.raises(ValidationFailure):
            ContentTree.from_payload({'elements': {'id': 'a'}})

    def test_duplicate_id_in_children(self):
        """Test that ids must be unique across nesting levels."""
        with pytest.raises(ValidationFailure):
            ContentTree.from_payload([
                {'id': 'a', 'type': 'columns', 'children': [{'id': 'a', 'type': 'paragraph'}]},
            ])

    def test_deeply_nested_payload_rejected(self):
        """Test that runaway nesting is a validation problem."""
        raw = {'id': 'leaf', 'type': 'paragraph'}
        for level in range(3000):
            raw = {'id': f"n{level}", 'type': 'columns', 'children': [raw]}

        with pytest.raises(ValidationFailure) as exc_info:
            ContentTree.from_payload([raw])
        assert any(f"deeper than {MAX_DEPTH}" in p for p in exc_info.value.problems)

    def test_nesting_at_limit_accepted(self):
        """Test that a tree exactly MAX_DEPTH levels deep parses."""
        raw = {'id': 'leaf', 'type': 'paragraph'}
        for level in range(MAX_DEPTH - 1):
            raw = {'id': f"n{level}", 'type': 'columns', 'children': [raw]}

        assert len(ContentTree.from_payload([raw])) == MAX_DEPTH

    def test_validate_catches_deep_tree_built_in_code(self):
        """Test the depth check on trees assembled without a payload."""
        root = node("n0", "columns")
        current = root
        for level in range(1, MAX_DEPTH + 1):
            child = node(f"n{level}", "columns")
            current.children.append(child)
            current = child

        with pytest.raises(ValidationFailure):
            ContentTree(elements=[root]).validate()

    def test_payload_is_copied(self):
        """Test that later changes to the raw payload do not leak in."""
        raw = {'id': 'a', 'type': 'paragraph', 'properties': {'tags': ['x']}}
        tree = ContentTree.from_payload([raw])

        raw['properties']['tags'].append('y')
        assert tree.get("a").properties['tags'] == ['x']


class TestTreeOperations:
    """Test tree mutations."""

    @pytest.fixture
    def tree(self):
        return ContentTree(elements=[
            node("a"),
            node("box", "columns", children=[node("b1"), node("b2")]),
            node("c"),
        ])

    def test_insert_at_position(self, tree):
        """Test inserting among root elements."""
        tree.insert(node("new"), position=1)
        assert [n.id for n in tree.elements] == ["a", "new", "box", "c"]

    def test_insert_appends_by_default(self, tree):
        """Test appending under a parent."""
        tree.insert(node("b3"), parent_id="box")
        assert [n.id for n in tree.get("box").children] == ["b1", "b2", "b3"]

    def test_insert_negative_position(self, tree):
        """Test that negative positions count from the end."""
        tree.insert(node("last"), position=-1)
        assert tree.elements[-1].id == "last"

    def test_insert_duplicate_id(self, tree):
        """Test that an id already in the tree is rejected."""
        with pytest.raises(ValidationFailure):
            tree.insert(node("b1"))

    def test_insert_unknown_parent(self, tree):
        """Test inserting under a parent that does not exist."""
        with pytest.raises(ElementNotFound):
            tree.insert(node("x"), parent_id="ghost")

    def test_move_between_parents(self, tree):
        """Test moving an element into a container."""
        tree.move("a", parent_id="box", position=0)

        assert [n.id for n in tree.elements] == ["box", "c"]
        assert [n.id for n in tree.get("box").children] == ["a", "b1", "b2"]

    def test_move_within_siblings(self, tree):
        """Test reordering root elements."""
        tree.move("c", position=0)
        assert [n.id for n in tree.elements] == ["c", "a", "box"]

    def test_move_into_own_descendant(self, tree):
        """Test that cycles are rejected."""
        with pytest.raises(ValidationFailure):
            tree.move("box", parent_id="b1")

    def test_update_properties(self, tree):
        """Test patching and removing properties."""
        tree.update_properties("a", {'text': 'Hi', 'align': 'center'})
        tree.update_properties("a", {'text': 'Hello'}, remove=['align'])

        assert tree.get("a").properties == {'text': 'Hello'}

    def test_update_properties_rejects_non_string_keys(self, tree):
        """Test that property keys must be strings."""
        with pytest.raises(ValidationFailure):
            tree.update_properties("a", {1: 'one'})

    def test_remove_subtree(self, tree):
        """Test that removing a container removes its children."""
        removed = tree.remove("box")

        assert removed.id == "box"
        assert tree.ids() == ["a", "c"]
        assert tree.find("b1") is None

    def test_remove_unknown(self, tree):
        """Test removing an element that does not exist."""
        with pytest.raises(ElementNotFound):
            tree.remove("ghost")

    def test_copy_is_deep(self, tree):
        """Test that copies share no state."""
        clone = tree.copy()
        clone.update_properties("b1", {'text': 'changed'})

        assert "text" not in tree.get("b1").properties

    def test_locate(self, tree):
        """Test finding an element's parent and index."""
        parent, index = tree.locate("b2")
        assert parent.id == "box"
        assert index == 1
        assert tree.locate("a") == (None, 0)
