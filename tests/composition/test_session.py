"""
Tests for EditSession
"""

import threading

import pytest

from blockpress.composition.session import EditSession, SessionState
from blockpress.content.intents import PatchProperties, RemoveElement
from blockpress.core.exceptions import ElementNotFound, ErrorCode, RevisionConflict, ValidationFailure
from blockpress.core.plugins.registry import Plugin


@pytest.fixture
def session(resolver, memory_store, sample_tree):
    resolver.save(memory_store, "home", sample_tree)
    return EditSession("home", resolver, memory_store)


class TestSessionStates:
    """Test the viewing/editing/saving lifecycle."""

    def test_opens_latest_revision(self, session, sample_tree):
        """Test that a new session loads the current revision."""
        assert session.state is SessionState.VIEWING
        assert session.base_sequence == 1
        assert session.tree.ids() == sample_tree.ids()
        assert not session.dirty

    def test_opens_empty_document(self, resolver, memory_store):
        """Test a session on a document with no revisions."""
        session = EditSession("new", resolver, memory_store)

        assert session.base_sequence == 0
        assert len(session.tree) == 0

    def test_select_enters_editing(self, session):
        """Test selecting and deselecting."""
        node = session.select("intro")

        assert node.id == "intro"
        assert session.state is SessionState.EDITING

        session.deselect()
        assert session.state is SessionState.VIEWING
        assert session.selected_id is None

    def test_select_missing_element(self, session):
        """Test that selecting an unknown id fails without changing state."""
        with pytest.raises(ElementNotFound):
            session.select("ghost")
        assert session.state is SessionState.VIEWING

    def test_controls_follow_selection(self, session):
        """Test that controls are only offered for a selection."""
        assert session.controls() == []

        session.select("cta")
        ids = [control['id'] for control in session.controls()]
        assert "button.label" in ids
        assert "button.remove" in ids

    def test_render_includes_selected_controls(self, session):
        """Test that the rendered selection carries its controls."""
        session.select("title")
        resolved = session.render()

        assert resolved.find("title").controls
        assert resolved.find("cta").controls == []


class TestSessionEdits:
    """Test applying intents."""

    def test_apply_marks_dirty(self, session):
        """Test that edits change the working tree only."""
        session.apply(PatchProperties(element_id="intro", patch={'text': 'Changed'}))

        assert session.dirty
        assert session.tree.get("intro").properties['text'] == "Changed"
        assert session.store.current("home").snapshot.get("intro").properties['text'] == "Hello there"

    def test_apply_raw_intent(self, session):
        """Test that raw intent mappings are decoded."""
        node = session.apply({'action': 'insert', 'type': 'image', 'id': 'hero', 'position': 0})

        assert node.id == "hero"
        assert session.tree.elements[0].id == "hero"

    def test_remove_selected_ancestor_deselects(self, session):
        """Test that removing a container clears a selected child."""
        session.select("intro")
        session.apply(RemoveElement(element_id="cols"))

        assert session.selected_id is None
        assert session.state is SessionState.VIEWING

    def test_remove_other_element_keeps_selection(self, session):
        """Test that unrelated removals keep the selection."""
        session.select("title")
        session.apply(RemoveElement(element_id="intro"))

        assert session.selected_id == "title"
        assert session.state is SessionState.EDITING


class TestSessionSave:
    """Test saving from a session."""

    def test_save_returns_to_viewing(self, session):
        """Test the state after a successful save."""
        session.select("intro")
        session.apply(PatchProperties(element_id="intro", patch={'text': 'New  text'}))

        outcome = session.save()

        assert outcome.revision.sequence == 2
        assert session.base_sequence == 2
        assert session.state is SessionState.VIEWING
        assert session.selected_id is None
        assert not session.dirty
        assert session.tree.get("intro").properties['text'] == "New text"

    def test_stale_base_conflicts(self, session, resolver, memory_store):
        """Test that a session based on an old revision cannot overwrite newer history."""
        other = EditSession("home", resolver, memory_store)
        other.apply(PatchProperties(element_id="title", patch={'text': 'First'}))
        other.save()

        session.select("title")
        session.apply(PatchProperties(element_id="title", patch={'text': 'Second'}))

        with pytest.raises(RevisionConflict) as exc_info:
            session.save()

        assert exc_info.value.current_sequence == 2
        assert session.dirty
        assert session.state is SessionState.EDITING
        assert session.tree.get("title").properties['text'] == "Second"

    def test_failed_validation_keeps_working_tree(self, session, basic_registry):
        """Test that an invalid tree is not saved and stays editable."""
        def duplicate(tree, document_id):
            tree.elements.append(tree.elements[0].copy())
            return tree

        basic_registry.register_plugin(Plugin(name="dup", hooks={'before_save': [duplicate]}))
        session.apply(PatchProperties(element_id="cols", patch={'count': 3}))

        with pytest.raises(ValidationFailure):
            session.save()

        assert session.dirty
        assert session.store.latest_sequence("home") == 1

    def test_property_problems_still_saved(self, session):
        """Test that out-of-range properties are saved and reported."""
        session.apply(PatchProperties(element_id="cols", patch={'count': 99}))

        outcome = session.save()

        assert outcome.revision.sequence == 2
        assert outcome.resolved.find("cols").errors
        assert not session.dirty

    def test_save_not_reentrant(self, session, basic_registry):
        """Test that a second save during a running save is rejected."""
        entered = threading.Event()
        release = threading.Event()

        def hold(tree, document_id):
            entered.set()
            release.wait(5)
            return tree

        basic_registry.register_plugin(Plugin(name="slow", hooks={'before_save': [hold]}))

        worker = threading.Thread(target=session.save)
        worker.start()
        assert entered.wait(5)

        try:
            assert session.state is SessionState.SAVING
            with pytest.raises(RevisionConflict) as exc_info:
                session.save()
            assert exc_info.value.error_code == ErrorCode.SAVE_IN_PROGRESS

            with pytest.raises(RevisionConflict):
                session.select("title")
        finally:
            release.set()
            worker.join()

        assert session.state is SessionState.VIEWING
        assert session.base_sequence == 2

    def test_reload_discards_edits(self, session):
        """Test reloading the latest revision."""
        session.apply(RemoveElement(element_id="title"))
        session.reload()

        assert session.tree.find("title") is not None
        assert not session.dirty
