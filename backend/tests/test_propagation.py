"""
Tests for cross-section level propagation.
"""
from unittest.mock import patch

from sqlalchemy.exc import SQLAlchemyError

from entrance.core.adaptive.levels import LevelState
from entrance.core.adaptive.propagation import (
    needs_overwrite,
    propagation_targets,
    sync_dependent_sections,
)
from entrance.core.adaptive.sections import ParallelDependent
from entrance.models import TestSection


def targets_as_dict(targets):
    return {t.section: str(t.target) for t in targets}


def section_levels(db, test_id):
    rows = db.query(TestSection).filter(TestSection.test_id == test_id).all()
    return {row.section: f"{row.current_level}.{row.current_sublevel}" for row in rows}


class TestPropagationTargets:
    """Tests for the pure target computation."""

    def test_grammar_drives_every_dependent(self):
        """Test reading=grammar, listening=grammar-1, dialog=listening-1."""
        targets = propagation_targets("grammar", LevelState(3, 2))

        assert [t.section for t in targets] == ["reading", "listening", "dialog"]
        assert targets_as_dict(targets) == {
            "reading": "3.2",
            "listening": "3.1",
            "dialog": "2.3",
        }
        assert targets[2].source == "listening"

    def test_listening_drives_dialog_only(self):
        targets = propagation_targets("listening", LevelState(4, 1))
        assert targets_as_dict(targets) == {"dialog": "3.3"}

    def test_leaf_sections_have_no_targets(self):
        assert propagation_targets("reading", LevelState(5, 1)) == []
        assert propagation_targets("dialog", LevelState(5, 1)) == []

    def test_offsets_saturate(self):
        """Test that negative offsets stop at 1.1."""
        targets = propagation_targets("grammar", LevelState(1, 1))
        assert targets_as_dict(targets) == {
            "reading": "1.1",
            "listening": "1.1",
            "dialog": "1.1",
        }

    def test_cycle_visits_each_section_once(self):
        """Test that a cyclic rule set terminates with no repeats."""
        graph = {
            "grammar": [ParallelDependent("reading", 1)],
            "reading": [ParallelDependent("grammar", 1), ParallelDependent("dialog", 1)],
            "dialog": [ParallelDependent("reading", 1)],
        }
        targets = propagation_targets("grammar", LevelState(2, 1), dependents=graph)
        assert targets_as_dict(targets) == {"reading": "2.2", "dialog": "2.3"}


class TestNeedsOverwrite:
    """Tests for needs_overwrite."""

    def test_missing_row(self):
        assert not needs_overwrite(None, LevelState(2, 1))

    def test_started_row_is_kept(self):
        row = TestSection(
            section="reading", current_level=2, current_sublevel=1, questions_served=1
        )
        assert not needs_overwrite(row, LevelState(3, 1))

    def test_same_level_is_not_rewritten(self):
        row = TestSection(
            section="reading", current_level=3, current_sublevel=1, questions_served=0
        )
        assert not needs_overwrite(row, LevelState(3, 1))

    def test_unstarted_row_with_other_level(self):
        row = TestSection(
            section="reading", current_level=2, current_sublevel=1, questions_served=0
        )
        assert needs_overwrite(row, LevelState(3, 1))


class TestSyncDependentSections:
    """Tests for sync_dependent_sections against the database."""

    def test_rewrites_unstarted_dependents(self, db_session, started_test):
        """Test that every unstarted dependent follows grammar."""
        updated = sync_dependent_sections(
            db_session, started_test.id, "grammar", LevelState(3, 2)
        )

        assert updated == ["reading", "listening", "dialog"]
        levels = section_levels(db_session, started_test.id)
        assert levels["reading"] == "3.2"
        assert levels["listening"] == "3.1"
        assert levels["dialog"] == "2.3"
        assert levels["grammar"] == "2.1"

    def test_started_dependent_is_not_overwritten(self, db_session, started_test):
        """Test that a started listening section keeps its level but dialog follows."""
        listening = (
            db_session.query(TestSection)
            .filter(
                TestSection.test_id == started_test.id,
                TestSection.section == "listening",
            )
            .one()
        )
        listening.questions_served = 2
        db_session.commit()

        updated = sync_dependent_sections(
            db_session, started_test.id, "grammar", LevelState(4, 1)
        )

        assert updated == ["reading", "dialog"]
        levels = section_levels(db_session, started_test.id)
        assert levels["listening"] == "2.1"
        # dialog follows the listening target, not the stored listening row
        assert levels["dialog"] == "3.2"

    def test_database_error_stops_propagation(self, db_session, started_test):
        """Test that a failed write is logged and never raised."""
        with patch.object(
            db_session, "commit", side_effect=SQLAlchemyError("disk full")
        ), patch("entrance.core.adaptive.propagation.logger") as mock_logger:
            updated = sync_dependent_sections(
                db_session, started_test.id, "grammar", LevelState(5, 1)
            )

        assert updated == []
        mock_logger.error.assert_called_once()
        message = mock_logger.error.call_args[0][0]
        assert "Propagation from grammar stopped at reading" in message
        db_session.expire_all()
        assert section_levels(db_session, started_test.id)["reading"] == "2.1"

    def test_no_rows_is_noop(self, db_session, assigned_test):
        """Test that a test without section rows propagates nothing."""
        assert sync_dependent_sections(
            db_session, assigned_test.id, "grammar", LevelState(3, 2)
        ) == []
