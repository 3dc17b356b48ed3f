"""Tests for the revision ledger."""

import pytest
from ideaqueue.ideas import ledger
from ideaqueue.ideas.models import Idea, RevisionEntry, RevisionType
from ideaqueue.stages import Stage
from pydantic import ValidationError


class TestAppend:
    @pytest.mark.parametrize("count", [1, 2, 5, 20])
    def test_newest_first(self, count):
        idea = Idea(phrase="Coffee first")
        for i in range(count):
            entry = RevisionEntry(stage=Stage.PHRASE, type=RevisionType.REVISION, notes=f"n{i}")
            ledger.append(idea, entry)

        assert len(idea.revision_history) == count
        assert idea.revision_history[0].notes == f"n{count - 1}"
        assert idea.revision_history[-1].notes == "n0"

    def test_existing_entries_are_untouched(self):
        idea = Idea(phrase="Coffee first")
        first = ledger.record(idea, Stage.PHRASE, RevisionType.FORWARD, "go")
        ledger.record(idea, Stage.DESIGN, RevisionType.REVISION, "bolder")

        assert idea.revision_history[1] == first

    def test_entries_are_frozen(self):
        entry = RevisionEntry(stage=Stage.PHRASE, type=RevisionType.FORWARD, notes="go")
        with pytest.raises(ValidationError):
            entry.notes = "changed"  # type: ignore[misc]


class TestRecord:
    def test_stamps_timestamp(self):
        idea = Idea(phrase="Coffee first")
        entry = ledger.record(idea, Stage.DESIGN, RevisionType.REVISION, "more contrast")

        assert entry.timestamp.tzinfo is not None
        assert idea.revision_history == [entry]


class TestQueries:
    def _idea(self) -> Idea:
        idea = Idea(phrase="Coffee first")
        ledger.record(idea, Stage.PHRASE, RevisionType.FORWARD, "tighten the hook")
        ledger.record(idea, Stage.DESIGN, RevisionType.REVISION, "bolder type")
        ledger.record(idea, Stage.DESIGN, RevisionType.FORWARD, "use the navy shirt")
        return idea

    def test_filter_by_stage(self):
        notes = [e.notes for e in ledger.entries(self._idea(), stage=Stage.DESIGN)]
        assert notes == ["use the navy shirt", "bolder type"]

    def test_filter_by_type(self):
        notes = [e.notes for e in ledger.entries(self._idea(), type=RevisionType.FORWARD)]
        assert notes == ["use the navy shirt", "tighten the hook"]

    def test_latest_guidance(self):
        idea = self._idea()
        assert ledger.latest_guidance(idea, Stage.PHRASE) == "tighten the hook"
        assert ledger.latest_guidance(idea, Stage.DESIGN) == "use the navy shirt"
        assert ledger.latest_guidance(idea, Stage.LISTING) is None
