"""Tests for IdeaStore — one JSON file per idea, locked read-modify-write."""

import json
import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from ideaqueue.errors import LockTimeout, NotFound
from ideaqueue.ideas import ledger
from ideaqueue.ideas.models import Idea, RevisionType
from ideaqueue.ideas.store import IdeaStore
from ideaqueue.stages import IdeaStatus, Stage
from ideaqueue.storage import exclusive_lock


def _make_idea(phrase: str = "Coffee first", **kwargs: object) -> Idea:
    return Idea(phrase=phrase, **kwargs)  # type: ignore[arg-type]


class TestInsert:
    def test_writes_one_file_per_idea(self, tmp_path: Path):
        store = IdeaStore(tmp_path)
        idea = store.insert(_make_idea())

        path = tmp_path / "ideas" / f"{idea.id}.json"
        assert path.exists()
        assert json.loads(path.read_text())["phrase"] == "Coffee first"

    def test_duplicate_id_rejected(self, tmp_path: Path):
        store = IdeaStore(tmp_path)
        idea = store.insert(_make_idea())
        with pytest.raises(ValueError):
            store.insert(_make_idea(id=idea.id))


class TestGet:
    def test_roundtrip(self, tmp_path: Path):
        store = IdeaStore(tmp_path)
        idea = store.insert(_make_idea(variants=[{"size": "M", "color": "navy"}], catalog_id=71))

        fetched = store.get(idea.id)
        assert fetched == idea

    def test_missing_returns_none(self, tmp_path: Path):
        assert IdeaStore(tmp_path).get("nope") is None

    def test_path_like_ids_are_not_found(self, tmp_path: Path):
        store = IdeaStore(tmp_path)
        assert store.get("../buckets") is None
        with pytest.raises(NotFound):
            store.require("")

    def test_corrupt_file_is_skipped(self, tmp_path: Path, caplog):
        store = IdeaStore(tmp_path)
        good = store.insert(_make_idea())
        (tmp_path / "ideas" / "broken.json").write_text("{not json")

        assert store.get("broken") is None
        assert [i.id for i in store.list()] == [good.id]
        assert "Corrupt idea record" in caplog.text


class TestTransaction:
    def test_commits_on_clean_exit(self, tmp_path: Path):
        store = IdeaStore(tmp_path)
        idea = store.insert(_make_idea())

        with store.transaction(idea.id) as draft:
            draft.status = IdeaStatus.REJECTED

        saved = store.require(idea.id)
        assert saved.status == IdeaStatus.REJECTED
        assert saved.updated_at >= idea.updated_at

    def test_nothing_written_on_error(self, tmp_path: Path):
        store = IdeaStore(tmp_path)
        idea = store.insert(_make_idea())

        with pytest.raises(RuntimeError):
            with store.transaction(idea.id) as draft:
                draft.stage = Stage.DESIGN
                raise RuntimeError("boom")

        assert store.require(idea.id) == idea

    def test_unknown_idea(self, tmp_path: Path):
        store = IdeaStore(tmp_path)
        with pytest.raises(NotFound):
            with store.transaction("missing"):
                pass

    def test_lock_timeout(self, tmp_path: Path):
        store = IdeaStore(tmp_path, lock_timeout=0.1)
        idea = store.insert(_make_idea())
        lock_file = tmp_path / "locks" / "ideas" / f"{idea.id}.lock"

        with exclusive_lock(lock_file, 1.0, "test holder"):
            with pytest.raises(LockTimeout):
                with store.transaction(idea.id):
                    pass

    def test_concurrent_appends_are_all_kept(self, tmp_path: Path):
        store = IdeaStore(tmp_path)
        idea = store.insert(_make_idea())

        def worker(n: int) -> None:
            with store.transaction(idea.id) as draft:
                ledger.record(draft, Stage.PHRASE, RevisionType.REVISION, f"note {n}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        notes = {e.notes for e in store.require(idea.id).revision_history}
        assert notes == {f"note {n}" for n in range(10)}


class TestList:
    def _seed(self, store: IdeaStore) -> dict[str, Idea]:
        now = datetime.now(tz=UTC)
        ideas = {
            "old": _make_idea("old", created_at=now - timedelta(days=2), phrase_bucket_id="b1"),
            "mid": _make_idea(
                "mid",
                created_at=now - timedelta(days=1),
                stage=Stage.DESIGN,
                phrase_bucket_id="b1",
                design_bucket_id="d1",
            ),
            "new": _make_idea("new", created_at=now, status=IdeaStatus.REJECTED),
        }
        for idea in ideas.values():
            store.insert(idea)
        return ideas

    def test_newest_first(self, tmp_path: Path):
        store = IdeaStore(tmp_path)
        self._seed(store)
        assert [i.phrase for i in store.list()] == ["new", "mid", "old"]

    def test_filter_stage_and_status(self, tmp_path: Path):
        store = IdeaStore(tmp_path)
        self._seed(store)
        assert [i.phrase for i in store.list(stage=Stage.PHRASE)] == ["new", "old"]
        assert [i.phrase for i in store.list(status=IdeaStatus.REJECTED)] == ["new"]

    def test_bucket_filter_uses_stage_slot(self, tmp_path: Path):
        store = IdeaStore(tmp_path)
        self._seed(store)
        assert [i.phrase for i in store.list(stage=Stage.PHRASE, bucket_id="b1")] == ["old"]
        assert [i.phrase for i in store.list(stage=Stage.DESIGN, bucket_id="d1")] == ["mid"]

    def test_bucket_filter_without_stage_matches_any_slot(self, tmp_path: Path):
        store = IdeaStore(tmp_path)
        self._seed(store)
        assert [i.phrase for i in store.list(bucket_id="b1")] == ["mid", "old"]
        assert store.count_bucket_references("d1") == 1
        assert store.count_bucket_references("zzz") == 0

    def test_empty_store(self, tmp_path: Path):
        assert IdeaStore(tmp_path).list() == []
