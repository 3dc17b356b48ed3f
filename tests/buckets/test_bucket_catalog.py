"""Tests for the bucket catalog and its JSON store."""

from pathlib import Path

import pytest
from ideaqueue.buckets.catalog import BucketCatalog, load_seed_file
from ideaqueue.buckets.models import BucketSeed
from ideaqueue.buckets.store import BUCKETS_FILENAME, BucketStore
from ideaqueue.errors import (
    BucketStageMismatch,
    CorruptStore,
    LockTimeout,
    NotFound,
    ValidationError,
)
from ideaqueue.ideas.models import Idea
from ideaqueue.ideas.store import IdeaStore
from ideaqueue.stages import Stage


@pytest.fixture
def ideas(tmp_path: Path) -> IdeaStore:
    return IdeaStore(tmp_path)


@pytest.fixture
def catalog(tmp_path: Path, ideas: IdeaStore) -> BucketCatalog:
    return BucketCatalog(BucketStore(tmp_path), ideas)


class TestCreate:
    def test_creates_and_persists(self, tmp_path: Path, catalog: BucketCatalog):
        bucket = catalog.create("Coffee", "phrase", "Coffee jokes for morning people")

        assert bucket.stage == Stage.PHRASE
        assert bucket.is_active is True
        assert (tmp_path / BUCKETS_FILENAME).exists()
        assert catalog.get(bucket.id) == bucket

    @pytest.mark.parametrize("stage", ["phrase", "design", "product", "listing"])
    def test_accepts_pre_publish_stages(self, catalog: BucketCatalog, stage):
        assert catalog.create("B", stage, "p").stage == Stage(stage)

    @pytest.mark.parametrize("stage", ["publish", "shipping", "PHRASE "])
    def test_rejects_other_stages(self, catalog: BucketCatalog, stage):
        with pytest.raises(ValidationError, match="stage must be one of"):
            catalog.create("B", stage, "p")

    @pytest.mark.parametrize(
        ("name", "stage", "prompt"),
        [("", "phrase", "p"), ("B", "", "p"), ("B", "phrase", "")],
    )
    def test_requires_fields(self, catalog: BucketCatalog, name, stage, prompt):
        with pytest.raises(ValidationError, match="name, stage, and prompt are required"):
            catalog.create(name, stage, prompt)
        assert catalog.list() == []


class TestList:
    def test_ordered_by_stage_then_sort_order_then_name(self, catalog: BucketCatalog):
        catalog.create("Zeta", "design", "p", sort_order=0)
        catalog.create("Beta", "phrase", "p", sort_order=1)
        catalog.create("Alpha", "phrase", "p", sort_order=1)
        catalog.create("Last", "phrase", "p", sort_order=0)

        assert [b.name for b in catalog.list()] == ["Last", "Alpha", "Beta", "Zeta"]
        assert [b.name for b in catalog.list(Stage.DESIGN)] == ["Zeta"]

    def test_list_active(self, catalog: BucketCatalog):
        catalog.create("On", "phrase", "p")
        catalog.create("Off", "phrase", "p", is_active=False)
        assert [b.name for b in catalog.list_active("phrase")] == ["On"]

    def test_corrupt_catalog_reads_empty(self, tmp_path: Path, catalog: BucketCatalog, caplog):
        (tmp_path / BUCKETS_FILENAME).write_text("[[[")
        assert catalog.list() == []
        assert "Corrupt bucket catalog" in caplog.text

    def test_corrupt_catalog_is_never_overwritten(self, tmp_path: Path, catalog: BucketCatalog):
        catalog.create("Coffee", "phrase", "p")
        path = tmp_path / BUCKETS_FILENAME
        damaged = path.read_text()[:-5]
        path.write_text(damaged)

        with pytest.raises(CorruptStore):
            catalog.create("Cats", "phrase", "p")
        with pytest.raises(CorruptStore):
            catalog.seed([BucketSeed(stage="phrase", name="Cats", prompt="p")])

        assert path.read_text() == damaged


class TestResolveAssignment:
    def test_matching_stage(self, catalog: BucketCatalog):
        bucket = catalog.create("Minimal", "design", "p")
        assert catalog.resolve_assignment(bucket.id, Stage.DESIGN) == bucket

    def test_unknown_bucket(self, catalog: BucketCatalog):
        with pytest.raises(NotFound):
            catalog.resolve_assignment("missing", Stage.DESIGN)

    def test_stage_mismatch(self, catalog: BucketCatalog):
        bucket = catalog.create("Coffee", "phrase", "p")
        with pytest.raises(BucketStageMismatch) as exc_info:
            catalog.resolve_assignment(bucket.id, Stage.DESIGN)
        assert exc_info.value.bucket_stage == "phrase"
        assert exc_info.value.expected == "design"

    def test_inactive_only_when_already_assigned(self, catalog: BucketCatalog):
        bucket = catalog.create("Old", "design", "p", is_active=False)
        with pytest.raises(ValidationError, match="inactive"):
            catalog.resolve_assignment(bucket.id, Stage.DESIGN)
        assert catalog.resolve_assignment(bucket.id, Stage.DESIGN, current=bucket.id) == bucket


class TestUpdate:
    def test_partial_update(self, catalog: BucketCatalog):
        bucket = catalog.create("Coffee", "phrase", "p")
        updated = catalog.update(bucket.id, {"prompt": "Espresso puns", "sort_order": 3})

        assert updated.prompt == "Espresso puns"
        assert updated.sort_order == 3
        assert updated.name == "Coffee"
        assert catalog.get(bucket.id) == updated

    def test_unknown_field(self, catalog: BucketCatalog):
        bucket = catalog.create("Coffee", "phrase", "p")
        with pytest.raises(ValidationError, match="Unknown bucket fields"):
            catalog.update(bucket.id, {"id": "other"})

    def test_empty_name(self, catalog: BucketCatalog):
        bucket = catalog.create("Coffee", "phrase", "p")
        with pytest.raises(ValidationError):
            catalog.update(bucket.id, {"name": ""})

    def test_invalid_stage(self, catalog: BucketCatalog):
        bucket = catalog.create("Coffee", "phrase", "p")
        with pytest.raises(ValidationError, match="stage must be one of"):
            catalog.update(bucket.id, {"stage": "publish"})

    def test_stage_change_refused_when_referenced(
        self, catalog: BucketCatalog, ideas: IdeaStore
    ):
        bucket = catalog.create("Coffee", "phrase", "p")
        ideas.insert(Idea(phrase="Coffee first", phrase_bucket_id=bucket.id))

        with pytest.raises(ValidationError, match="reference it"):
            catalog.update(bucket.id, {"stage": "design"})
        assert catalog.get(bucket.id).stage == Stage.PHRASE

    def test_stage_change_when_unreferenced(self, catalog: BucketCatalog):
        bucket = catalog.create("Coffee", "phrase", "p")
        assert catalog.update(bucket.id, {"stage": "design"}).stage == Stage.DESIGN

    def test_unknown_bucket(self, catalog: BucketCatalog):
        with pytest.raises(NotFound):
            catalog.update("missing", {"name": "x"})


class TestDelete:
    def test_hard_delete_when_unreferenced(self, catalog: BucketCatalog):
        bucket = catalog.create("Coffee", "phrase", "p")
        result = catalog.delete(bucket.id)

        assert result.deleted is True
        with pytest.raises(NotFound):
            catalog.get(bucket.id)

    def test_deactivates_when_referenced(self, catalog: BucketCatalog, ideas: IdeaStore):
        bucket = catalog.create("Minimal", "design", "p")
        ideas.insert(Idea(phrase="a", design_bucket_id=bucket.id))
        ideas.insert(Idea(phrase="b", design_bucket_id=bucket.id))

        result = catalog.delete(bucket.id)

        assert result.deleted is False
        assert result.deactivated is True
        assert result.references == 2
        assert catalog.get(bucket.id).is_active is False

    def test_unknown_bucket(self, catalog: BucketCatalog):
        with pytest.raises(NotFound):
            catalog.delete("missing")

    def test_waits_for_pending_assignment(self, tmp_path: Path, ideas: IdeaStore):
        catalog = BucketCatalog(BucketStore(tmp_path, lock_timeout=0.1), ideas)
        bucket = catalog.create("Minimal", "design", "p")

        with catalog.assignment_lock():
            with pytest.raises(LockTimeout):
                catalog.delete(bucket.id)
            ideas.insert(Idea(phrase="a", design_bucket_id=bucket.id))

        result = catalog.delete(bucket.id)
        assert result.deactivated is True
        assert catalog.get(bucket.id).is_active is False


class TestSeed:
    def test_upserts_by_stage_and_name(self, catalog: BucketCatalog):
        existing = catalog.create("Coffee", "phrase", "old prompt", sort_order=9)
        seeded = catalog.seed(
            [
                BucketSeed(stage="phrase", name="Cats", prompt="Cat puns"),
                BucketSeed(stage="phrase", name="Coffee", prompt="new prompt"),
                BucketSeed(stage="design", name="Coffee", prompt="Coffee art"),
            ]
        )

        assert len(seeded) == 3
        assert len(catalog.list()) == 3
        coffee = catalog.get(existing.id)
        assert coffee.prompt == "new prompt"
        assert coffee.sort_order == 1
        assert [b.name for b in catalog.list(Stage.PHRASE)] == ["Cats", "Coffee"]

    def test_invalid_entry_writes_nothing(self, catalog: BucketCatalog):
        with pytest.raises(ValidationError):
            catalog.seed(
                [
                    BucketSeed(stage="phrase", name="Cats", prompt="Cat puns"),
                    BucketSeed(stage="publish", name="Nope", prompt="p"),
                ]
            )
        assert catalog.list() == []

    def test_load_seed_file(self, tmp_path: Path):
        seed_file = tmp_path / "buckets.toml"
        seed_file.write_text(
            '[[buckets]]\nstage = "phrase"\nname = "Cats"\nprompt = "Cat puns"\n\n'
            '[[buckets]]\nstage = "listing"\nname = "Gift"\nprompt = "Gift-giving copy"\n'
        )
        seeds = load_seed_file(seed_file)
        assert [(s.stage, s.name) for s in seeds] == [("phrase", "Cats"), ("listing", "Gift")]

    def test_load_seed_file_invalid(self, tmp_path: Path):
        seed_file = tmp_path / "buckets.toml"
        seed_file.write_text('[[buckets]]\nstage = "phrase"\n')
        with pytest.raises(ValidationError):
            load_seed_file(seed_file)
