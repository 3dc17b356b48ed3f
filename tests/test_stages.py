"""Tests for the stage graph."""

import pytest
from ideaqueue.stages import (
    BUCKET_STAGES,
    STAGE_ORDER,
    Stage,
    bucket_field,
    next_of,
    parse_stage,
    previous_stages,
)


class TestStageOrder:
    def test_total_order(self):
        assert Stage.PHRASE < Stage.DESIGN < Stage.PRODUCT < Stage.LISTING < Stage.PUBLISH

    def test_order_is_not_alphabetical(self):
        # "design" sorts before "phrase" as a string
        assert Stage.PHRASE < Stage.DESIGN
        assert sorted([Stage.PUBLISH, Stage.DESIGN, Stage.PHRASE]) == [
            Stage.PHRASE,
            Stage.DESIGN,
            Stage.PUBLISH,
        ]

    def test_comparisons(self):
        assert Stage.LISTING >= Stage.LISTING
        assert Stage.LISTING <= Stage.PUBLISH
        assert Stage.PUBLISH > Stage.PHRASE
        assert not Stage.DESIGN < Stage.DESIGN

    def test_positions(self):
        assert [s.position for s in STAGE_ORDER] == [0, 1, 2, 3, 4]

    def test_values(self):
        assert [s.value for s in Stage] == ["phrase", "design", "product", "listing", "publish"]


class TestNextOf:
    @pytest.mark.parametrize(
        ("stage", "expected"),
        [
            (Stage.PHRASE, Stage.DESIGN),
            (Stage.DESIGN, Stage.PRODUCT),
            (Stage.PRODUCT, Stage.LISTING),
            (Stage.LISTING, Stage.PUBLISH),
        ],
    )
    def test_forward(self, stage, expected):
        assert next_of(stage) == expected

    def test_publish_is_terminal(self):
        assert next_of(Stage.PUBLISH) is None

    def test_previous_stages(self):
        assert previous_stages(Stage.PRODUCT) == (Stage.PHRASE, Stage.DESIGN)
        assert previous_stages(Stage.PHRASE) == ()


class TestBucketField:
    def test_every_bucket_stage_has_a_slot(self):
        assert [bucket_field(s) for s in BUCKET_STAGES] == [
            "phrase_bucket_id",
            "design_bucket_id",
            "product_bucket_id",
            "listing_bucket_id",
        ]

    def test_publish_has_no_slot(self):
        assert bucket_field(Stage.PUBLISH) is None
        assert Stage.PUBLISH not in BUCKET_STAGES


class TestParseStage:
    def test_parses_strings(self):
        assert parse_stage("design") == Stage.DESIGN
        assert parse_stage(" Listing ") == Stage.LISTING

    def test_passes_through_stage(self):
        assert parse_stage(Stage.PUBLISH) is Stage.PUBLISH

    def test_rejects_unknown(self):
        with pytest.raises(ValueError):
            parse_stage("shipping")
