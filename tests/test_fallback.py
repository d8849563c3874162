"""Tests for the last-resort template picks."""

import random

import pytest

from fallback import (
    FALLBACK_BOTTOM_TEXT,
    FALLBACK_TEMPLATE_IDS,
    FALLBACK_TOP_TEXT,
    WIDEN_POOL_SIZE,
    extract_first_part,
    extract_second_part,
    select_fallback,
)

from conftest import make_template

LONG_TWEET = "I waited three whole hours for a bus that never actually showed up today"


def by_template(picks):
    return {c["template_id"]: c for c in picks}


class TestSelectFallback:
    """Random but well-behaved: distinct, exclusion-aware, invariant-preserving."""

    def test_picks_three_distinct_curated_templates(self, templates):
        picks = select_fallback(templates, rng=random.Random(3))
        ids = [c["template_id"] for c in picks]

        assert len(ids) == 3
        assert len(set(ids)) == 3
        assert all(i in FALLBACK_TEMPLATE_IDS for i in ids)

    def test_never_returns_excluded_when_pool_is_big_enough(self, templates):
        excluded = FALLBACK_TEMPLATE_IDS[:3]
        for seed in range(20):
            picks = select_fallback(templates, exclude_ids=excluded, rng=random.Random(seed))
            assert not {c["template_id"] for c in picks} & set(excluded)

    def test_widens_to_catalog_when_curated_pool_is_short(self, templates):
        excluded = FALLBACK_TEMPLATE_IDS[:5]
        picks = select_fallback(templates, exclude_ids=excluded, rng=random.Random(0))
        ids = [c["template_id"] for c in picks]

        assert len(ids) == 3
        assert len(set(ids)) == 3
        assert FALLBACK_TEMPLATE_IDS[5] in ids
        assert not set(ids) & set(excluded)
        first_ids = {t["id"] for t in templates[:WIDEN_POOL_SIZE]}
        assert set(ids) <= first_ids

    def test_reuses_excluded_only_when_nothing_else_is_left(self):
        catalog = [
            make_template("181913649", "Drake Hotline Bling"),
            make_template("438680", "Batman Slapping Robin"),
            make_template("1", "Only Other"),
        ]
        picks = select_fallback(catalog, exclude_ids=["181913649", "438680"], rng=random.Random(0))
        ids = [c["template_id"] for c in picks]

        assert ids[0] == "1"
        assert sorted(ids) == ["1", "181913649", "438680"]

    def test_seeded_rng_is_deterministic(self, templates):
        a = select_fallback(templates, seed_text="hello", rng=random.Random(42))
        b = select_fallback(templates, seed_text="hello", rng=random.Random(42))
        assert a == b

    def test_respects_count(self, templates):
        assert len(select_fallback(templates, count=1, rng=random.Random(1))) == 1
        assert len(select_fallback(templates, count=5, rng=random.Random(1))) == 5


class TestFallbackCaptions:
    """Captions follow the tweet's shape and each template's punchline."""

    def test_comparison_tweet_splits_across_boxes(self, templates):
        picks = select_fallback(
            templates, exclude_ids=["155067746", "129242436", "252600902"],
            seed_text="Tabs vs spaces", rng=random.Random(0),
        )
        assert set(by_template(picks)) == {"181913649", "161865971", "438680"}
        for c in picks:
            assert c["top_text"] == "Tabs"
            assert c["bottom_text"] == "spaces"
            assert c["text_boxes"] == [
                {"position": "top", "text": "Tabs"},
                {"position": "bottom", "text": "spaces"},
            ]

    def test_plain_tweet_uses_template_defaults(self, templates):
        picks = by_template(select_fallback(
            templates, exclude_ids=["155067746", "129242436", "252600902"],
            seed_text=LONG_TWEET, rng=random.Random(0),
        ))
        assert (picks["181913649"]["top_text"], picks["181913649"]["bottom_text"]) == ("The old way", "The new way")
        assert picks["161865971"]["bottom_text"] == "Sophisticated approach"
        assert picks["438680"]["bottom_text"] == "No."
        assert picks["438680"]["top_text"].startswith("I waited three whole hours")
        assert len(picks["438680"]["top_text"]) <= 40

    def test_reaction_templates_keep_their_punchline(self, templates):
        picks = by_template(select_fallback(
            templates, exclude_ids=["181913649", "161865971", "438680"],
            seed_text=LONG_TWEET, rng=random.Random(0),
        ))
        assert picks["155067746"]["bottom_text"] == "*surprised face*"
        assert len(picks["155067746"]["top_text"]) <= 50
        assert picks["129242436"]["bottom_text"] == "Change my mind"
        assert len(picks["129242436"]["top_text"]) <= 60
        assert picks["252600902"]["bottom_text"] == FALLBACK_BOTTOM_TEXT

    def test_widened_picks_get_the_generic_line(self):
        catalog = [make_template(str(i), f"Generic {i}") for i in range(5)]
        picks = select_fallback(catalog, seed_text=LONG_TWEET, rng=random.Random(1))

        for c in picks:
            assert len(c["top_text"]) <= 50
            assert c["top_text"].endswith("...")
            assert c["top_text"].startswith("I waited three whole hours")
            assert c["bottom_text"] == FALLBACK_BOTTOM_TEXT

    def test_short_seed_text_is_kept_whole(self):
        catalog = [make_template(str(i), f"Generic {i}") for i in range(3)]
        picks = select_fallback(catalog, seed_text="Mondays", rng=random.Random(1))
        assert picks[0]["top_text"] == "Mondays"

    def test_no_seed_text_uses_generic_caption(self, templates):
        for c in select_fallback(templates, rng=random.Random(1)):
            assert c["top_text"] == FALLBACK_TOP_TEXT
            assert c["bottom_text"] == FALLBACK_BOTTOM_TEXT


class TestExtractParts:
    @pytest.mark.parametrize("text, first, second", [
        ("Tabs vs spaces", "Tabs", "spaces"),
        ("Tabs vs. spaces", "Tabs", "spaces"),
        ("Tired: coffee / Wired: cold brew", "coffee", "cold brew"),
        ("Before: dial-up | After: fiber", "dial-up", "fiber"),
        ("Monday -> Friday", "Monday", "Friday"),
        ("cats vs dogs / birds", "cats", "dogs"),
        ("Expectation: a calm Monday\nReality: 40 unread emails",
         "Expectation: a calm Monday", "Reality: 40 unread emails"),
    ])
    def test_structured_tweets(self, text, first, second):
        assert extract_first_part(text) == first
        assert extract_second_part(text) == second

    def test_unstructured_tweet(self):
        assert extract_first_part("Just a normal sentence") is None
        assert extract_second_part("Just a normal sentence") is None

    def test_parts_are_truncated(self):
        left = "word " * 20
        assert len(extract_first_part(f"{left} vs short")) <= 50
