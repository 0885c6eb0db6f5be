"""Tests for rating module."""

import dataclasses

import pytest

from pickwise.rating import (
    ELO_DEFAULT,
    Candidate,
    CandidateState,
    ComparisonRecord,
    RatingStore,
    expected_score,
)


def create_store(*photo_ids: str) -> RatingStore:
    """Helper to create a store with default-rated candidates."""
    store = RatingStore()
    store.add_candidates(photo_ids)
    return store


class TestExpectedScore:
    def test_equal_ratings(self):
        assert expected_score(1500.0, 1500.0) == 0.5
        assert expected_score(1234.5, 1234.5) == 0.5

    def test_complementary(self):
        assert expected_score(1600.0, 1400.0) + expected_score(1400.0, 1600.0) == pytest.approx(1.0)

    def test_favourite_expected_higher(self):
        assert expected_score(1700.0, 1500.0) > 0.5
        assert expected_score(1300.0, 1500.0) < 0.5

    def test_400_point_gap(self):
        assert expected_score(1900.0, 1500.0) == pytest.approx(10 / 11)


class TestRatingStore:
    def test_add_candidate_defaults(self):
        store = RatingStore()
        candidate = store.add_candidate("a.jpg")

        assert candidate == Candidate(id="a.jpg", rating=ELO_DEFAULT, comparisons=0)
        assert "a.jpg" in store
        assert len(store) == 1

    def test_add_existing_candidate_keeps_state(self):
        store = create_store("a", "b")
        store.apply_win("a", "b")

        candidate = store.add_candidate("a")

        assert candidate.rating == 1516.0
        assert candidate.comparisons == 1
        assert len(store) == 2

    def test_add_candidates_returns_new_ids(self):
        store = create_store("a", "b")
        added = store.add_candidates(["b", "c", "d", "c"])

        assert added == ["c", "d"]
        assert [c.id for c in store.candidates] == ["a", "b", "c", "d"]

    def test_non_finite_rating_rejected(self):
        store = RatingStore()
        with pytest.raises(ValueError):
            store.add_candidate("a", rating=float("inf"))
        with pytest.raises(ValueError):
            store.add_candidate("b", rating=float("nan"))

    def test_negative_comparisons_rejected(self):
        store = RatingStore()
        with pytest.raises(ValueError):
            store.add_candidate("a", comparisons=-1)

    def test_candidates_are_immutable(self):
        store = create_store("a")
        with pytest.raises(dataclasses.FrozenInstanceError):
            store.get("a").rating = 2000.0

    def test_unknown_candidate(self):
        store = create_store("a")
        with pytest.raises(KeyError):
            store.apply_win("a", "missing")

    def test_apply_win_equal_ratings(self):
        store = create_store("a", "b")
        store.apply_win("a", "b")

        assert store.get("a").rating == 1516.0
        assert store.get("b").rating == 1484.0
        assert store.get("a").comparisons == 1
        assert store.get("b").comparisons == 1

    def test_apply_win_upset_moves_more(self):
        store = RatingStore()
        store.add_candidate("strong", rating=1700.0)
        store.add_candidate("weak", rating=1300.0)

        store.apply_win("weak", "strong")

        gain = store.get("weak").rating - 1300.0
        assert gain > 16.0
        assert store.get("strong").rating == pytest.approx(1700.0 - gain)

    def test_apply_win_record(self):
        store = create_store("a", "b")
        record = store.apply_win("b", "a")

        assert record.id_a == "b"
        assert record.id_b == "a"
        assert record.winner_id == "b"
        assert record.pre_a == CandidateState(rating=1500.0, comparisons=0)
        assert record.pre_b == CandidateState(rating=1500.0, comparisons=0)

    def test_apply_tie_equal_ratings(self):
        store = create_store("a", "b")
        record = store.apply_tie("a", "b")

        assert store.get("a").rating == 1500.0
        assert store.get("b").rating == 1500.0
        assert store.get("a").comparisons == 1
        assert store.get("b").comparisons == 1
        assert record.winner_id is None

    def test_apply_tie_pulls_ratings_together(self):
        store = RatingStore()
        store.add_candidate("high", rating=1600.0)
        store.add_candidate("low", rating=1400.0)

        store.apply_tie("high", "low")

        assert store.get("high").rating < 1600.0
        assert store.get("low").rating > 1400.0

    def test_compare_with_itself(self):
        store = create_store("a")
        with pytest.raises(ValueError):
            store.apply_win("a", "a")

    def test_resolve_keeps_pair_order(self):
        store = create_store("a", "b")
        record = store.resolve("a", "b", "b")

        assert record.id_a == "a"
        assert record.id_b == "b"
        assert record.winner_id == "b"
        assert store.get("b").rating == 1516.0
        assert store.get("a").rating == 1484.0

    def test_resolve_tie(self):
        store = create_store("a", "b")
        record = store.resolve("a", "b", None)

        assert record.winner_id is None
        assert store.get("a").comparisons == 1

    def test_resolve_rejects_outsider(self):
        store = create_store("a", "b", "c")
        with pytest.raises(ValueError):
            store.resolve("a", "b", "c")

    def test_undo_win(self):
        store = create_store("a", "b")
        before = store.candidates

        record = store.apply_win("a", "b")
        store.undo(record)

        assert store.candidates == before

    def test_undo_tie(self):
        store = RatingStore()
        store.add_candidate("a", rating=1612.3, comparisons=4)
        store.add_candidate("b", rating=1388.9, comparisons=2)
        before = store.candidates

        record = store.apply_tie("b", "a")
        store.undo(record)

        assert store.candidates == before

    def test_undo_restores_exact_floats(self):
        store = create_store("a", "b", "c")
        records = [
            store.apply_win("a", "b"),
            store.apply_tie("b", "c"),
            store.resolve("c", "a", "a"),
        ]
        snapshots = [store.candidates]

        for record in reversed(records):
            store.undo(record)

        # Replay gives identical floating point results
        replay = create_store("a", "b", "c")
        replay.apply_win("a", "b")
        replay.apply_tie("b", "c")
        replay.resolve("c", "a", "a")

        assert replay.candidates == snapshots[0]
        assert all(c.rating == ELO_DEFAULT and c.comparisons == 0 for c in store.candidates)

    def test_undo_uses_recorded_state(self):
        store = create_store("a", "b")
        record = ComparisonRecord(
            id_a="a",
            id_b="b",
            winner_id="a",
            pre_a=CandidateState(rating=1234.5678, comparisons=7),
            pre_b=CandidateState(rating=1765.4321, comparisons=3),
        )

        store.undo(record)

        assert store.get("a") == Candidate("a", 1234.5678, 7)
        assert store.get("b") == Candidate("b", 1765.4321, 3)

    def test_ranked_and_top(self):
        store = RatingStore()
        store.add_candidate("mid", rating=1500.0)
        store.add_candidate("top", rating=1600.0)
        store.add_candidate("tie", rating=1500.0)
        store.add_candidate("low", rating=1400.0)

        assert [c.id for c in store.ranked()] == ["top", "mid", "tie", "low"]
        assert [c.id for c in store.top(2)] == ["top", "mid"]
        assert store.top(0) == []
        assert len(store.top(10)) == 4


class TestComparisonRecord:
    def test_involves_either_order(self):
        state = CandidateState(rating=1500.0, comparisons=0)
        record = ComparisonRecord("a", "b", None, state, state)

        assert record.involves("a", "b")
        assert record.involves("b", "a")
        assert not record.involves("a", "c")
