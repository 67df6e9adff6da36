"""
Tests for autoconfig/memory/weights.py — frequency/novelty term weights.
"""

from __future__ import annotations

import math

import pytest

from autoconfig.memory.weights import (
    MAX_NOVELTY,
    InteractionHistory,
    WeightEngine,
    novelty,
)


def _expected(freq: int, total: int, occ: int, alpha: float = 0.7) -> float:
    return alpha * freq / total + (1 - alpha) / math.log(occ + 2)


# ── novelty ───────────────────────────────────────────────────────────

class TestNovelty:
    def test_unseen_term_is_max(self):
        assert novelty(0) == pytest.approx(1 / math.log(2))
        assert novelty(0) == MAX_NOVELTY

    def test_decreases_with_occurrences(self):
        values = [novelty(n) for n in range(0, 50, 5)]
        assert values == sorted(values, reverse=True)

    def test_approaches_zero(self):
        assert novelty(10**9) < 0.05


# ── InteractionHistory ────────────────────────────────────────────────

class TestInteractionHistory:
    def test_counts_observations_not_repeats(self):
        h = InteractionHistory()
        h.record(["box", "box", "red"])
        assert h.occurrences("box") == 1

    def test_counts_across_observations(self):
        h = InteractionHistory()
        h.record(["box"])
        h.record(["box", "red"])
        assert h.occurrences("box") == 2
        assert h.occurrences("red") == 1
        assert h.occurrences("tikz") == 0
        assert len(h) == 2

    def test_empty_observation_still_counts(self):
        h = InteractionHistory()
        h.record([])
        assert len(h) == 1

    def test_horizon_forgets_oldest(self):
        h = InteractionHistory(horizon=2)
        h.record(["box"])
        h.record(["red"])
        h.record(["green"])
        assert h.occurrences("box") == 0
        assert h.occurrences("red") == 1
        assert h.occurrences("green") == 1
        assert len(h) == 2

    def test_horizon_keeps_recent_repeats(self):
        h = InteractionHistory(horizon=2)
        h.record(["box"])
        h.record(["box"])
        h.record(["box"])
        assert h.occurrences("box") == 2

    def test_invalid_horizon(self):
        with pytest.raises(ValueError):
            InteractionHistory(horizon=0)

    def test_clear(self):
        h = InteractionHistory()
        h.record(["box"])
        h.clear()
        assert h.occurrences("box") == 0
        assert len(h) == 0


# ── WeightEngine ──────────────────────────────────────────────────────

class TestComputeWeights:
    def test_empty_tokens(self):
        assert WeightEngine().compute_weights([]) == {}

    def test_fresh_terms(self):
        weights = WeightEngine().compute_weights(["draw", "red", "box", "using", "tikz"])
        assert set(weights) == {"draw", "red", "box", "using", "tikz"}
        for w in weights.values():
            assert w == pytest.approx(_expected(1, 5, 0))

    def test_frequency_raises_weight(self):
        weights = WeightEngine().compute_weights(["box", "box", "red"])
        assert weights["box"] == pytest.approx(_expected(2, 3, 0))
        assert weights["red"] == pytest.approx(_expected(1, 3, 0))
        assert weights["box"] > weights["red"]

    def test_history_lowers_novelty(self):
        engine = WeightEngine()
        engine.record(["box", "red"])
        weights = engine.compute_weights(["add", "green", "box"])
        assert weights["box"] == pytest.approx(_expected(1, 3, 1))
        assert weights["add"] == pytest.approx(_expected(1, 3, 0))

    def test_compute_does_not_record(self):
        engine = WeightEngine()
        engine.compute_weights(["box"])
        assert engine.history.occurrences("box") == 0

    def test_current_observation_excluded_from_novelty(self):
        engine = WeightEngine()
        weights = engine.observe(["box"])
        assert weights["box"] == pytest.approx(_expected(1, 1, 0))
        assert engine.history.occurrences("box") == 1

    def test_alpha_one_is_pure_frequency(self):
        weights = WeightEngine(alpha=1.0).compute_weights(["box", "box", "red", "tikz"])
        assert weights["box"] == pytest.approx(0.5)
        assert weights["red"] == pytest.approx(0.25)

    def test_alpha_zero_is_pure_novelty(self):
        engine = WeightEngine(alpha=0.0)
        engine.record(["box"])
        assert engine.compute_weights(["box"])["box"] == pytest.approx(1 / math.log(3))

    def test_invalid_alpha(self):
        with pytest.raises(ValueError):
            WeightEngine(alpha=1.5)

    def test_horizon_restores_novelty(self):
        engine = WeightEngine(history=InteractionHistory(horizon=1))
        engine.observe(["box"])
        engine.observe(["red"])
        assert engine.compute_weights(["box"])["box"] == pytest.approx(_expected(1, 1, 0))
