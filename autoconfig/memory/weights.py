"""
Per-observation term weights.

A term's weight blends how dominant it is in the current observation
(term frequency) with how surprising it is given everything observed
before (novelty)::

    weight = alpha * freq / len(tokens) + (1 - alpha) * 1 / ln(occ + 2)

``occ`` is the number of *earlier* observations containing the term.
The history behind it is kept as a document-frequency counter, so its
size follows the vocabulary rather than the number of observations.
An optional horizon limits novelty to the most recent N observations.
"""

from __future__ import annotations

import logging
import math
from collections import Counter, deque
from typing import Deque, Dict, FrozenSet, Iterable, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_ALPHA = 0.7

# Novelty of a never-seen term: 1 / ln(2).
MAX_NOVELTY = 1.0 / math.log(2.0)


def novelty(occurrences: int) -> float:
    """Novelty score for a term seen in *occurrences* past observations."""
    return 1.0 / math.log(occurrences + 2)


class InteractionHistory:
    """
    Which terms appeared in which past observations.

    With ``horizon=None`` every observation counts forever.  With a
    horizon, the oldest observation is subtracted from the counts once
    more than ``horizon`` observations have been recorded.
    """

    def __init__(self, horizon: Optional[int] = None):
        if horizon is not None and horizon <= 0:
            raise ValueError(f"history horizon must be positive, got {horizon}")
        self.horizon = horizon
        self._counts: Counter[str] = Counter()
        self._window: Deque[FrozenSet[str]] = deque()
        self._total = 0

    def __len__(self) -> int:
        """Number of observations currently counted."""
        return len(self._window) if self.horizon is not None else self._total

    def occurrences(self, term: str) -> int:
        """Number of counted observations that contain *term*."""
        return self._counts.get(term, 0)

    def record(self, tokens: Iterable[str]) -> None:
        """Append one observation (an empty one still counts as an observation)."""
        terms = frozenset(tokens)
        self._counts.update(terms)
        self._total += 1

        if self.horizon is None:
            return

        self._window.append(terms)
        while len(self._window) > self.horizon:
            expired = self._window.popleft()
            self._counts.subtract(expired)
            for term in expired:
                if self._counts[term] <= 0:
                    del self._counts[term]

    def clear(self) -> None:
        self._counts.clear()
        self._window.clear()
        self._total = 0


class WeightEngine:
    """
    Computes term weights and keeps the history they depend on.

    Usage::

        engine = WeightEngine()
        weights = engine.observe(["red", "box", "box"])
    """

    def __init__(
        self,
        alpha: float = DEFAULT_ALPHA,
        history: Optional[InteractionHistory] = None,
    ):
        if not 0.0 <= alpha <= 1.0:
            raise ValueError(f"alpha must be within [0, 1], got {alpha}")
        self.alpha = alpha
        self.history = history if history is not None else InteractionHistory()

    def compute_weights(self, tokens: Sequence[str]) -> Dict[str, float]:
        """Weights for the tokens of one observation; the history is not modified."""
        if not tokens:
            return {}

        freq = Counter(tokens)
        total = len(tokens)
        return {
            term: self.alpha * (count / total)
            + (1.0 - self.alpha) * novelty(self.history.occurrences(term))
            for term, count in freq.items()
        }

    def record(self, tokens: Sequence[str]) -> None:
        self.history.record(tokens)

    def observe(self, tokens: Sequence[str]) -> Dict[str, float]:
        """Compute weights against past observations, then record this one."""
        weights = self.compute_weights(tokens)
        self.record(tokens)
        logger.debug("Weighted %d distinct terms (%d in history)", len(weights), len(self.history))
        return weights
