"""
Similarity search over the preference store.

Every (entry, query token) pair is scored by cosine similarity between
the token's embedding and the entry's stored embedding.  Pairs at or
above the threshold become candidates, ranked long-term first and then
by ``weight * similarity``.

By default an entry that matches several query tokens is a candidate
once per token, so a single strong term can fill several of the
``top_k`` slots.  ``deduplicate=True`` keeps only each entry's best
match instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from .embeddings import cosine_similarity
from .preference_store import PreferenceStore, Tier
from .tokenizer import tokenize

DEFAULT_THRESHOLD = 0.75
DEFAULT_TOP_K = 5


@dataclass
class PreferenceMatch:
    """One ranked candidate."""
    key: str
    value: str
    weight: float
    similarity: float
    tier: Tier
    query_token: str

    @property
    def score(self) -> float:
        return self.weight * self.similarity

    def to_dict(self) -> Dict[str, object]:
        return {
            "key": self.key,
            "value": self.value,
            "weight": round(self.weight, 4),
            "similarity": round(self.similarity, 4),
            "tier": self.tier.value,
            "query_token": self.query_token,
        }


def _sort_key(match: PreferenceMatch) -> tuple[int, float]:
    return (0 if match.tier is Tier.LONG_TERM else 1, -match.score)


class RelevanceRanker:
    """
    Finds the stored preferences relevant to a piece of text.

    Usage::

        ranker = RelevanceRanker(store)
        for m in ranker.rank("Create a box diagram"):
            print(m.key, m.similarity)
    """

    def __init__(
        self,
        store: PreferenceStore,
        *,
        threshold: float = DEFAULT_THRESHOLD,
        top_k: int = DEFAULT_TOP_K,
        deduplicate: bool = False,
    ):
        if top_k <= 0:
            raise ValueError(f"top_k must be positive, got {top_k}")
        self.store = store
        self.threshold = threshold
        self.top_k = top_k
        self.deduplicate = deduplicate

    def candidates(self, query_text: str, threshold: Optional[float] = None) -> List[PreferenceMatch]:
        """All matches at or above *threshold*, unsorted and untruncated."""
        threshold = self.threshold if threshold is None else threshold
        tokens = tokenize(query_text)
        if not tokens or not len(self.store):
            return []

        lookup = self.store.lookup
        query_vectors = [(token, lookup.embed(token)) for token in tokens]

        matches: List[PreferenceMatch] = []
        for key, entry in self.store.items():
            best: Optional[PreferenceMatch] = None
            for token, vector in query_vectors:
                sim = cosine_similarity(vector, entry.embedding)
                if sim < threshold:
                    continue
                match = PreferenceMatch(
                    key=key,
                    value=entry.value,
                    weight=entry.weight,
                    similarity=sim,
                    tier=entry.tier,
                    query_token=token,
                )
                if not self.deduplicate:
                    matches.append(match)
                elif best is None or match.similarity > best.similarity:
                    best = match
            if best is not None:
                matches.append(best)
        return matches

    def rank(self, query_text: str, threshold: Optional[float] = None) -> List[PreferenceMatch]:
        """At most ``top_k`` matches, long-term first, then by score."""
        matches = self.candidates(query_text, threshold)
        # sort() is stable: equal keys keep store insertion order.
        matches.sort(key=_sort_key)
        return matches[:self.top_k]

