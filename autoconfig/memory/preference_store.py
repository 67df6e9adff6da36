"""
Weighted preference memory with short-term and long-term tiers.

One entry per distinct term.  Every observation runs the same update:

1. **Decay**: every entry's weight is multiplied by ``decay_rate``,
   once per observation.
2. **Reinforce**: each observed token creates its entry (weight = the
   token's computed weight, tier SHORT_TERM) or adds its weight to the
   existing one and refreshes ``last_seen``.  A token that occurs twice
   in one observation is reinforced twice.
3. **Promote / evict**: right after a token's update, weight at or
   above ``promotion_threshold`` moves the entry to LONG_TERM, and
   weight below ``demote_threshold`` removes it.

Tier and existence are independent.  Promotion is never undone, but a
LONG_TERM entry whose weight is below the demote threshold when checked
is evicted like any other; re-observing the term starts a new
SHORT_TERM entry.  Only entries touched by an observation are checked;
``prune()`` sweeps the whole store, including entries that decayed
below the threshold without being observed again.  Until it runs, such
entries remain in the store and can still be returned by ranking.

New terms are embedded before anything is changed, so an embedding
model that breaks its dimension contract leaves the store untouched.

The store is saved through its ``StateBackend`` after every mutation.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence

from .embeddings import EmbeddingLookup
from .persistence import InMemoryBackend, Snapshot, StateBackend

logger = logging.getLogger(__name__)

DEFAULT_DECAY_RATE = 0.95
DEFAULT_PROMOTION_THRESHOLD = 2.0
DEFAULT_DEMOTE_THRESHOLD = 0.3


class Tier(str, Enum):
    SHORT_TERM = "short-term"
    LONG_TERM = "long-term"


# ------------------------------------------------------------------
# Data structures
# ------------------------------------------------------------------

@dataclass
class PreferenceEntry:
    """A remembered term and its current standing."""
    value: str
    weight: float
    embedding: List[float]
    last_seen: float
    tier: Tier = Tier.SHORT_TERM

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "weight": self.weight,
            "embedding": list(self.embedding),
            "lastSeen": self.last_seen,
            "tier": self.tier.value,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "PreferenceEntry":
        """
        Rebuild an entry from its snapshot form.

        Raises ``KeyError``, ``TypeError`` or ``ValueError`` when a field
        is missing or unusable.  ``"type"`` is accepted for ``"tier"``.
        """
        if not isinstance(d, Mapping):
            raise TypeError(f"entry must be an object, got {type(d).__name__}")

        value = d["value"]
        if not isinstance(value, str):
            raise TypeError("value must be a string")

        weight = float(d["weight"])
        if not math.isfinite(weight) or weight < 0.0:
            raise ValueError(f"invalid weight {weight!r}")

        embedding = [float(x) for x in d["embedding"]]
        last_seen = float(d["lastSeen"])
        tier = Tier(d["tier"] if "tier" in d else d["type"])

        return cls(
            value=value,
            weight=weight,
            embedding=embedding,
            last_seen=last_seen,
            tier=tier,
        )


@dataclass
class ObserveResult:
    """Which terms an observation created, reinforced, promoted and evicted."""
    created: List[str] = field(default_factory=list)
    reinforced: List[str] = field(default_factory=list)
    promoted: List[str] = field(default_factory=list)
    evicted: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "created": list(self.created),
            "reinforced": list(self.reinforced),
            "promoted": list(self.promoted),
            "evicted": list(self.evicted),
        }


def _note(bucket: List[str], term: str) -> None:
    if term not in bucket:
        bucket.append(term)


# ------------------------------------------------------------------
# Store
# ------------------------------------------------------------------

class PreferenceStore:
    """
    Term -> ``PreferenceEntry`` mapping with decay, promotion and eviction.

    Usage::

        store = PreferenceStore(EmbeddingLookup(vectors))
        store.observe(tokens, weights)
        store.get("box").tier
    """

    def __init__(
        self,
        lookup: EmbeddingLookup,
        backend: Optional[StateBackend] = None,
        *,
        decay_rate: float = DEFAULT_DECAY_RATE,
        promotion_threshold: float = DEFAULT_PROMOTION_THRESHOLD,
        demote_threshold: float = DEFAULT_DEMOTE_THRESHOLD,
    ):
        self.lookup = lookup
        self.backend = backend if backend is not None else InMemoryBackend()
        self.decay_rate = decay_rate
        self.promotion_threshold = promotion_threshold
        self.demote_threshold = demote_threshold
        self._validate()

        self._entries: Dict[str, PreferenceEntry] = {}
        self.load()

    def _validate(self) -> None:
        if not 0.0 < self.decay_rate <= 1.0:
            raise ValueError(f"decay_rate must be within (0, 1], got {self.decay_rate}")
        if self.demote_threshold < 0.0:
            raise ValueError(f"demote_threshold must be non-negative, got {self.demote_threshold}")
        if self.promotion_threshold <= self.demote_threshold:
            raise ValueError(
                "promotion_threshold must be above demote_threshold "
                f"({self.promotion_threshold} <= {self.demote_threshold})"
            )

    def configure(
        self,
        *,
        decay_rate: Optional[float] = None,
        promotion_threshold: Optional[float] = None,
        demote_threshold: Optional[float] = None,
    ) -> None:
        """Change tunables in place; existing entries are not re-evaluated."""
        previous = (self.decay_rate, self.promotion_threshold, self.demote_threshold)
        if decay_rate is not None:
            self.decay_rate = decay_rate
        if promotion_threshold is not None:
            self.promotion_threshold = promotion_threshold
        if demote_threshold is not None:
            self.demote_threshold = demote_threshold
        try:
            self._validate()
        except (TypeError, ValueError):
            self.decay_rate, self.promotion_threshold, self.demote_threshold = previous
            raise

    # ── Read access ──────────────────────────────────────────

    def get(self, term: str) -> Optional[PreferenceEntry]:
        return self._entries.get(term)

    def __contains__(self, term: object) -> bool:
        return term in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PreferenceEntry]:
        return iter(list(self._entries.values()))

    def items(self) -> List[tuple[str, PreferenceEntry]]:
        """``(term, entry)`` pairs in insertion order."""
        return list(self._entries.items())

    def stats(self) -> Dict[str, Any]:
        long_term = sum(1 for e in self._entries.values() if e.tier is Tier.LONG_TERM)
        return {
            "total": len(self._entries),
            "short_term_count": len(self._entries) - long_term,
            "long_term_count": long_term,
            "total_weight": round(sum(e.weight for e in self._entries.values()), 4),
        }

    # ── Update ───────────────────────────────────────────────

    def observe(
        self,
        tokens: Sequence[str],
        weights: Mapping[str, float],
        now: Optional[float] = None,
    ) -> ObserveResult:
        """
        Apply one observation: decay everything, then reinforce, promote
        and evict per token, then save.

        *weights* must hold a weight for every distinct token.
        """
        now = time.time() if now is None else float(now)
        result = ObserveResult()

        # Everything that can fail runs before the first mutation.
        gains = {term: weights[term] for term in dict.fromkeys(tokens)}
        embeddings = {
            term: self.lookup.embed(term)
            for term in gains if term not in self._entries
        }

        for entry in self._entries.values():
            entry.weight *= self.decay_rate

        for term in tokens:
            entry = self._entries.get(term)
            if entry is None:
                entry = PreferenceEntry(
                    value=term,
                    weight=gains[term],
                    embedding=embeddings[term],
                    last_seen=now,
                )
                self._entries[term] = entry
                _note(result.created, term)
            else:
                entry.weight += gains[term]
                entry.last_seen = now
                _note(result.reinforced, term)

            if entry.weight >= self.promotion_threshold and entry.tier is not Tier.LONG_TERM:
                entry.tier = Tier.LONG_TERM
                _note(result.promoted, term)
                logger.info("Promoted %r to long-term (weight=%.3f)", term, entry.weight)

            if entry.weight < self.demote_threshold:
                del self._entries[term]
                embeddings[term] = entry.embedding
                _note(result.evicted, term)
                logger.info("Evicted %r (weight=%.3f)", term, entry.weight)

        logger.debug(
            "Observed %d tokens: %d created, %d reinforced, %d entries total",
            len(tokens), len(result.created), len(result.reinforced), len(self._entries),
        )
        self.save()
        return result

    def forget(self, term: str) -> bool:
        """Remove *term*.  Returns True if it existed."""
        if self._entries.pop(term, None) is None:
            return False
        self.save()
        return True

    def prune(self) -> List[str]:
        """Evict every entry currently below the demote threshold."""
        stale = [t for t, e in self._entries.items() if e.weight < self.demote_threshold]
        for term in stale:
            del self._entries[term]
        if stale:
            logger.info("Pruned %d decayed preferences", len(stale))
            self.save()
        return stale

    def clear(self) -> None:
        self._entries.clear()
        self.save()

    # ── Persistence ──────────────────────────────────────────

    def snapshot(self) -> Snapshot:
        return {term: entry.to_dict() for term, entry in self._entries.items()}

    def save(self) -> None:
        self.backend.save_state(self.snapshot())

    def load(self) -> int:
        """
        Replace the in-memory entries with the backend's snapshot.

        Malformed state never raises: a snapshot that is not an object
        yields an empty store and unusable entries are skipped.  Returns
        the number of entries loaded.
        """
        self._entries = {}
        snapshot = self.backend.load_state()
        if snapshot is None:
            return 0
        if not isinstance(snapshot, Mapping):
            logger.warning(
                "Preference state is a %s, not an object; starting empty",
                type(snapshot).__name__,
            )
            return 0

        for term, raw in snapshot.items():
            try:
                entry = PreferenceEntry.from_dict(raw)
                self.lookup.check(entry.embedding, term)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed preference %r: %s", term, exc)
                continue
            self._entries[str(term)] = entry

        logger.info("Loaded %d preferences", len(self._entries))
        return len(self._entries)
