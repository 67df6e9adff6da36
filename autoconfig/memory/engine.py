"""
Preference engine — the entry point a chat pipeline talks to.

It wires the pieces together:

1. ``process_response(text)`` tokenises an observation, weights its
   terms against the interaction history and feeds them to the
   ``PreferenceStore`` (decay, reinforcement, promotion, eviction,
   save).
2. ``get_relevant_preferences(query)`` ranks the stored terms whose
   embeddings are close to the query's terms.
3. ``augment_prompt(prompt)`` appends those preferences to a prompt as
   ``[Preferences: key=value, ...]``.

Event integration
-----------------
With an ``EventBus`` the engine also:

* observes ``chat_message`` events whose ``role`` is listed in
  ``observe_roles`` (assistant responses by default),
* handles ``preference_command`` events (``forget``, ``prune``,
  ``clear``, ``reload``),
* re-reads its tunables on ``config_changed`` for ``preferences.*``
  keys when built from a ``Config``,
* publishes ``preferences_updated`` after every change.

All public operations hold one re-entrant lock, so decay/update/evict
passes never interleave when the host calls from several threads.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..config import Config
from ..events import (
    CHAT_MESSAGE,
    CONFIG_CHANGED,
    PREFERENCE_COMMAND,
    PREFERENCES_UPDATED,
    EventBus,
)
from .augmenter import PromptAugmenter
from .embeddings import EmbeddingLookup, EmbeddingModel
from .persistence import InMemoryBackend, JsonFileBackend, StateBackend
from .preference_store import (
    DEFAULT_DECAY_RATE,
    DEFAULT_DEMOTE_THRESHOLD,
    DEFAULT_PROMOTION_THRESHOLD,
    ObserveResult,
    PreferenceStore,
)
from .ranker import DEFAULT_THRESHOLD, DEFAULT_TOP_K, PreferenceMatch, RelevanceRanker
from .tokenizer import tokenize
from .weights import DEFAULT_ALPHA, InteractionHistory, WeightEngine

logger = logging.getLogger(__name__)

CONFIG_SECTION = "preferences"


# ------------------------------------------------------------------
# Configuration
# ------------------------------------------------------------------

@dataclass
class PreferenceMemoryConfig:
    """Tunable parameters for the preference engine."""
    decay_rate: float = DEFAULT_DECAY_RATE                    # per-observation multiplier
    promotion_threshold: float = DEFAULT_PROMOTION_THRESHOLD  # weight >= this -> long-term
    demote_threshold: float = DEFAULT_DEMOTE_THRESHOLD        # weight < this -> evicted
    alpha: float = DEFAULT_ALPHA                # frequency vs novelty blend
    embed_dim: Optional[int] = None             # None = take it from the model
    similarity_threshold: float = DEFAULT_THRESHOLD
    top_k: int = DEFAULT_TOP_K
    deduplicate: bool = False                   # one candidate per entry when ranking
    history_horizon: Optional[int] = None       # None = novelty over all observations
    observe_roles: Tuple[str, ...] = ("assistant",)
    state_path: Optional[Path] = None           # None = keep state in memory only

    def __post_init__(self):
        for name in ("decay_rate", "promotion_threshold", "demote_threshold",
                     "alpha", "similarity_threshold"):
            setattr(self, name, _number(name, getattr(self, name)))
        self.top_k = _integer("top_k", self.top_k)
        if self.embed_dim is not None:
            self.embed_dim = _integer("embed_dim", self.embed_dim)
        if self.history_horizon is not None:
            self.history_horizon = _integer("history_horizon", self.history_horizon)
        if not isinstance(self.deduplicate, bool):
            raise TypeError(f"deduplicate must be true or false, got {self.deduplicate!r}")

        roles = self.observe_roles
        roles = (roles,) if isinstance(roles, str) else tuple(roles)
        if not all(isinstance(role, str) for role in roles):
            raise TypeError(f"observe_roles must be strings, got {roles!r}")
        self.observe_roles = roles
        if self.state_path is not None:
            self.state_path = Path(self.state_path)

    @classmethod
    def from_config(cls, config: Config, section: str = CONFIG_SECTION) -> "PreferenceMemoryConfig":
        """Build from a ``Config`` section, ignoring keys this class does not know."""
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in config.section(section).items():
            if key not in known:
                logger.warning("Ignoring unknown setting %s.%s", section, key)
                continue
            values[key] = value
        return cls(**values)


def _number(name: str, value: Any) -> float:
    # bool is an int subclass; JSON true/false must not pass as 1/0.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return float(value)


def _integer(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer, got {value!r}")
    return value


# Settings that only take effect when the engine is rebuilt.
_RESTART_ONLY = frozenset({"embed_dim", "history_horizon", "state_path"})


# ------------------------------------------------------------------
# Engine
# ------------------------------------------------------------------

class PreferenceEngine:
    """
    Adaptive preference memory.

    Usage::

        engine = PreferenceEngine({"box": [0.8, 0.1, 0.2]})
        engine.process_response("Draw a red box using TikZ")
        prompt = engine.augment_prompt("Create a box diagram")
    """

    def __init__(
        self,
        embedding_model: Optional[EmbeddingModel] = None,
        event_bus: Optional[EventBus] = None,
        config: Optional[PreferenceMemoryConfig] = None,
        backend: Optional[StateBackend] = None,
        settings: Optional[Config] = None,
    ):
        self.bus = event_bus
        self.settings = settings
        if config is None:
            config = (
                PreferenceMemoryConfig.from_config(settings)
                if settings is not None
                else PreferenceMemoryConfig()
            )
        self.cfg = config
        self._lock = threading.RLock()

        if backend is None:
            backend = (
                JsonFileBackend(config.state_path)
                if config.state_path is not None
                else InMemoryBackend()
            )

        self.lookup = EmbeddingLookup(embedding_model, dim=config.embed_dim)
        self.weights = WeightEngine(
            alpha=config.alpha,
            history=InteractionHistory(horizon=config.history_horizon),
        )
        self.store = PreferenceStore(
            self.lookup,
            backend,
            decay_rate=config.decay_rate,
            promotion_threshold=config.promotion_threshold,
            demote_threshold=config.demote_threshold,
        )
        self.ranker = RelevanceRanker(
            self.store,
            threshold=config.similarity_threshold,
            top_k=config.top_k,
            deduplicate=config.deduplicate,
        )
        self.augmenter = PromptAugmenter(self.ranker)

        if self.bus is not None:
            self.bus.subscribe(CHAT_MESSAGE, self._on_chat_message)
            self.bus.subscribe(PREFERENCE_COMMAND, self._on_preference_command)
            if self.settings is not None:
                self.bus.subscribe(CONFIG_CHANGED, self._on_config_changed)

        logger.info(
            "Preference engine ready (dim=%d, %d stored preferences)",
            self.lookup.dim, len(self.store),
        )

    # ── Observe ──────────────────────────────────────────────

    def process_response(self, text: str, now: Optional[float] = None) -> ObserveResult:
        """
        Learn from one observed text.

        Text without usable tokens still counts: it decays the store and
        is recorded in the history.  The history is only updated once the
        store update has succeeded.
        """
        with self._lock:
            tokens = tokenize(text)
            weights = self.weights.compute_weights(tokens)
            result = self.store.observe(tokens, weights, now=now)
            self.weights.record(tokens)
            self._publish_update(result)
            return result

    # ── Recall ───────────────────────────────────────────────

    def get_relevant_preferences(
        self,
        query_text: str,
        threshold: Optional[float] = None,
    ) -> List[PreferenceMatch]:
        with self._lock:
            return self.ranker.rank(query_text, threshold)

    def augment_prompt(self, prompt_text: str) -> str:
        with self._lock:
            return self.augmenter.augment(prompt_text)

    # ── Maintenance ──────────────────────────────────────────

    def forget(self, term: str) -> bool:
        with self._lock:
            removed = self.store.forget(term)
            if removed:
                self._publish_update(ObserveResult(evicted=[term]))
            return removed

    def prune(self) -> List[str]:
        with self._lock:
            pruned = self.store.prune()
            if pruned:
                self._publish_update(ObserveResult(evicted=pruned))
            return pruned

    def clear(self) -> None:
        """Drop every preference and the interaction history."""
        with self._lock:
            self.store.clear()
            self.weights.history.clear()
            self._publish_update()

    def reload(self) -> int:
        """Re-read the persisted state, discarding unsaved in-memory changes."""
        with self._lock:
            count = self.store.load()
            self._publish_update()
            return count

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = self.store.stats()
            stats["history_size"] = len(self.weights.history)
            return stats

    def apply_config(self, config: PreferenceMemoryConfig) -> None:
        """Switch to new tunables without losing the stored preferences."""
        if not 0.0 <= config.alpha <= 1.0:
            raise ValueError(f"alpha must be within [0, 1], got {config.alpha}")
        if config.top_k <= 0:
            raise ValueError(f"top_k must be positive, got {config.top_k}")

        with self._lock:
            changed = [
                f.name for f in fields(config)
                if getattr(config, f.name) != getattr(self.cfg, f.name)
            ]
            self.store.configure(
                decay_rate=config.decay_rate,
                promotion_threshold=config.promotion_threshold,
                demote_threshold=config.demote_threshold,
            )
            self.weights.alpha = config.alpha
            self.ranker.threshold = config.similarity_threshold
            self.ranker.top_k = config.top_k
            self.ranker.deduplicate = config.deduplicate

            pending = sorted(_RESTART_ONLY.intersection(changed))
            if pending:
                logger.info("Settings %s take effect after a restart", ", ".join(pending))
                config = replace(config, **{name: getattr(self.cfg, name) for name in pending})
            self.cfg = config

    # ── Event handlers ───────────────────────────────────────

    def _on_chat_message(self, data: Dict[str, Any]) -> None:
        """
        Observe chat turns.

        Expected data::

            {"role": "assistant", "content": "the message text"}

        An optional ``"timestamp"`` (UNIX seconds, int or float) sets
        ``last_seen``; anything else falls back to the current time.
        """
        if data.get("role", "user") not in self.cfg.observe_roles:
            return
        content = data.get("content", "")
        if not content:
            return

        now = data.get("timestamp")
        if now is not None:
            if isinstance(now, bool) or not isinstance(now, (int, float)) or not math.isfinite(now):
                logger.warning("Ignoring non-numeric chat_message timestamp %r", now)
                now = None
            else:
                now = float(now)
        self.process_response(content, now=now)

    def _on_preference_command(self, data: Dict[str, Any]) -> None:
        """
        Handle explicit commands from the host.

        Expected data::

            {"action": "forget", "term": "box"}
            {"action": "prune"}
            {"action": "clear"}
            {"action": "reload"}
        """
        action = data.get("action")
        if action == "forget":
            self.forget(data.get("term", ""))
        elif action == "prune":
            self.prune()
        elif action == "clear":
            self.clear()
        elif action == "reload":
            self.reload()
        else:
            logger.warning("Unknown preference command: %r", action)

    def _on_config_changed(self, data: Dict[str, Any]) -> None:
        key = str(data.get("key", ""))
        if not key.startswith(CONFIG_SECTION + "."):
            return
        try:
            self.apply_config(PreferenceMemoryConfig.from_config(self.settings))
        except (TypeError, ValueError) as exc:
            logger.warning("Rejected preference settings after %s changed: %s", key, exc)

    # ── Internal helpers ─────────────────────────────────────

    def _publish_update(self, result: Optional[ObserveResult] = None) -> None:
        if self.bus is None:
            return
        result = result or ObserveResult()
        self.bus.publish(PREFERENCES_UPDATED, {
            "stats": self.stats(),
            "promoted": list(result.promoted),
            "evicted": list(result.evicted),
        })
