"""
Adaptive preference memory.

Learns weighted terms from observed text, decays and promotes them
between short-term and long-term tiers, and retrieves the ones whose
embeddings are close to a new prompt.
"""

from .tokenizer import tokenize, MIN_TOKEN_LENGTH
from .embeddings import (
    EmbeddingLookup,
    EmbeddingDimensionError,
    HashingEmbeddingModel,
    cosine_similarity,
    EMBED_DIM,
)
from .weights import WeightEngine, InteractionHistory, novelty
from .persistence import StateBackend, InMemoryBackend, JsonFileBackend
from .preference_store import PreferenceStore, PreferenceEntry, ObserveResult, Tier
from .ranker import RelevanceRanker, PreferenceMatch
from .augmenter import PromptAugmenter, format_preferences
from .engine import PreferenceEngine, PreferenceMemoryConfig
