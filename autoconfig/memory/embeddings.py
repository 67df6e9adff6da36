"""
Term embeddings and vector similarity.

The embedding model is an external collaborator: anything with a
mapping-style ``get(term)`` (a plain ``dict`` of word vectors works) or
a callable ``term -> vector | None``.  ``EmbeddingLookup`` puts a fixed
dimension on it and substitutes the zero vector for terms the model
does not know, so unknown terms are similar to nothing.

How the fallback model works
----------------------------
``HashingEmbeddingModel`` needs no vocabulary or training data.  Each
term is broken into the whole word plus character tri- and quad-grams,
every feature gets a deterministic pseudo-random unit vector derived
from its SHA-256 hash (random indexing), and the weighted sum is
L2-normalised.  Words that share many n-grams ("program",
"programming") end up close to each other.
"""

from __future__ import annotations

import hashlib
import math
import struct
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Sequence

# Default dimension of embedding vectors.
EMBED_DIM = 50


class EmbeddingDimensionError(ValueError):
    """A vector does not have the dimension the lookup was built for."""


def zero_vector(dim: int) -> List[float]:
    return [0.0] * dim


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity between two vectors.

    Defined as exactly ``0.0`` when either vector has zero norm.
    Vectors of different length raise ``EmbeddingDimensionError``.
    """
    if len(a) != len(b):
        raise EmbeddingDimensionError(
            f"cannot compare vectors of dimension {len(a)} and {len(b)}"
        )
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for ai, bi in zip(a, b):
        dot += ai * bi
        norm_a += ai * ai
        norm_b += bi * bi
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / math.sqrt(norm_a * norm_b)


# ------------------------------------------------------------------
# Lookup
# ------------------------------------------------------------------

EmbeddingModel = Any  # Mapping[str, Sequence[float]] | Callable[[str], Optional[Sequence[float]]]


def _infer_dim(model: EmbeddingModel) -> int:
    dim = getattr(model, "dim", None)
    if isinstance(dim, int) and dim > 0:
        return dim
    if isinstance(model, Mapping):
        for vector in model.values():
            return len(vector)
    return EMBED_DIM


class EmbeddingLookup:
    """
    Fixed-dimension view over an external embedding model.

    Usage::

        lookup = EmbeddingLookup({"box": [0.8, 0.1, 0.2]})
        lookup.embed("box")      # [0.8, 0.1, 0.2]
        lookup.embed("circle")   # [0.0, 0.0, 0.0]
    """

    def __init__(self, model: Optional[EmbeddingModel] = None, dim: Optional[int] = None):
        self._model = model if model is not None else {}
        self.dim = dim if dim is not None else _infer_dim(self._model)
        if self.dim <= 0:
            raise ValueError(f"embedding dimension must be positive, got {self.dim}")

        if callable(getattr(self._model, "get", None)):
            self._fetch: Callable[[str], Any] = self._model.get
        elif callable(self._model):
            self._fetch = self._model
        else:
            raise TypeError(
                f"embedding model must be a mapping or a callable, got {type(self._model).__name__}"
            )

    @property
    def model(self) -> EmbeddingModel:
        return self._model

    def embed(self, term: str) -> List[float]:
        """Vector for *term*, or the zero vector if the model has none."""
        vector = self._fetch(term)
        if vector is None:
            return zero_vector(self.dim)
        result = [float(x) for x in vector]
        self.check(result, term)
        return result

    def check(self, vector: Sequence[float], term: str = "") -> None:
        """Raise ``EmbeddingDimensionError`` unless *vector* has dimension ``dim``."""
        if len(vector) != self.dim:
            raise EmbeddingDimensionError(
                f"embedding for {term!r} has dimension {len(vector)}, expected {self.dim}"
            )

    def similarity(self, term: str, vector: Sequence[float]) -> float:
        return cosine_similarity(self.embed(term), vector)


# ------------------------------------------------------------------
# Hash-based fallback model
# ------------------------------------------------------------------

def _char_ngrams(word: str, ns: tuple[int, ...] = (3, 4)) -> List[str]:
    """Extract character n-grams from a word, including boundary markers."""
    padded = f"#{word}#"
    grams: List[str] = []
    for n in ns:
        for i in range(len(padded) - n + 1):
            grams.append(padded[i:i + n])
    return grams


class HashingEmbeddingModel:
    """
    Deterministic word embeddings by random indexing.

    The whole-word feature carries weight 3.0 and each character n-gram
    1.0, so exact matches dominate while shared sub-words still pull
    related forms together.  ``get`` never returns ``None`` for a
    non-empty term.
    """

    _CACHE_MAX = 10000

    def __init__(self, dim: int = EMBED_DIM):
        if dim <= 0:
            raise ValueError(f"embedding dimension must be positive, got {dim}")
        self.dim = dim
        self._cache: Dict[str, List[float]] = {}

    def _feature_vector(self, feature: str) -> List[float]:
        cached = self._cache.get(feature)
        if cached is not None:
            return cached

        # 4 bytes per component, SHA-256 yields 32 bytes per round.
        rounds = math.ceil(self.dim * 4 / 32)
        data = b""
        seed = feature.encode("utf-8")
        for _ in range(rounds):
            seed = hashlib.sha256(seed).digest()
            data += seed

        raw = [
            struct.unpack_from(">I", data, i * 4)[0] / 2147483647.5 - 1.0
            for i in range(self.dim)
        ]
        norm = math.sqrt(sum(x * x for x in raw))
        result = [x / norm for x in raw] if norm > 1e-10 else zero_vector(self.dim)

        if len(self._cache) >= self._CACHE_MAX:
            self._cache.clear()
        self._cache[feature] = result
        return result

    def get(self, term: str, default: Optional[List[float]] = None) -> Optional[List[float]]:
        word = term.lower().strip()
        if not word:
            return default

        vec = zero_vector(self.dim)
        features = [(f"w:{word}", 3.0)] + [(f"c:{g}", 1.0) for g in _char_ngrams(word)]
        for feature, weight in features:
            fv = self._feature_vector(feature)
            for d in range(self.dim):
                vec[d] += weight * fv[d]

        norm = math.sqrt(sum(x * x for x in vec))
        if norm < 1e-10:
            return default
        return [x / norm for x in vec]

    def __contains__(self, term: object) -> bool:
        return isinstance(term, str) and bool(term.strip())
