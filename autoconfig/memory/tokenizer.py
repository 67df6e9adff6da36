"""
Fixed-rule tokeniser for observations and queries.

Lowercase, drop everything that is not a word character or whitespace,
split on whitespace runs, keep tokens of at least ``MIN_TOKEN_LENGTH``
characters.  Deliberately minimal: no stemming, no stopword list.
"""

from __future__ import annotations

import re
from typing import List

MIN_TOKEN_LENGTH = 3

_STRIP_RE = re.compile(r"[^\w\s]")


def tokenize(text: str) -> List[str]:
    """
    Split *text* into candidate terms.

    >>> tokenize("Draw a red box using TikZ!")
    ['draw', 'red', 'box', 'using', 'tikz']
    """
    if not text:
        return []
    cleaned = _STRIP_RE.sub("", text.lower())
    return [t for t in cleaned.split() if len(t) >= MIN_TOKEN_LENGTH]
