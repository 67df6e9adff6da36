"""
Prompt augmentation with remembered preferences.

    "Create a box diagram"
    -> "Create a box diagram\n[Preferences: box=box, rectangle=rectangle]"
"""

from __future__ import annotations

from typing import Iterable, Optional

from .ranker import PreferenceMatch, RelevanceRanker


def format_preferences(matches: Iterable[PreferenceMatch]) -> str:
    """``[Preferences: key=value, ...]`` in the given order, or ``""`` if empty."""
    pairs = [f"{m.key}={m.value}" for m in matches]
    if not pairs:
        return ""
    return f"[Preferences: {', '.join(pairs)}]"


class PromptAugmenter:
    """Appends the ranked preferences for a prompt to the prompt itself."""

    def __init__(self, ranker: RelevanceRanker):
        self.ranker = ranker

    def augment(self, prompt_text: str, threshold: Optional[float] = None) -> str:
        block = format_preferences(self.ranker.rank(prompt_text, threshold))
        if not block:
            return prompt_text
        return f"{prompt_text}\n{block}"
