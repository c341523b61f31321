"""
Fact admission policy.

Decides whether an extracted candidate fact is durable enough to store.
"""

import re
from typing import Callable, Optional, Pattern, Tuple

from .schemas import RawFact


# Returns True when the text is noise and must be rejected
NoiseFilter = Callable[[str], bool]

# (label, pattern) pairs; a match marks the text as transient, not a durable fact
TRANSIENT_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("relative_day", re.compile(r"\b(today|tomorrow|yesterday|this week|next week)\b", re.IGNORECASE)),
    ("immediate_time", re.compile(r"\b(right now|currently)\b", re.IGNORECASE)),
    ("meta_request", re.compile(r"\b(help me|can you|what is|how do)\b", re.IGNORECASE)),
)


def transient_reason(text: str) -> Optional[str]:
    """Return the label of the first transient pattern `text` matches, if any."""
    for label, pattern in TRANSIENT_PATTERNS:
        if pattern.search(text or ""):
            return label
    return None


def is_transient(text: str) -> bool:
    """True if the text refers to relative time or is a conversational request."""
    return transient_reason(text) is not None


def never_noisy(text: str) -> bool:
    """Default noise filter: nothing beyond the transient check is noisy."""
    return False


class FactQualityPolicy:
    """
    Admission rules for candidate facts. All must pass:

    - content present and at least `min_chars` long
    - salience present and at least `min_salience`
    - content not transient (see TRANSIENT_PATTERNS)
    - content not flagged by the caller-supplied noise filter
    """

    def __init__(
        self,
        min_chars: int = 15,
        min_salience: float = 0.6,
        noise_filter: Optional[NoiseFilter] = None,
    ):
        self.min_chars = min_chars
        self.min_salience = min_salience
        self.noise_filter = noise_filter or never_noisy

    def rejection_reason(self, fact: RawFact) -> Optional[str]:
        """
        Explain why a fact would be rejected.

        Returns:
            None if the fact is admissible, else a short reason string
        """
        if not fact.content:
            return "empty"
        if len(fact.content) < self.min_chars:
            return "too_short"
        # Written as "not >=" so NaN salience is rejected too
        if fact.salience is None or not fact.salience >= self.min_salience:
            return "low_salience"
        label = transient_reason(fact.content)
        if label:
            return f"transient:{label}"
        if self.noise_filter(fact.content):
            return "noisy"
        return None

    def admit(self, fact: RawFact) -> bool:
        return self.rejection_reason(fact) is None
