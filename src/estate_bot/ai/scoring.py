"""FAQ match scoring.

The weights are heuristics, not invariants: they live in ``FaqScoringConfig`` so they can be
tuned without touching the cascade. ``FaqScorer.score`` is the stable interface.
"""

from __future__ import annotations

import re

from rapidfuzz.distance import Levenshtein

from estate_bot.config import FaqScoringConfig
from estate_bot.storage.models import FaqEntry

STOP_WORDS = frozenset(
    {"the", "is", "at", "which", "on", "a", "an", "as", "are", "was", "were", "to", "for"}
)

_WORD = re.compile(r"[a-z']+")


def extract_keywords(text: str) -> list[str]:
    """Lowercased words minus stop words, first occurrence order, no duplicates."""
    seen: dict[str, None] = {}
    for word in _WORD.findall(text.lower()):
        word = word.strip("'")
        if word and word not in STOP_WORDS:
            seen.setdefault(word, None)
    return list(seen)


class FaqScorer:
    def __init__(self, config: FaqScoringConfig | None = None):
        self._config = config or FaqScoringConfig()

    def keyword_overlap(self, question: str, entry: FaqEntry) -> float:
        q_words = set(extract_keywords(question))
        f_words = set(extract_keywords(entry.keywords or entry.question))
        if not q_words or not f_words:
            return 0.0
        return len(q_words & f_words) / max(len(q_words), len(f_words))

    def score(self, question: str, entry: FaqEntry) -> float:
        cfg = self._config
        text_similarity = Levenshtein.normalized_similarity(
            question.strip().lower(), entry.question.strip().lower()
        )
        overlap = self.keyword_overlap(question, entry)
        if overlap == 0.0 and text_similarity < 0.5:
            return 0.0

        confidence = text_similarity * cfg.text_weight + overlap * cfg.keyword_weight

        if "?" in question and "?" in entry.question:
            confidence += cfg.question_mark_bonus

        lowered = question.lower()
        if entry.category and entry.category != "general" and entry.category.lower() in lowered:
            confidence += cfg.category_bonus

        faq_keywords = extract_keywords(entry.keywords)
        if faq_keywords and all(k in lowered for k in faq_keywords):
            confidence += cfg.keyword_hit_bonus

        return min(1.0, confidence)
