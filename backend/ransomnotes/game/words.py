from __future__ import annotations

import json
import logging
import random
from pathlib import Path


logger = logging.getLogger(__name__)


DEFAULT_PROMPTS = [
    "Explain why you're late to work",
    "Write a love letter to your arch-nemesis",
    "Create an excuse for missing a deadline",
    "Compose a message to aliens",
    "Write a complaint to customer service",
    "Describe your dream vacation",
    "Leave a note for your roommate",
    "Pitch a terrible startup idea",
    "Give a toast at a wedding",
    "Write the worst fortune cookie",
]

DEFAULT_WORDS = [
    "the", "be", "to", "of", "and", "a", "in", "that", "have", "I",
    "it", "for", "not", "on", "with", "he", "as", "you", "do", "at",
    "this", "but", "his", "by", "from", "they", "we", "say", "her", "she",
    "cat", "dog", "banana", "moon", "pizza", "secret", "angry", "tiny",
    "giant", "boss", "mother", "robot", "sock", "dance", "cry", "love",
    "money", "never", "always", "please", "sorry", "because", "my", "your",
    "very", "butt", "cheese", "ghost", "wizard", "taxes", "is", "was",
]


def pick_words(words: list[str], count: int, rng: random.Random | None = None) -> list[str]:
    """Draw ``count`` words uniformly with replacement, so duplicates are expected."""
    if not words or count <= 0:
        return []
    r = rng or random
    return [r.choice(words) for _ in range(count)]


class WordSource:
    """Read-only prompts and words plus the shared random source for a game."""

    def __init__(
        self,
        prompts: list[str] | None = None,
        words: list[str] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.prompts = list(prompts or DEFAULT_PROMPTS)
        self.words = list(words or DEFAULT_WORDS)
        self.rng = rng or random.Random()

    @classmethod
    def from_file(cls, path: str | Path, rng: random.Random | None = None) -> WordSource:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        prompts = [p.strip() for p in raw.get("prompts", []) if isinstance(p, str) and p.strip()]
        words = [w.strip() for w in raw.get("words", []) if isinstance(w, str) and w.strip()]
        logger.info("[words-load] path=%s prompts=%d words=%d", path, len(prompts), len(words))
        return cls(prompts=prompts, words=words, rng=rng)

    @classmethod
    def from_config(cls, config, rng: random.Random | None = None) -> WordSource:
        path = getattr(config, "WORDS_FILE", "")
        if path:
            return cls.from_file(path, rng=rng)
        return cls(rng=rng)

    def random_prompt(self) -> str:
        return self.rng.choice(self.prompts)

    def random_pool(self, count: int) -> list[str]:
        return pick_words(self.words, count, rng=self.rng)
