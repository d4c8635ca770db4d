"""
Sentence bank and sane defaults for when no sentence file is present.

Kept small and focused; the coordinator imports this.
"""

import json
import logging
import os
import random
from typing import Any, List, Optional, Sequence

from .tr_config import SENTENCE_FILE

logger = logging.getLogger(__name__)

DEFAULT_SENTENCES = (
    "The quick brown fox jumps over the lazy dog while the sun shines brightly in the clear blue sky above them all",
    "Programming computers is incredibly rewarding when you finally solve that tricky bug after hours of debugging",
    "Python is a friendly general purpose language that lets developers build robust portable applications quickly",
    "Typing quickly and accurately is an essential skill for programmers who want to be productive in their work",
    "Practice makes perfect when it comes to improving your typing speed and reducing errors in your code",
    "To be or not to be that is the question whether it is nobler in the mind to suffer the slings and arrows of outrageous fortune",
    "The early bird catches the worm but the second mouse gets the cheese in this strange paradoxical world we live in today",
    "Artificial intelligence and machine learning are transforming how we interact with technology in our daily lives forever",
)


class SentenceBank:
    """Immutable set of candidate sentences."""

    def __init__(self, sentences: Sequence[str], rng: Optional[random.Random] = None) -> None:
        cleaned = tuple(s.strip() for s in sentences if isinstance(s, str) and s.strip())
        if not cleaned:
            raise ValueError("SentenceBank needs at least one non-empty sentence")
        self._sentences = cleaned
        self._rng = rng or random.Random()

    def __len__(self) -> int:
        return len(self._sentences)

    @property
    def sentences(self) -> tuple:
        return self._sentences

    def choose(self) -> str:
        """Pick one sentence uniformly at random."""
        return self._rng.choice(self._sentences)

    @classmethod
    def load(cls, path: str = SENTENCE_FILE) -> "SentenceBank":
        """
        Load sentences from a JSON file, or use the built-in list if missing.

        The file holds either a list of strings or {"sentences": [...]}.
        An unreadable or empty file is logged and the defaults are used.
        """
        if os.path.exists(path):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data: Any = json.load(f)
                items: List[str] = data.get("sentences", []) if isinstance(data, dict) else data
                if not isinstance(items, list):
                    raise ValueError("expected a list of sentences")
                return cls(items)
            except (OSError, ValueError) as e:
                logger.warning("Ignoring sentence file %s: %s", path, e)
        return cls(DEFAULT_SENTENCES)
