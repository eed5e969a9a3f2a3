"""
Text Processing - Tokenization, vocabularies and bag-of-words vectors

All lexical scoring in the mapping pipeline goes through TextProcessor so
that every stage sees the same tokens:
- "Payment for Office-Supplies!" → ["payment", "officesupplies"]
- Vectors are term counts over a Vocabulary with a fixed token → index map
"""
import calendar
import re
from collections import Counter
from datetime import date, datetime
from typing import Dict, Iterable, Iterator, List, Union

import numpy as np

STOP_WORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "for",
    "from", "has", "he", "in", "is", "it", "its", "of", "on",
    "that", "the", "to", "was", "were", "will", "with",
})

_NON_TOKEN_CHARS = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


class Vocabulary:
    """
    Ordered token set with a stable token → index mapping.

    Indexes follow first-occurrence order across the texts the vocabulary
    was built from and never change after construction.
    """

    def __init__(self, tokens: Iterable[str] = ()):
        self._index: Dict[str, int] = {}
        for token in tokens:
            if token not in self._index:
                self._index[token] = len(self._index)

    def index_of(self, token: str) -> int:
        """Index of token, or -1 when out of vocabulary"""
        return self._index.get(token, -1)

    @property
    def tokens(self) -> List[str]:
        return list(self._index)

    def __contains__(self, token: object) -> bool:
        return token in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        return f"Vocabulary(size={len(self)})"


class TextProcessor:
    """Stateless text utilities shared by all mapping components."""

    def __init__(self, stop_words: Iterable[str] = STOP_WORDS):
        self.stop_words = frozenset(stop_words)

    def process_text(self, text: str) -> List[str]:
        """
        Lowercase, strip punctuation, split on whitespace, drop stop words.

        Token order follows the input text.
        """
        cleaned = _NON_TOKEN_CHARS.sub("", (text or "").lower())
        return [word for word in cleaned.split() if word not in self.stop_words]

    def build_vocabulary(self, texts: Iterable[str]) -> Vocabulary:
        """Union of process_text over all texts, in first-occurrence order"""
        return Vocabulary(token for text in texts for token in self.process_text(text))

    def create_vector(self, text: str, vocabulary: Vocabulary) -> np.ndarray:
        """
        Term-frequency vector over vocabulary.

        Out-of-vocabulary tokens are ignored; the vector length always equals
        len(vocabulary).
        """
        vector = np.zeros(len(vocabulary), dtype=float)
        for word in self.process_text(text):
            index = vocabulary.index_of(word)
            if index != -1:
                vector[index] += 1
        return vector

    def calculate_similarity(self, text1: str, text2: str) -> float:
        """
        Dice coefficient over character bigrams, in [0, 1].

        Case and whitespace are ignored, so word order matters little:
        "office supplies payment" vs "payment office supplies" → 0.95.
        Identical strings score 1.0; otherwise a string shorter than two
        characters scores 0.
        """
        first = _WHITESPACE.sub("", (text1 or "").lower())
        second = _WHITESPACE.sub("", (text2 or "").lower())

        if first == second:
            return 1.0
        if len(first) < 2 or len(second) < 2:
            return 0.0

        first_bigrams = _bigrams(first)
        second_bigrams = _bigrams(second)
        overlap = sum((first_bigrams & second_bigrams).values())

        return 2.0 * overlap / (len(first) + len(second) - 2)

    def extract_key_phrases(self, text: str, limit: int = 5) -> List[str]:
        """Most frequent tokens, ties broken by first occurrence"""
        return [word for word, _ in Counter(self.process_text(text)).most_common(limit)]

    def find_amount_pattern(self, amount: float) -> str:
        if amount == 0:
            return "zero"
        if amount % 1000 == 0:
            return "thousand_multiple"
        if amount % 100 == 0:
            return "hundred_multiple"
        if amount % 1 == 0:
            return "whole_number"
        return "decimal"

    def find_date_pattern(self, value: Union[date, str]) -> str:
        day_value = _as_date(value)
        day = day_value.day
        last_day = calendar.monthrange(day_value.year, day_value.month)[1]

        if day == 1:
            return "month_start"
        if day == last_day:
            return "month_end"
        if day <= 5:
            return "month_beginning"
        if day >= 25:
            return "month_ending"
        return "mid_month"


def _bigrams(text: str) -> Counter:
    return Counter(text[i:i + 2] for i in range(len(text) - 1))


def _as_date(value: Union[date, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
