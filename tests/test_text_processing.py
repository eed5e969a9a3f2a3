"""
Tests for tokenization, vocabularies and categorical patterns.
"""
from datetime import date

import numpy as np
import pytest

from packages.domain.mapping.text_processing import TextProcessor, Vocabulary


def test_process_text_lowercases_strips_punctuation_and_stop_words():
    processor = TextProcessor()

    assert processor.process_text("Payment for Office-Supplies!") == ["payment", "officesupplies"]
    assert processor.process_text("The rent AND the deposit") == ["rent", "deposit"]
    assert processor.process_text("") == []


def test_vocabulary_indexes_follow_first_occurrence():
    processor = TextProcessor()
    vocabulary = processor.build_vocabulary(["cash on hand", "petty cash", "rent"])

    assert vocabulary.tokens == ["cash", "hand", "petty", "rent"]
    assert vocabulary.index_of("petty") == 2
    assert vocabulary.index_of("missing") == -1
    assert "rent" in vocabulary
    assert len(vocabulary) == 4


def test_create_vector_counts_terms_and_ignores_unknown_tokens():
    processor = TextProcessor()
    vocabulary = Vocabulary(["cash", "office", "rent"])

    vector = processor.create_vector("cash cash office unknown", vocabulary)

    np.testing.assert_array_equal(vector, np.array([2.0, 1.0, 0.0]))
    assert len(processor.create_vector("nothing known", vocabulary)) == len(vocabulary)


def test_calculate_similarity_is_case_insensitive_and_bounded():
    processor = TextProcessor()

    assert processor.calculate_similarity("Office", "office") == 1.0
    assert processor.calculate_similarity("abc", "xyz") == 0.0
    score = processor.calculate_similarity("office supplies", "office supply")
    assert 0.0 < score < 1.0


def test_calculate_similarity_tolerates_reordered_words():
    processor = TextProcessor()

    score = processor.calculate_similarity("Office supplies payment", "Payment office supplies")

    assert score == pytest.approx(0.95)


def test_calculate_similarity_ignores_whitespace_and_short_strings():
    processor = TextProcessor()

    assert processor.calculate_similarity("Office Supplies", "officesupplies") == 1.0
    assert processor.calculate_similarity("a", "a") == 1.0
    assert processor.calculate_similarity("a", "ab") == 0.0
    assert processor.calculate_similarity("", "rent") == 0.0


def test_extract_key_phrases_breaks_ties_by_first_occurrence():
    processor = TextProcessor()

    phrases = processor.extract_key_phrases("rent rent cash office cash supplies paper toner")

    assert phrases == ["rent", "cash", "office", "supplies", "paper"]


def test_find_amount_pattern_priority():
    processor = TextProcessor()

    assert processor.find_amount_pattern(0) == "zero"
    assert processor.find_amount_pattern(3000) == "thousand_multiple"
    assert processor.find_amount_pattern(500) == "hundred_multiple"
    assert processor.find_amount_pattern(42) == "whole_number"
    assert processor.find_amount_pattern(12.5) == "decimal"


def test_find_date_pattern_priority():
    processor = TextProcessor()

    assert processor.find_date_pattern(date(2025, 3, 1)) == "month_start"
    assert processor.find_date_pattern(date(2025, 2, 28)) == "month_end"
    assert processor.find_date_pattern(date(2025, 3, 4)) == "month_beginning"
    assert processor.find_date_pattern(date(2025, 3, 26)) == "month_ending"
    assert processor.find_date_pattern(date(2025, 3, 14)) == "mid_month"
    assert processor.find_date_pattern("2025-03-31") == "month_end"
