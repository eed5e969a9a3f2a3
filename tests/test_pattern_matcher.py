"""
Tests for the feature-weighted PatternMatcher.
"""
import pytest

from packages.domain.mapping.pattern_matcher import PatternMatcher


@pytest.fixture
def pattern_matcher(accounts, settings, mapping_logger):
    matcher = PatternMatcher(mapping_logger=mapping_logger, settings=settings)
    matcher.initialize(accounts)
    return matcher


def test_initialize_seeds_account_features(pattern_matcher, accounts):
    features = pattern_matcher.get_account_features("acc-5200")

    assert {"code:5200", "type:expense", "subtype:operating", "description_word:office",
            "description_word:supplies", "description_word:expense"} <= features
    assert pattern_matcher.get_pattern_count() == len(accounts)


def test_find_matches_ranks_by_shared_features(pattern_matcher, transaction_factory):
    matches = pattern_matcher.find_matches(transaction_factory(description="Office supplies"))

    assert matches[0].account_id == "acc-5200"
    assert matches[0].reason == "Feature pattern match"
    assert all(0.0 < m.confidence <= 1.0 for m in matches)
    assert [m.confidence for m in matches] == sorted((m.confidence for m in matches), reverse=True)


def test_find_matches_skips_zero_scores(pattern_matcher, transaction_factory):
    matches = pattern_matcher.find_matches(transaction_factory(description="zzz qqq"))

    assert matches == []


def test_learn_from_match_makes_account_a_full_match(pattern_matcher, transaction_factory):
    transaction = transaction_factory(description="Office supplies", customer_name="Staples Store")

    pattern_matcher.learn_from_match(transaction, "acc-5300")
    matches = pattern_matcher.find_matches(transaction)

    assert matches[0].account_id == "acc-5300"
    assert matches[0].confidence == pytest.approx(1.0)


def test_learn_from_match_creates_unknown_account(pattern_matcher, transaction_factory, accounts):
    pattern_matcher.learn_from_match(transaction_factory(), "acc-new")

    assert pattern_matcher.get_pattern_count() == len(accounts) + 1
    assert "vendor_type:retail" not in pattern_matcher.get_account_features("acc-new")
    assert "transaction_type:debit" in pattern_matcher.get_account_features("acc-new")
