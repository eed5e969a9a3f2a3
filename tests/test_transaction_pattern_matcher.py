"""
Tests for learned historical, vendor, similar-description and frequency matches.
"""
import pytest

from packages.domain.mapping.transaction_pattern_matcher import TransactionPatternMatcher


@pytest.fixture
def matcher(settings, mapping_logger):
    return TransactionPatternMatcher(mapping_logger=mapping_logger, settings=settings)


def test_no_matches_before_learning(matcher, transaction_factory):
    matches = matcher.find_matches(transaction_factory())

    assert matches.debit_matches == []
    assert matches.credit_matches == []
    assert not matches.is_complete


def test_exact_historical_match(matcher, transaction_factory):
    """Scenario C"""
    matcher.learn_from_transaction(transaction_factory(description="Office Depot supplies"), "5200", "1000")

    matches = matcher.find_matches(transaction_factory(id="txn-002", description="  office depot SUPPLIES "))

    assert matches.debit_matches[0].account_id == "5200"
    assert matches.debit_matches[0].confidence == pytest.approx(0.95)
    assert matches.debit_matches[0].reason == "Historical pattern match"
    assert matches.credit_matches[0].account_id == "1000"
    assert matches.credit_matches[0].confidence == pytest.approx(0.95)


def test_vendor_match(matcher, transaction_factory):
    matcher.learn_from_transaction(
        transaction_factory(description="Invoice 1", customer_name="Office Depot"), "5200", "2000"
    )

    matches = matcher.find_matches(
        transaction_factory(id="txn-002", description="completely different words", customer_name="OFFICE DEPOT")
    )

    assert matches.debit_matches[0].account_id == "5200"
    assert matches.debit_matches[0].confidence == pytest.approx(0.9)
    assert matches.debit_matches[0].reason == "Vendor pattern match"
    assert matches.credit_matches[0].account_id == "2000"


def test_similar_description_scores_below_exact(matcher, transaction_factory):
    """Scenario D"""
    matcher.learn_from_transaction(transaction_factory(description="Payment for office supplies"), "5200", "2000")

    query = transaction_factory(id="txn-002", description="Payment for office suppl")
    matches = matcher.find_matches(query)

    head = matches.debit_matches[0]
    similarity = matcher.similarity.text_similarity("Payment for office suppl", "payment for office supplies")
    assert head.reason == "Similar description match"
    assert head.confidence == pytest.approx(similarity * 0.85)
    assert head.confidence < 0.95


def test_reordered_description_is_similar_match(matcher, transaction_factory):
    matcher.learn_from_transaction(transaction_factory(description="Office supplies payment"), "5200", "2000")

    matches = matcher.find_matches(transaction_factory(id="txn-002", description="Payment office supplies"))

    assert matches.debit_matches[0].reason == "Similar description match"
    assert matches.debit_matches[0].account_id == "5200"
    assert matches.debit_matches[0].confidence == pytest.approx(0.95 * 0.85)
    assert matches.credit_matches[0].account_id == "2000"


def test_last_write_wins(matcher, transaction_factory):
    matcher.learn_from_transaction(transaction_factory(description="Monthly rent"), "5200", "1000")
    matcher.learn_from_transaction(transaction_factory(description="monthly rent"), "5300", "2000")

    matches = matcher.find_matches(transaction_factory(description="Monthly rent"))

    assert matches.debit_matches[0].account_id == "5300"
    assert matches.credit_matches[0].account_id == "2000"
    assert matcher.get_pattern_stats()["historical_patterns"] == 1


def test_frequency_suggestions(matcher, transaction_factory):
    matcher.learn_from_transaction(transaction_factory(description="rent"), "5300", "1000")
    matcher.learn_from_transaction(transaction_factory(description="power"), "5300", "2000")

    matches = matcher.find_matches(transaction_factory(description="zzz"))

    assert [m.account_id for m in matches.debit_matches] == ["5300", "1000", "2000"]
    assert [m.confidence for m in matches.debit_matches] == pytest.approx([1.0, 0.75, 0.75])
    assert matches.credit_matches == matches.debit_matches
    assert all(m.reason == "Frequently used account" for m in matches.debit_matches)


def test_candidates_are_not_deduplicated(matcher, transaction_factory):
    matcher.learn_from_transaction(transaction_factory(description="Office Depot supplies"), "5200", "1000")

    matches = matcher.find_matches(transaction_factory(description="Office Depot supplies"))

    # exact, similar (itself) and frequency all propose 5200
    assert [m.account_id for m in matches.debit_matches].count("5200") == 3
    assert all(0.0 <= m.confidence <= 1.0 for m in matches.debit_matches)


def test_initialize_clears_learned_tables(matcher, transaction_factory):
    matcher.learn_from_transaction(transaction_factory(customer_name="Office Depot"), "5200", "1000")
    assert matcher.get_pattern_stats() == {
        "historical_patterns": 1,
        "vendor_patterns": 1,
        "accounts_with_usage": 2,
    }

    matcher.initialize()

    assert matcher.get_pattern_stats() == {
        "historical_patterns": 0,
        "vendor_patterns": 0,
        "accounts_with_usage": 0,
    }
