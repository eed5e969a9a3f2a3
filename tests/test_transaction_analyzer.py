"""
Tests for batch transaction profiling.
"""
from datetime import date

from packages.domain.mapping.transaction_analyzer import TransactionAnalyzer


def test_analyze_transactions_profiles_each_transaction(settings, mapping_logger, transaction_factory):
    analyzer = TransactionAnalyzer(mapping_logger=mapping_logger, settings=settings)
    transactions = [
        transaction_factory(id="t1", description="Office supplies", customer_name="Staples",
                            amount="500.00", on=date(2025, 3, 1)),
        transaction_factory(id="t2", description="Printer paper", customer_name="staples",
                            amount="12.50", on=date(2025, 3, 14)),
        transaction_factory(id="t3", description="Rent", customer_name="Landlord LLC",
                            amount="3000", on=date(2025, 3, 31)),
    ]

    profiles = analyzer.analyze_transactions(transactions)

    assert list(profiles) == ["t1", "t2", "t3"]
    assert profiles["t1"].keywords == ["office", "supplies", "staples"]
    assert profiles["t1"].amount == 500.0
    assert profiles["t1"].amount_pattern == "hundred_multiple"
    assert profiles["t1"].date_pattern == "month_start"
    assert profiles["t1"].customer_pattern == "recurring_vendor"
    assert profiles["t2"].amount_pattern == "decimal"
    assert profiles["t2"].customer_pattern == "recurring_vendor"
    assert profiles["t3"].amount_pattern == "thousand_multiple"
    assert profiles["t3"].date_pattern == "month_end"
    assert profiles["t3"].customer_pattern is None
    assert all(len(p.vector) == len(analyzer.get_vocabulary()) for p in profiles.values())


def test_common_vendors_are_counted_case_insensitively(settings, mapping_logger, transaction_factory):
    analyzer = TransactionAnalyzer(mapping_logger=mapping_logger, settings=settings)
    analyzer.analyze_transactions([
        transaction_factory(id="t1", customer_name="Staples"),
        transaction_factory(id="t2", customer_name="STAPLES"),
        transaction_factory(id="t3"),
    ])

    assert analyzer.get_common_vendors() == {"staples": 2}


def test_analyzer_is_exported_and_reports_through_shared_logger(settings, mapping_logger, transaction_factory):
    from packages.domain.mapping import TransactionAnalyzer as ExportedAnalyzer

    analyzer = ExportedAnalyzer(mapping_logger=mapping_logger, settings=settings)
    analyzer.analyze_transactions([transaction_factory(id="t1"), transaction_factory(id="t2")])

    events = [e for e in mapping_logger.get_logs() if e.message == "transaction_analysis_complete"]
    assert ExportedAnalyzer is TransactionAnalyzer
    assert events[0].data["transaction_count"] == 2
