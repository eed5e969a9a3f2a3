"""
Transaction Analyzer - Batch-level profiling of incoming transactions

Builds a vocabulary over the batch itself (description + vendor) and flags
vendors that recur within the batch. Used for review screens and batch
summaries; the cascade does not depend on it.
"""
import time
from collections import Counter
from typing import Dict, Optional, Sequence

from packages.common.config import Settings, get_settings
from packages.domain.mapping.mapping_logger import MappingLogger
from packages.domain.mapping.schemas import Transaction, TransactionProfile
from packages.domain.mapping.text_processing import TextProcessor, Vocabulary


class TransactionAnalyzer:
    """Profiles a batch of transactions."""

    def __init__(
        self,
        text_processor: Optional[TextProcessor] = None,
        mapping_logger: Optional[MappingLogger] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.text_processor = text_processor or TextProcessor()
        self.mapping_logger = mapping_logger or MappingLogger(self.settings)
        self._vocabulary = Vocabulary()
        self._vendor_counts: Counter = Counter()

    @staticmethod
    def _profile_text(transaction: Transaction) -> str:
        return f"{transaction.description} {transaction.customer_name or ''}"

    def analyze_transactions(self, transactions: Sequence[Transaction]) -> Dict[str, TransactionProfile]:
        """
        Profile every transaction in the batch.

        Returns:
            Profiles keyed by transaction id
        """
        start_time = time.perf_counter()

        self._vocabulary = self.text_processor.build_vocabulary(
            self._profile_text(t) for t in transactions
        )
        self._vendor_counts = Counter(
            t.customer_name.lower() for t in transactions if t.customer_name
        )

        profiles = {t.id: self._profile(t) for t in transactions}

        self.mapping_logger.log(
            "info", "transaction_analysis_complete",
            duration=(time.perf_counter() - start_time) * 1000,
            transaction_count=len(transactions),
            vocabulary_size=len(self._vocabulary),
            vendor_count=len(self._vendor_counts),
        )

        return profiles

    def _profile(self, transaction: Transaction) -> TransactionProfile:
        text = self._profile_text(transaction)
        debit_entry = transaction.debit_entry
        amount = debit_entry.parsed_amount if debit_entry else 0.0

        customer_pattern = None
        if transaction.customer_name and self._vendor_counts[transaction.customer_name.lower()] > 1:
            customer_pattern = "recurring_vendor"

        return TransactionProfile(
            id=transaction.id,
            description=transaction.description,
            keywords=self.text_processor.extract_key_phrases(text, self.settings.keyword_limit),
            vector=self.text_processor.create_vector(text, self._vocabulary),
            amount=amount,
            amount_pattern=self.text_processor.find_amount_pattern(amount),
            date_pattern=self.text_processor.find_date_pattern(transaction.date),
            customer_pattern=customer_pattern,
        )

    def get_vocabulary(self) -> Vocabulary:
        return self._vocabulary

    def get_common_vendors(self) -> Dict[str, int]:
        return dict(self._vendor_counts)
