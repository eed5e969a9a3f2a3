"""
Transaction Pattern Matcher - Learn account pairs from confirmed mappings

Three learned tables, all empty until learn_from_transaction() is called:
- historical: normalized description → last confirmed (debit, credit) pair
- vendor: normalized vendor name → last confirmed (debit, credit) pair
- usage: account id → times it appeared in any confirmed mapping

Lookup order for find_matches (candidates are appended, never merged):
1. Exact description hit: 0.95
2. Exact vendor hit: 0.90
3. Similar description (similarity > 0.7): similarity × 0.85
4. Most frequently used accounts: 0.5 + frequency / (2 × historical size)

Example:
    learn("Office Depot supplies", debit=5200, credit=1000)
    find_matches("office depot supplies ") → debit 5200 @ 0.95, credit 1000 @ 0.95
"""
import time
from collections import Counter
from typing import Dict, List, NamedTuple, Optional

from packages.common.config import Settings, get_settings
from packages.domain.mapping.mapping_logger import MappingLogger
from packages.domain.mapping.schemas import MatchCandidates, PatternMatch, Transaction
from packages.domain.mapping.similarity import SimilarityCalculator
from packages.domain.mapping.text_processing import TextProcessor


class AccountPair(NamedTuple):
    debit: str
    credit: str


class TransactionPatternMatcher:
    """
    Suggests debit/credit accounts from previously confirmed mappings.

    Learned state lives only for the life of the instance.
    """

    def __init__(
        self,
        similarity: Optional[SimilarityCalculator] = None,
        mapping_logger: Optional[MappingLogger] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.mapping_logger = mapping_logger or MappingLogger(self.settings)
        self.similarity = similarity or SimilarityCalculator(TextProcessor(), self.mapping_logger)

        self._historical_patterns: Dict[str, AccountPair] = {}
        self._vendor_patterns: Dict[str, AccountPair] = {}
        self._account_usage: Counter = Counter()

    def initialize(self) -> None:
        """Forget everything learned so far."""
        self._historical_patterns.clear()
        self._vendor_patterns.clear()
        self._account_usage.clear()
        self.mapping_logger.log("info", "transaction_pattern_matcher_initialized")

    @staticmethod
    def normalize_text(text: str) -> str:
        return (text or "").lower().strip()

    def learn_from_transaction(
        self,
        transaction: Transaction,
        debit_account_id: str,
        credit_account_id: str,
    ) -> None:
        """
        Record a confirmed mapping.

        Later confirmations for the same description or vendor overwrite
        earlier ones.
        """
        start_time = time.perf_counter()
        pair = AccountPair(debit=debit_account_id, credit=credit_account_id)

        self._historical_patterns[self.normalize_text(transaction.description)] = pair

        if transaction.customer_name:
            self._vendor_patterns[self.normalize_text(transaction.customer_name)] = pair

        self._account_usage[debit_account_id] += 1
        self._account_usage[credit_account_id] += 1

        self.mapping_logger.log(
            "info", "learned_from_transaction",
            duration=(time.perf_counter() - start_time) * 1000,
            transaction_id=transaction.id,
            patterns_count=len(self._historical_patterns),
            vendor_patterns_count=len(self._vendor_patterns),
        )

    def find_matches(self, transaction: Transaction) -> MatchCandidates:
        """
        Collect debit and credit candidates from all learned tables.

        Lists are ordered by lookup priority (exact, vendor, similar,
        frequent), not re-sorted across blocks. Errors are logged and the
        candidates gathered so far are returned.
        """
        start_time = time.perf_counter()
        results = MatchCandidates()

        try:
            historical = self._historical_patterns.get(self.normalize_text(transaction.description))
            if historical:
                self._add_pair(results, historical, self.settings.historical_confidence,
                               "Historical pattern match")

            if transaction.customer_name:
                vendor = self._vendor_patterns.get(self.normalize_text(transaction.customer_name))
                if vendor:
                    self._add_pair(results, vendor, self.settings.vendor_confidence,
                                   "Vendor pattern match")

            for pair, confidence in self._similar_description_matches(transaction):
                self._add_pair(results, pair, confidence, "Similar description match")

            frequent = self._frequency_based_matches()
            results.debit_matches.extend(frequent)
            results.credit_matches.extend(frequent)

            self.mapping_logger.log(
                "info", "transaction_pattern_matches_found",
                duration=(time.perf_counter() - start_time) * 1000,
                transaction_id=transaction.id,
                debit_matches_count=len(results.debit_matches),
                credit_matches_count=len(results.credit_matches),
            )

        except Exception as e:
            self.mapping_logger.log(
                "error", "transaction_pattern_matching_failed",
                transaction_id=transaction.id,
                error=str(e),
            )

        return results

    @staticmethod
    def _add_pair(results: MatchCandidates, pair: AccountPair, confidence: float, reason: str) -> None:
        results.debit_matches.append(PatternMatch(pair.debit, confidence, reason))
        results.credit_matches.append(PatternMatch(pair.credit, confidence, reason))

    def _similar_description_matches(self, transaction: Transaction) -> List[tuple]:
        threshold = self.settings.fuzzy_description_threshold
        factor = self.settings.fuzzy_confidence_factor

        hits = []
        for description, pair in self._historical_patterns.items():
            similarity = self.similarity.text_similarity(transaction.description, description)
            if similarity > threshold:
                hits.append((pair, min(similarity * factor, 1.0)))

        # Stable: equally similar descriptions keep learning order
        return sorted(hits, key=lambda hit: -hit[1])

    def _frequency_based_matches(self) -> List[PatternMatch]:
        history_size = len(self._historical_patterns)
        if history_size == 0:
            return []

        return [
            PatternMatch(
                account_id=account_id,
                confidence=min(0.5 + frequency / (2 * history_size), 1.0),
                reason="Frequently used account",
            )
            for account_id, frequency in self._account_usage.most_common(self.settings.frequency_suggestions)
        ]

    def get_pattern_stats(self) -> Dict[str, int]:
        return {
            "historical_patterns": len(self._historical_patterns),
            "vendor_patterns": len(self._vendor_patterns),
            "accounts_with_usage": len(self._account_usage),
        }
