"""
Pattern Matcher - Feature-weighted account ranking

Each account owns a set of feature keys ("type:value"). Seeded from the
chart (code, type, subtype, name/description tokens) and grown by
learn_from_match() as mappings are confirmed.

Score for an account = weight of transaction features the account knows
÷ weight of all transaction features, where a feature's weight is
group_weight × within-group weight.
"""
import time
from typing import Dict, List, Optional, Sequence, Set

from packages.common.config import Settings, get_settings
from packages.domain.mapping.feature_extractor import TransactionFeatureExtractor
from packages.domain.mapping.mapping_logger import MappingLogger
from packages.domain.mapping.schemas import Account, Feature, PatternMatch, Transaction
from packages.domain.mapping.text_processing import TextProcessor


class PatternMatcher:
    """Ranks accounts by overlap between transaction features and account features."""

    def __init__(
        self,
        feature_extractor: Optional[TransactionFeatureExtractor] = None,
        text_processor: Optional[TextProcessor] = None,
        mapping_logger: Optional[MappingLogger] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.text_processor = text_processor or TextProcessor()
        self.mapping_logger = mapping_logger or MappingLogger(self.settings)
        self.feature_extractor = feature_extractor or TransactionFeatureExtractor(
            self.text_processor, self.mapping_logger, self.settings
        )
        self._account_features: Dict[str, Set[str]] = {}

    def initialize(self, accounts: Sequence[Account]) -> None:
        start_time = time.perf_counter()

        self._account_features = {
            account.id: self._seed_features(account) for account in accounts
        }

        self.mapping_logger.log(
            "info", "pattern_matcher_initialized",
            duration=(time.perf_counter() - start_time) * 1000,
            account_count=len(accounts),
        )

    def _seed_features(self, account: Account) -> Set[str]:
        features = {
            f"code:{account.code}",
            f"type:{account.type.value}",
            f"subtype:{account.subtype}",
        }
        text = f"{account.name} {account.description or ''}"
        features.update(
            f"description_word:{token}"
            for token in self.text_processor.process_text(text)
        )
        return features

    def find_matches(self, transaction: Transaction) -> List[PatternMatch]:
        """
        Rank accounts for a transaction.

        Returns:
            Matches with score > 0, best first; ties keep chart order.
            Errors are logged and yield an empty list.
        """
        start_time = time.perf_counter()

        try:
            features = self.feature_extractor.extract_features(transaction)

            matches = []
            for account_id, account_features in self._account_features.items():
                score = self._match_score(features, account_features)
                if score > 0:
                    matches.append(PatternMatch(
                        account_id=account_id,
                        confidence=score,
                        reason="Feature pattern match",
                    ))

            matches.sort(key=lambda m: -m.confidence)

            self.mapping_logger.log(
                "info", "feature_pattern_matches_found",
                duration=(time.perf_counter() - start_time) * 1000,
                transaction_id=transaction.id,
                match_count=len(matches),
                top_confidence=matches[0].confidence if matches else None,
            )
            return matches

        except Exception as e:
            self.mapping_logger.log(
                "error", "feature_pattern_matching_failed",
                transaction_id=transaction.id,
                error=str(e),
            )
            return []

    @staticmethod
    def _match_score(features: List[Feature], account_features: Set[str]) -> float:
        # Deduplicate by key, keeping the strongest weight seen
        weights: Dict[str, float] = {}
        for feature in features:
            weights[feature.key] = max(weights.get(feature.key, 0.0), feature.score_weight)

        total_weight = sum(weights.values())
        if total_weight <= 0:
            return 0.0

        matched_weight = sum(w for key, w in weights.items() if key in account_features)
        return matched_weight / total_weight

    def learn_from_match(self, transaction: Transaction, account_id: str) -> None:
        """Add the transaction's feature keys to an account's pattern set."""
        start_time = time.perf_counter()

        try:
            features = self.feature_extractor.extract_features(transaction)
            account_features = self._account_features.setdefault(account_id, set())
            account_features.update(f.key for f in features)

            self.mapping_logger.log(
                "info", "learned_from_match",
                duration=(time.perf_counter() - start_time) * 1000,
                transaction_id=transaction.id,
                account_id=account_id,
                feature_count=len(features),
            )

        except Exception as e:
            self.mapping_logger.log(
                "error", "learn_from_match_failed",
                transaction_id=transaction.id,
                account_id=account_id,
                error=str(e),
            )

    def get_account_features(self, account_id: str) -> Set[str]:
        return set(self._account_features.get(account_id, set()))

    def get_pattern_count(self) -> int:
        return len(self._account_features)
