"""
Account Pattern Builder - Vocabulary and per-account vectors

Builds one shared vocabulary from the whole chart of accounts, then one
AccountPattern (keywords + term vector) per account. A rebuild replaces
vocabulary and patterns together; there is no incremental update.
"""
import time
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from packages.common.config import Settings, get_settings
from packages.domain.mapping.mapping_logger import MappingLogger
from packages.domain.mapping.schemas import Account, AccountPattern, AccountType
from packages.domain.mapping.similarity import SimilarityCalculator
from packages.domain.mapping.text_processing import TextProcessor, Vocabulary

logger = structlog.get_logger()


class AccountPatternBuilder:
    """
    Derives searchable patterns from the chart of accounts.

    Usage:
        builder = AccountPatternBuilder()
        builder.build_patterns(accounts)
        builder.find_similar_accounts("office supplies", AccountType.EXPENSE)
        # → [("acc-5200", 0.81), ...]
    """

    def __init__(
        self,
        text_processor: Optional[TextProcessor] = None,
        similarity: Optional[SimilarityCalculator] = None,
        mapping_logger: Optional[MappingLogger] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.text_processor = text_processor or TextProcessor()
        self.mapping_logger = mapping_logger or MappingLogger(self.settings)
        self.similarity = similarity or SimilarityCalculator(self.text_processor, self.mapping_logger)
        self._patterns: Dict[str, AccountPattern] = {}
        self._vocabulary = Vocabulary()

    def build_patterns(self, accounts: Sequence[Account]) -> None:
        """Rebuild vocabulary and every account pattern."""
        start_time = time.perf_counter()

        vocabulary = self.text_processor.build_vocabulary(a.profile_text for a in accounts)
        patterns = {
            account.id: self._create_pattern(account, vocabulary)
            for account in accounts
        }

        # Swap both at once so readers never see a half-built index
        self._vocabulary = vocabulary
        self._patterns = patterns

        self.mapping_logger.log(
            "info", "account_patterns_built",
            duration=(time.perf_counter() - start_time) * 1000,
            pattern_count=len(patterns),
            vocabulary_size=len(vocabulary),
        )

    def _create_pattern(self, account: Account, vocabulary: Vocabulary) -> AccountPattern:
        text = account.profile_text
        return AccountPattern(
            account_id=account.id,
            code=account.code,
            type=account.type,
            keywords=self.text_processor.extract_key_phrases(text, self.settings.keyword_limit),
            description=text,
            vector=self.text_processor.create_vector(text, vocabulary),
        )

    def find_similar_accounts(
        self,
        text: str,
        account_type: Optional[AccountType] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, float]]:
        """
        Rank accounts by cosine similarity to text.

        Args:
            text: Free text to compare against account patterns
            account_type: Only consider accounts of this type
            limit: Maximum results (defaults to settings.similar_accounts_limit)

        Returns:
            (account_id, similarity) pairs, best first; ties keep chart order
        """
        limit = self.settings.similar_accounts_limit if limit is None else limit
        input_vector = self.text_processor.create_vector(text, self._vocabulary)

        scored = [
            (account_id, self.similarity.cosine(input_vector, pattern.vector))
            for account_id, pattern in self._patterns.items()
            if account_type is None or pattern.type == account_type
        ]
        ranked = sorted(scored, key=lambda item: -item[1])[:limit]

        logger.debug("similar_accounts_found",
                     input_text=text,
                     account_type=account_type.value if account_type else None,
                     matches=len(ranked))

        return ranked

    def get_pattern(self, account_id: str) -> Optional[AccountPattern]:
        return self._patterns.get(account_id)

    def get_vocabulary_size(self) -> int:
        return len(self._vocabulary)
