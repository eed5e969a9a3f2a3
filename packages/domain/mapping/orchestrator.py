"""
Mapping Orchestrator - Cascading debit/credit account assignment

Flow (first accepted stage wins):
1. RAG: bag-of-words similarity to the chart, accept if confidence > 0.8
2. Learned patterns: historical / vendor / similar description / frequent
   accounts, accept if min(best debit, best credit) > 0.7
3. Account matching: code then description per entry, accept at a fixed
   0.6 when both entries resolve
4. Unmapped: confidence 0, both accounts absent, flagged for review

Example:
- Input: "Office Depot supplies", debit 500.00 / credit 500.00
- Stage 1: best pair scores 0.41 → rejected
- Stage 2: learned last week as 5200 / 1000 → 0.95 → accepted
- Output: MappingResult(5200, 1000, confidence=0.95, source=pattern)

Stage failures never escape map_transaction; they are logged and the
cascade moves on as if that stage found nothing.
"""
from collections import Counter
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from packages.common.config import Settings, get_settings
from packages.domain.mapping.account_matcher import AccountMatcher
from packages.domain.mapping.account_patterns import AccountPatternBuilder
from packages.domain.mapping.errors import (
    MalformedTransactionError,
    NotInitializedError,
    StageOutcome,
)
from packages.domain.mapping.feature_extractor import TransactionFeatureExtractor
from packages.domain.mapping.mapping_logger import MappingLogger
from packages.domain.mapping.pattern_matcher import PatternMatcher
from packages.domain.mapping.rag_mapper import RAGMapper
from packages.domain.mapping.schemas import (
    Account,
    AccountingStandard,
    AccountType,
    MappingResult,
    MappingSource,
    Transaction,
)
from packages.domain.mapping.similarity import SimilarityCalculator
from packages.domain.mapping.text_processing import TextProcessor
from packages.domain.mapping.transaction_pattern_matcher import TransactionPatternMatcher

logger = structlog.get_logger()

Stage = Callable[[Transaction], MappingResult]


class MappingOrchestrator:
    """
    Runs the mapping cascade over injected stage services.

    Usage:
        orchestrator = MappingOrchestrator()
        await orchestrator.initialize(accounts, standard)
        result = await orchestrator.map_transaction(transaction)
        if result.requires_review:
            ...  # surface for manual mapping
        else:
            await orchestrator.learn_from_transaction(
                transaction, result.debit_account.id, result.credit_account.id
            )

    Any service left out is built from the shared TextProcessor,
    SimilarityCalculator and MappingLogger of this orchestrator.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        mapping_logger: Optional[MappingLogger] = None,
        text_processor: Optional[TextProcessor] = None,
        similarity: Optional[SimilarityCalculator] = None,
        rag_mapper: Optional[RAGMapper] = None,
        transaction_pattern_matcher: Optional[TransactionPatternMatcher] = None,
        account_matcher: Optional[AccountMatcher] = None,
        pattern_builder: Optional[AccountPatternBuilder] = None,
        pattern_matcher: Optional[PatternMatcher] = None,
    ):
        self.settings = settings or get_settings()
        self.mapping_logger = mapping_logger or MappingLogger(self.settings)
        self.text_processor = text_processor or TextProcessor()
        self.similarity = similarity or SimilarityCalculator(self.text_processor, self.mapping_logger)

        feature_extractor = TransactionFeatureExtractor(
            self.text_processor, self.mapping_logger, self.settings
        )

        self.rag_mapper = rag_mapper or RAGMapper(
            self.text_processor, self.similarity, feature_extractor, self.mapping_logger, self.settings
        )
        self.transaction_pattern_matcher = transaction_pattern_matcher or TransactionPatternMatcher(
            self.similarity, self.mapping_logger, self.settings
        )
        self.account_matcher = account_matcher or AccountMatcher(
            self.text_processor, self.similarity, self.mapping_logger, self.settings
        )
        self.pattern_builder = pattern_builder or AccountPatternBuilder(
            self.text_processor, self.similarity, self.mapping_logger, self.settings
        )
        self.pattern_matcher = pattern_matcher or PatternMatcher(
            feature_extractor, self.text_processor, self.mapping_logger, self.settings
        )

        self._accounts_by_id: Dict[str, Account] = {}
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self, accounts: Sequence[Account], standard: AccountingStandard) -> None:
        """
        Rebuild every stage index for a chart of accounts and standard.

        Also starts a fresh learning session: learned patterns are dropped.
        Failures propagate and leave the orchestrator uninitialized.
        """
        self._initialized = False

        try:
            self.rag_mapper.initialize(accounts, standard)
            self.account_matcher.initialize(accounts, standard)
            self.transaction_pattern_matcher.initialize()
            self.pattern_builder.build_patterns(accounts)
            self.pattern_matcher.initialize(accounts)
        except Exception as e:
            self.mapping_logger.log(
                "error", "orchestrator_initialization_failed",
                standard_name=standard.name,
                error=str(e),
            )
            raise

        self._accounts_by_id = {account.id: account for account in accounts}
        self._initialized = True

        self.mapping_logger.log(
            "info", "orchestrator_initialized",
            account_count=len(accounts),
            standard_name=standard.name,
        )

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitializedError("Mapping orchestrator not initialized")

    async def map_transaction(self, transaction: Transaction) -> MappingResult:
        """
        Map one transaction through the cascade.

        Returns:
            The first accepted stage result, or MappingResult.unmapped()

        Raises:
            NotInitializedError: initialize() has not completed
        """
        self._require_initialized()
        self.mapping_logger.start_attempt(transaction.id)

        stages: List[Tuple[MappingSource, Stage, Callable[[float], bool]]] = [
            (MappingSource.RAG, self.rag_mapper.map_transaction,
             lambda c: c > self.settings.rag_threshold),
            (MappingSource.PATTERN, self._try_pattern_matching,
             lambda c: c > self.settings.pattern_threshold),
            (MappingSource.ACCOUNT_MATCH, self._try_account_matching,
             lambda c: c > 0),
        ]

        for source, stage, accept in stages:
            outcome = self._run_stage(source, stage, transaction)
            confidence = outcome.result.confidence

            if not outcome.failed and outcome.result.is_mapped and accept(confidence):
                duration = self.mapping_logger.end_attempt(transaction.id, success=True)
                self.mapping_logger.log(
                    "info", "mapping_accepted",
                    duration=duration,
                    transaction_id=transaction.id,
                    source=source.value,
                    confidence=confidence,
                    debit_account=outcome.result.debit_account.code,
                    credit_account=outcome.result.credit_account.code,
                )
                return outcome.result

            logger.debug("stage_rejected",
                         transaction_id=transaction.id,
                         source=source.value,
                         confidence=confidence,
                         error_kind=outcome.error_kind.value if outcome.failed else None)

        duration = self.mapping_logger.end_attempt(transaction.id, success=False)
        self.mapping_logger.log(
            "warning", "no_mapping_found",
            duration=duration,
            transaction_id=transaction.id,
        )
        return MappingResult.unmapped()

    def _run_stage(self, source: MappingSource, stage: Stage, transaction: Transaction) -> StageOutcome:
        """Run one stage, turning any failure into a zero-confidence outcome."""
        try:
            result = stage(transaction)
        except Exception as e:
            outcome = StageOutcome.from_error(e)
            self.mapping_logger.log(
                "error", "stage_failed",
                transaction_id=transaction.id,
                source=source.value,
                error_kind=outcome.error_kind.value,
                error=outcome.error,
            )
            return outcome

        if result.is_mapped and result.debit_account.id == result.credit_account.id:
            self.mapping_logger.log(
                "warning", "same_account_rejected",
                transaction_id=transaction.id,
                source=source.value,
                account_code=result.debit_account.code,
            )
            return StageOutcome.no_match()

        return StageOutcome(result=result)

    def _try_pattern_matching(self, transaction: Transaction) -> MappingResult:
        matches = self.transaction_pattern_matcher.find_matches(transaction)
        if not matches.is_complete:
            return MappingResult.unmapped()

        best_debit = matches.debit_matches[0]
        best_credit = matches.credit_matches[0]

        debit_account = self._accounts_by_id.get(best_debit.account_id)
        credit_account = self._accounts_by_id.get(best_credit.account_id)
        if debit_account is None or credit_account is None:
            self.mapping_logger.log(
                "warning", "pattern_account_not_in_chart",
                transaction_id=transaction.id,
                debit_account_id=best_debit.account_id,
                credit_account_id=best_credit.account_id,
            )
            return MappingResult.unmapped()

        confidence = min(best_debit.confidence, best_credit.confidence)
        return MappingResult(
            debit_account=debit_account,
            credit_account=credit_account,
            confidence=max(0.0, min(confidence, 1.0)),
            source=MappingSource.PATTERN,
        )

    def _try_account_matching(self, transaction: Transaction) -> MappingResult:
        debit_entry = transaction.debit_entry
        credit_entry = transaction.credit_entry
        if debit_entry is None or credit_entry is None:
            raise MalformedTransactionError(
                "Transaction must have both debit and credit entries",
                transaction_id=transaction.id,
            )

        debit_account = self.account_matcher.find_matching_account(debit_entry, transaction)
        credit_account = self.account_matcher.find_matching_account(credit_entry, transaction)

        if debit_account is None or credit_account is None:
            return MappingResult.unmapped()

        return MappingResult(
            debit_account=debit_account,
            credit_account=credit_account,
            confidence=self.settings.account_match_confidence,
            source=MappingSource.ACCOUNT_MATCH,
        )

    async def map_transactions(self, transactions: Sequence[Transaction]) -> Dict[str, MappingResult]:
        """
        Map a batch sequentially.

        Returns:
            Results keyed by transaction id, in input order
        """
        self._require_initialized()
        logger.info("batch_mapping_started", transaction_count=len(transactions))

        results: Dict[str, MappingResult] = {}
        for transaction in transactions:
            results[transaction.id] = await self.map_transaction(transaction)

        by_source = Counter(r.source.value for r in results.values())
        self.mapping_logger.log(
            "info", "batch_mapping_complete",
            transaction_count=len(transactions),
            mapped=sum(1 for r in results.values() if r.is_mapped),
            needs_review=sum(1 for r in results.values() if r.requires_review),
            **{f"source_{source}": count for source, count in sorted(by_source.items())},
        )

        return results

    async def learn_from_transaction(
        self,
        transaction: Transaction,
        debit_account_id: str,
        credit_account_id: str,
    ) -> None:
        """Feed a confirmed mapping back into both pattern learners."""
        self._require_initialized()

        self.transaction_pattern_matcher.learn_from_transaction(
            transaction, debit_account_id, credit_account_id
        )
        self.pattern_matcher.learn_from_match(transaction, debit_account_id)
        self.pattern_matcher.learn_from_match(transaction, credit_account_id)

    def find_similar_accounts(
        self,
        text: str,
        account_type: Optional[AccountType] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[Account, float]]:
        """Accounts most similar to free text, for manual review"""
        self._require_initialized()
        return [
            (self._accounts_by_id[account_id], similarity)
            for account_id, similarity in self.pattern_builder.find_similar_accounts(text, account_type, limit)
        ]

    def suggest_accounts(self, transaction: Transaction, limit: Optional[int] = None) -> List[Tuple[Account, float]]:
        """Feature-pattern ranking of accounts for one transaction, for manual review"""
        self._require_initialized()
        limit = self.settings.similar_accounts_limit if limit is None else limit

        suggestions = []
        for match in self.pattern_matcher.find_matches(transaction):
            account = self._accounts_by_id.get(match.account_id)
            if account is not None:
                suggestions.append((account, match.confidence))
            if len(suggestions) >= limit:
                break
        return suggestions

    def get_stats(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "account_count": len(self._accounts_by_id),
            "rag_vocabulary_size": self.rag_mapper.get_vocabulary_size(),
            "pattern_vocabulary_size": self.pattern_builder.get_vocabulary_size(),
            "similarity_cache_size": self.similarity.get_cache_size(),
            "feature_pattern_count": self.pattern_matcher.get_pattern_count(),
            "learned_patterns": self.transaction_pattern_matcher.get_pattern_stats(),
            "attempts": self.mapping_logger.get_attempt_summary().to_dict(),
        }
