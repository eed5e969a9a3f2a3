"""
RAG Mapper - Rank accounts by bag-of-words similarity to a transaction

Not a learned embedding: accounts and transactions are term-count vectors
over one vocabulary built from the chart of accounts.

Transaction text = description + vendor + "type:value" feature tokens.
Account score = cosine(transaction, account) × sign adjustment, where the
adjustment is ×1.2 when the debit amount's polarity agrees with the
account's normal balance and ×0.8 otherwise.

The debit side is the best debit-normal account, the credit side the best
credit-normal account (never the debit pick). Confidence is the weaker of
the two scores.
"""
import time
from typing import Dict, List, NamedTuple, Optional, Sequence

import numpy as np

from packages.common.config import Settings, get_settings
from packages.domain.mapping.errors import MalformedTransactionError
from packages.domain.mapping.feature_extractor import TransactionFeatureExtractor
from packages.domain.mapping.mapping_logger import MappingLogger
from packages.domain.mapping.schemas import (
    Account,
    AccountingStandard,
    EntryType,
    MappingResult,
    MappingSource,
    Transaction,
)
from packages.domain.mapping.similarity import SimilarityCalculator
from packages.domain.mapping.text_processing import TextProcessor, Vocabulary


class ScoredAccount(NamedTuple):
    account: Account
    normal_balance: EntryType
    score: float


class RAGMapper:
    """
    First cascade stage.

    Usage:
        rag = RAGMapper()
        rag.initialize(accounts, standard)
        result = rag.map_transaction(transaction)
    """

    def __init__(
        self,
        text_processor: Optional[TextProcessor] = None,
        similarity: Optional[SimilarityCalculator] = None,
        feature_extractor: Optional[TransactionFeatureExtractor] = None,
        mapping_logger: Optional[MappingLogger] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.text_processor = text_processor or TextProcessor()
        self.mapping_logger = mapping_logger or MappingLogger(self.settings)
        self.similarity = similarity or SimilarityCalculator(self.text_processor, self.mapping_logger)
        self.feature_extractor = feature_extractor or TransactionFeatureExtractor(
            self.text_processor, self.mapping_logger, self.settings
        )

        self.accounts: List[Account] = []
        self.standard: Optional[AccountingStandard] = None
        self._vocabulary = Vocabulary()
        self._embeddings: Dict[str, np.ndarray] = {}

    def initialize(self, accounts: Sequence[Account], standard: AccountingStandard) -> None:
        """
        Rebuild vocabulary and account embeddings.

        Errors propagate; a failed rebuild leaves the previous index intact.
        """
        start_time = time.perf_counter()

        vocabulary = self.text_processor.build_vocabulary(a.profile_text for a in accounts)
        embeddings = {
            account.id: self.text_processor.create_vector(account.profile_text, vocabulary)
            for account in accounts
        }

        self.accounts = list(accounts)
        self.standard = standard
        self._vocabulary = vocabulary
        self._embeddings = embeddings

        # Accounts of these types are never scored
        uncovered = dict.fromkeys(
            a.type for a in self.accounts if standard.normal_balance_for(a.type) is None
        )
        for account_type in uncovered:
            self.mapping_logger.log(
                "warning", "missing_sign_convention",
                account_type=account_type.value,
                standard_name=standard.name,
                account_count=sum(1 for a in self.accounts if a.type == account_type),
            )

        self.mapping_logger.log(
            "info", "rag_mapper_initialized",
            duration=(time.perf_counter() - start_time) * 1000,
            account_count=len(self.accounts),
            vocabulary_size=len(vocabulary),
        )

    def _transaction_text(self, transaction: Transaction) -> str:
        features = self.feature_extractor.extract_features(transaction)
        parts = [transaction.description, transaction.customer_name or ""]
        parts.extend(f.key for f in features)
        return " ".join(parts)

    def _sign_adjustment(self, amount: float, normal_balance: EntryType) -> float:
        # Amounts are validated non-negative, so the credit branch only
        # fires for callers that bypass TransactionEntry validation
        if (amount > 0 and normal_balance == EntryType.DEBIT) or \
                (amount < 0 and normal_balance == EntryType.CREDIT):
            return self.settings.sign_boost
        return self.settings.sign_penalty

    def score_accounts(self, transaction: Transaction) -> List[ScoredAccount]:
        """
        Score every account that has a sign convention.

        Accounts of uncovered types are skipped silently; initialize warns
        about them once per type.

        Raises:
            MalformedTransactionError: transaction lacks a debit or credit entry
        """
        debit_entry = transaction.debit_entry
        if debit_entry is None or transaction.credit_entry is None:
            raise MalformedTransactionError(
                "Transaction must have both debit and credit entries",
                transaction_id=transaction.id,
                entry_count=len(transaction.entries),
            )

        amount = debit_entry.parsed_amount
        vector = self.text_processor.create_vector(self._transaction_text(transaction), self._vocabulary)

        scored = []
        for account in self.accounts:
            normal_balance = self.standard.normal_balance_for(account.type) if self.standard else None
            if normal_balance is None:
                continue

            cosine = self.similarity.cosine(vector, self._embeddings[account.id])
            scored.append(ScoredAccount(
                account=account,
                normal_balance=normal_balance,
                score=cosine * self._sign_adjustment(amount, normal_balance),
            ))

        # Stable: ties keep chart order
        return sorted(scored, key=lambda s: -s.score)

    def map_transaction(self, transaction: Transaction) -> MappingResult:
        """
        Propose a debit/credit pair.

        Returns:
            A RAG-sourced result; zero confidence (no accounts) when a side
            cannot be filled or the transaction is malformed
        """
        start_time = time.perf_counter()

        try:
            scored = self.score_accounts(transaction)

            debit = next((s for s in scored if s.normal_balance == EntryType.DEBIT), None)
            credit = next(
                (
                    s for s in scored
                    if s.normal_balance == EntryType.CREDIT
                    and (debit is None or s.account.id != debit.account.id)
                ),
                None,
            )

            if debit is None or credit is None:
                self.mapping_logger.log(
                    "info", "rag_mapping_incomplete",
                    duration=(time.perf_counter() - start_time) * 1000,
                    transaction_id=transaction.id,
                    has_debit=debit is not None,
                    has_credit=credit is not None,
                )
                return MappingResult.unmapped()

            confidence = min(debit.score, credit.score, 1.0)
            confidence = max(confidence, 0.0)

            self.mapping_logger.log(
                "info", "rag_mapping_complete",
                duration=(time.perf_counter() - start_time) * 1000,
                transaction_id=transaction.id,
                debit_account=debit.account.code,
                credit_account=credit.account.code,
                confidence=confidence,
            )

            return MappingResult(
                debit_account=debit.account,
                credit_account=credit.account,
                confidence=confidence,
                source=MappingSource.RAG,
            )

        except MalformedTransactionError as e:
            self.mapping_logger.log(
                "error", "rag_mapping_failed",
                duration=(time.perf_counter() - start_time) * 1000,
                transaction_id=transaction.id,
                error_kind=e.kind.value,
                error=e.message,
            )
            return MappingResult.unmapped()

    def get_vocabulary_size(self) -> int:
        return len(self._vocabulary)
