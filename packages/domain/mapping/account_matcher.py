"""
Account Matcher - Resolve one transaction entry to a chart of accounts entry

Three stages, tried in order, first hit wins:
1. Exact code match: "5200" → account with code "5200"
2. Fuzzy code match: "GL-0100" → "100" ← "0100" (non-digits and leading zeros stripped)
3. Description match: weighted blend of
   - pattern overlap (0.4): account tokens found in the description
   - lexical similarity (0.3): description vs account name + description
   - sign convention (0.2): entry type is the account type's normal balance
   - amount range (0.1): typical magnitudes per account type

Whatever stage hits, the candidate is then validated against the standard's
sign convention. Validation is a hard gate: a debit entry can never resolve
to a credit-normal account, however well the description scored.
"""
import re
import time
from typing import Dict, List, Optional, Sequence, Tuple

from packages.common.config import Settings, get_settings
from packages.domain.mapping.errors import MissingSignConventionError
from packages.domain.mapping.mapping_logger import MappingLogger
from packages.domain.mapping.schemas import (
    Account,
    AccountingStandard,
    AccountType,
    EntryType,
    Transaction,
    TransactionEntry,
)
from packages.domain.mapping.similarity import SimilarityCalculator
from packages.domain.mapping.text_processing import TextProcessor

_TOKEN_SEPARATORS = re.compile(r"[\s\-_]+")
_NON_DIGITS = re.compile(r"\D")


class AccountMatcher:
    """
    Matches transaction entries to accounts by code, then by description.

    Usage:
        matcher = AccountMatcher()
        matcher.initialize(accounts, standard)
        account = matcher.find_matching_account(entry, transaction)
    """

    # Typical amount magnitudes per account type (small / medium / large)
    AMOUNT_RANGES = {
        AccountType.ASSET: (1000, 10000, 100000),
        AccountType.LIABILITY: (1000, 10000, 100000),
        AccountType.EXPENSE: (100, 1000, 10000),
        AccountType.REVENUE: (100, 1000, 10000),
    }
    AMOUNT_SCORES = (1.0, 0.8, 0.6)
    AMOUNT_SCORE_ABOVE_RANGE = 0.4
    AMOUNT_SCORE_UNKNOWN_TYPE = 0.5

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

        self.accounts: List[Account] = []
        self.standard: Optional[AccountingStandard] = None
        self._account_patterns: Dict[str, List[str]] = {}

    def initialize(self, accounts: Sequence[Account], standard: AccountingStandard) -> None:
        """Store the chart and precompute pattern tokens per account."""
        start_time = time.perf_counter()

        self.accounts = list(accounts)
        self.standard = standard
        self._account_patterns = {
            account.id: self._extract_account_patterns(account)
            for account in self.accounts
        }

        self.mapping_logger.log(
            "info", "account_matcher_initialized",
            duration=(time.perf_counter() - start_time) * 1000,
            account_count=len(self.accounts),
            standard_name=standard.name,
        )

    @staticmethod
    def _extract_account_patterns(account: Account) -> List[str]:
        tokens = [account.code.lower()]
        tokens.extend(_TOKEN_SEPARATORS.split(account.name.lower()))
        if account.description:
            tokens.extend(_TOKEN_SEPARATORS.split(account.description.lower()))
        tokens.append(account.type.value)
        tokens.append(account.subtype)

        # Deduplicate, keep first occurrence, drop empty fragments
        return [token for token in dict.fromkeys(tokens) if token]

    def find_matching_account(
        self,
        entry: TransactionEntry,
        transaction: Transaction,
    ) -> Optional[Account]:
        """
        Resolve an entry to an account.

        Args:
            entry: The debit or credit entry to resolve
            transaction: Owning transaction (its description drives stage 3)

        Returns:
            The validated account, or None if nothing matched or validation failed
        """
        start_time = time.perf_counter()

        try:
            candidate, stage = self._find_candidate(entry, transaction)

            if candidate is None:
                self.mapping_logger.log(
                    "warning", "no_matching_account",
                    duration=(time.perf_counter() - start_time) * 1000,
                    transaction_id=transaction.id,
                    account_number=entry.account_number,
                    description=transaction.description,
                )
                return None

            self.mapping_logger.log(
                "info", f"{stage}_match_found",
                duration=(time.perf_counter() - start_time) * 1000,
                transaction_id=transaction.id,
                account_code=candidate.code,
                account_name=candidate.name,
            )
            return candidate if self.validate_account_match(candidate, entry) else None

        except Exception as e:
            self.mapping_logger.log(
                "error", "account_matching_error",
                duration=(time.perf_counter() - start_time) * 1000,
                transaction_id=transaction.id,
                error=str(e),
            )
            return None

    def _find_candidate(
        self,
        entry: TransactionEntry,
        transaction: Transaction,
    ) -> Tuple[Optional[Account], Optional[str]]:
        exact = self.find_exact_match(entry.account_number)
        if exact:
            return exact, "exact"

        fuzzy = self.find_fuzzy_code_match(entry.account_number)
        if fuzzy:
            return fuzzy, "fuzzy"

        described = self.find_description_match(
            transaction.description,
            entry.type,
            entry.parsed_amount,
        )
        if described:
            return described, "description"

        return None, None

    def find_exact_match(self, account_number: str) -> Optional[Account]:
        return next(
            (a for a in self.accounts if a.is_active and a.code == account_number),
            None,
        )

    @staticmethod
    def normalize_code(code: str) -> str:
        """Strip non-digits and leading zeros: "GL-0100" → "100" """
        return _NON_DIGITS.sub("", code or "").lstrip("0")

    def find_fuzzy_code_match(self, account_number: str) -> Optional[Account]:
        normalized_input = self.normalize_code(account_number)
        # An input with no significant digits never matches anything
        if not normalized_input:
            return None

        return next(
            (
                a for a in self.accounts
                if a.is_active and self.normalize_code(a.code) == normalized_input
            ),
            None,
        )

    def score_description(
        self,
        description: str,
        entry_type: EntryType,
        amount: float,
    ) -> List[Tuple[Account, float]]:
        """
        Score every active account against a description.

        Returns:
            (account, score) pairs, best first; ties keep chart order
        """
        weights = self.settings.description_weights
        processed = set(self.text_processor.process_text(description))

        scored = []
        for account in self.accounts:
            if not account.is_active:
                continue

            patterns = self._account_patterns.get(account.id, [])
            pattern_score = (
                sum(1 for p in patterns if p in processed) / len(patterns)
                if patterns else 0.0
            )

            lexical_score = self.similarity.text_similarity(
                description,
                f"{account.name} {account.description or ''}",
            )

            normal_balance = self.standard.normal_balance_for(account.type) if self.standard else None
            sign_score = 1.0 if normal_balance == entry_type else 0.0

            score = (
                pattern_score * weights["pattern"]
                + lexical_score * weights["similarity"]
                + sign_score * weights["sign"]
                + self.get_amount_range_score(amount, account.type) * weights["amount"]
            )
            scored.append((account, score))

        return sorted(scored, key=lambda item: -item[1])

    def find_description_match(
        self,
        description: str,
        entry_type: EntryType,
        amount: float,
    ) -> Optional[Account]:
        scored = self.score_description(description, entry_type, amount)
        if scored and scored[0][1] > self.settings.description_match_threshold:
            return scored[0][0]
        return None

    def get_amount_range_score(self, amount: float, account_type: AccountType) -> float:
        ranges = self.AMOUNT_RANGES.get(account_type)
        if ranges is None:
            return self.AMOUNT_SCORE_UNKNOWN_TYPE

        for upper_bound, score in zip(ranges, self.AMOUNT_SCORES):
            if amount <= upper_bound:
                return score
        return self.AMOUNT_SCORE_ABOVE_RANGE

    def _normal_balance(self, account: Account) -> EntryType:
        normal_balance = self.standard.normal_balance_for(account.type)
        if normal_balance is None:
            raise MissingSignConventionError(
                f"No sign convention for account type: {account.type.value}",
                account_type=account.type.value,
                standard_name=self.standard.name,
            )
        return normal_balance

    def validate_account_match(self, account: Account, entry: TransactionEntry) -> bool:
        """Entry type must equal the account type's normal balance."""
        if self.standard is None:
            return True

        try:
            normal_balance = self._normal_balance(account)
        except MissingSignConventionError as e:
            self.mapping_logger.log(
                "warning", "missing_sign_convention",
                error_kind=e.kind.value,
                account_code=account.code,
                **e.context,
            )
            return False

        if entry.type != normal_balance:
            self.mapping_logger.log(
                "warning", "sign_convention_mismatch",
                account_code=account.code,
                account_type=account.type.value,
                entry_type=entry.type.value,
                expected_type=normal_balance.value,
            )
            return False

        return True
