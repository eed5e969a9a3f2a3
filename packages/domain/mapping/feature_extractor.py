"""
Transaction Feature Extractor - Weighted feature bag for one transaction

Five feature groups, each with a group weight (from settings):
- description (0.35): tokens and adjacent token pairs
- amount (0.25): amount bucket, whole-number and common-amount flags
- vendor (0.20): normalized vendor and vendor-type tags
- date (0.15): day of week, day of month, month boundary, weekend
- transaction_type (0.05): type of the first entry

Example:
    "Payment for office supplies", $500.00 debit, Office Depot Inc, 2025-03-31
    → description_word:payment, description_word_pair:office_supplies,
      amount_range:small, amount_type:common_amount, vendor:office depot inc,
      vendor_type:company, date_type:month_boundary, transaction_type:debit, ...
"""
import calendar
import re
import time
from datetime import date
from typing import List, Optional

from packages.common.config import Settings, get_settings
from packages.domain.mapping.mapping_logger import MappingLogger
from packages.domain.mapping.schemas import Feature, Transaction
from packages.domain.mapping.text_processing import TextProcessor

# Upper bounds (inclusive) of the amount buckets
AMOUNT_THRESHOLDS = (
    (100, "very_small"),
    (1000, "small"),
    (10000, "medium"),
    (100000, "large"),
)

COMMON_AMOUNTS = frozenset({10, 20, 50, 100, 500, 1000})

VENDOR_TYPE_PATTERNS = (
    (re.compile(r"(inc|corp|ltd|llc)$", re.IGNORECASE), "company"),
    (re.compile(r"(store|shop|mart|market)$", re.IGNORECASE), "retail"),
    (re.compile(r"(bank|credit union|financial)", re.IGNORECASE), "financial"),
    (re.compile(r"(restaurant|cafe|diner)", re.IGNORECASE), "food_service"),
    (re.compile(r"(service|consulting|professional)", re.IGNORECASE), "service"),
)


class TransactionFeatureExtractor:
    """Turns a transaction into a flat list of weighted Features."""

    def __init__(
        self,
        text_processor: Optional[TextProcessor] = None,
        mapping_logger: Optional[MappingLogger] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.text_processor = text_processor or TextProcessor()
        self.mapping_logger = mapping_logger or MappingLogger(self.settings)

    def extract_features(self, transaction: Transaction) -> List[Feature]:
        """
        Extract all feature groups.

        Errors are logged and the features gathered so far are returned.
        """
        start_time = time.perf_counter()
        group_weights = self.settings.feature_group_weights
        features: List[Feature] = []

        try:
            features.extend(self._with_group(
                self._description_features(transaction.description),
                group_weights["description"],
            ))
            features.extend(self._with_group(
                self._amount_features(transaction),
                group_weights["amount"],
            ))
            if transaction.customer_name:
                features.extend(self._with_group(
                    self._vendor_features(transaction.customer_name),
                    group_weights["vendor"],
                ))
            features.extend(self._with_group(
                self._date_features(transaction.date),
                group_weights["date"],
            ))

            first_type = transaction.entries[0].type.value if transaction.entries else "unknown"
            features.append(Feature(
                type="transaction_type",
                value=first_type,
                weight=1.0,
                group_weight=group_weights["transaction_type"],
            ))

            self.mapping_logger.log(
                "info", "features_extracted",
                duration=(time.perf_counter() - start_time) * 1000,
                transaction_id=transaction.id,
                feature_count=len(features),
            )

        except Exception as e:
            self.mapping_logger.log(
                "error", "feature_extraction_failed",
                transaction_id=transaction.id,
                error=str(e),
            )

        return features

    @staticmethod
    def _with_group(features: List[Feature], group_weight: float) -> List[Feature]:
        return [
            Feature(type=f.type, value=f.value, weight=f.weight, group_weight=group_weight)
            for f in features
        ]

    def _description_features(self, description: str) -> List[Feature]:
        words = self.text_processor.process_text(description)

        features = [Feature(type="description_word", value=word) for word in words]
        features.extend(
            Feature(type="description_word_pair", value=f"{first}_{second}", weight=1.2)
            for first, second in zip(words, words[1:])
        )
        return features

    def _amount_features(self, transaction: Transaction) -> List[Feature]:
        debit_entry = transaction.debit_entry
        amount = debit_entry.parsed_amount if debit_entry else 0.0

        features = [Feature(type="amount_range", value=self.get_amount_range(amount))]

        if amount % 1 == 0:
            features.append(Feature(type="amount_type", value="whole_number", weight=1.2))

        if self.is_common_amount(amount):
            features.append(Feature(type="amount_type", value="common_amount", weight=1.5))

        return features

    def _vendor_features(self, vendor: str) -> List[Feature]:
        normalized_vendor = vendor.lower().strip()

        features = [Feature(type="vendor", value=normalized_vendor)]
        features.extend(
            Feature(type="vendor_type", value=vendor_type, weight=1.2)
            for vendor_type in self.detect_vendor_types(normalized_vendor)
        )
        return features

    def _date_features(self, value: date) -> List[Feature]:
        features = [
            # Sunday = 0 ... Saturday = 6
            Feature(type="day_of_week", value=value.isoweekday() % 7),
            Feature(type="day_of_month", value=value.day),
        ]

        last_day = calendar.monthrange(value.year, value.month)[1]
        if value.day in (1, last_day):
            features.append(Feature(type="date_type", value="month_boundary", weight=1.5))

        if value.weekday() >= 5:
            features.append(Feature(type="date_type", value="weekend", weight=1.2))

        return features

    @staticmethod
    def get_amount_range(amount: float) -> str:
        for upper_bound, label in AMOUNT_THRESHOLDS:
            if amount <= upper_bound:
                return label
        return "very_large"

    @staticmethod
    def is_common_amount(amount: float) -> bool:
        return amount in COMMON_AMOUNTS or amount % 100 == 0

    @staticmethod
    def detect_vendor_types(vendor: str) -> List[str]:
        return [
            vendor_type
            for pattern, vendor_type in VENDOR_TYPE_PATTERNS
            if pattern.search(vendor)
        ]
