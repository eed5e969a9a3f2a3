"""
Data schemas for the account mapping pipeline
"""
import math
from dataclasses import dataclass, field
from datetime import date as date_type
from enum import Enum
from typing import Dict, List, Optional, Union

import numpy as np
from pydantic import BaseModel, Field, field_validator, model_validator


class AccountType(str, Enum):
    """Chart of accounts type"""
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class EntryType(str, Enum):
    """Side of a double-entry line (also used as an account's normal balance)"""
    DEBIT = "debit"
    CREDIT = "credit"


class MappingSource(str, Enum):
    """Cascade stage that produced a mapping"""
    RAG = "rag"                      # Bag-of-words embedding ranking
    PATTERN = "pattern"              # Learned historical/vendor patterns
    ACCOUNT_MATCH = "account_match"  # Code / description matching
    NONE = "none"                    # Unmapped, needs manual review


class Account(BaseModel):
    """A chart of accounts entry. Owned by the caller, read-only here."""
    id: str = Field(..., description="Account identity")
    code: str = Field(..., description="Account code (may contain non-digits or leading zeros)")
    name: str
    description: Optional[str] = None
    type: AccountType
    subtype: str = ""
    is_active: bool = True

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "id": "acc-5200",
                "code": "5200",
                "name": "Office Supplies",
                "description": "Office supplies expense",
                "type": "expense",
                "subtype": "operating",
                "is_active": True
            }
        }
    }

    @property
    def profile_text(self) -> str:
        """Name, description, type and subtype joined for vectorization"""
        return f"{self.name} {self.description or ''} {self.type.value} {self.subtype}"


class SignConvention(BaseModel):
    """Which entry type increases an account of a given type"""
    normal_balance: EntryType


class AccountingStandard(BaseModel):
    """Accounting standard with per-type sign conventions"""
    name: str
    sign_conventions: Dict[AccountType, SignConvention] = Field(default_factory=dict)

    def normal_balance_for(self, account_type: AccountType) -> Optional[EntryType]:
        """Normal balance for an account type, or None if the standard is silent"""
        convention = self.sign_conventions.get(account_type)
        return convention.normal_balance if convention else None


class TransactionEntry(BaseModel):
    """One side of a double-entry transaction"""
    account_number: str = Field("", description="Raw user-entered account code")
    type: EntryType
    amount: str = Field(..., description="Decimal string, non-negative")

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        """Amount must parse to a finite, non-negative float"""
        try:
            parsed = float(v)
        except (TypeError, ValueError):
            raise ValueError(f"amount must be a decimal string, got {v!r}")
        if not math.isfinite(parsed):
            raise ValueError(f"amount must be finite, got {v!r}")
        if parsed < 0:
            raise ValueError(f"amount must be non-negative, got {v!r}")
        return v

    @property
    def parsed_amount(self) -> float:
        return float(self.amount)


class Transaction(BaseModel):
    """
    Raw double-entry transaction record.

    Expected to carry exactly one debit and one credit entry; stages check
    this and treat violations as malformed rather than failing validation.
    """
    id: str
    description: str = ""
    customer_name: Optional[str] = None
    date: date_type
    entries: List[TransactionEntry] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "txn-001",
                "description": "Payment for office supplies",
                "customer_name": "Office Depot",
                "date": "2025-03-14",
                "entries": [
                    {"account_number": "5200", "type": "debit", "amount": "500.00"},
                    {"account_number": "1000", "type": "credit", "amount": "500.00"}
                ]
            }
        }
    }

    def _entry_of(self, entry_type: EntryType) -> Optional[TransactionEntry]:
        return next((e for e in self.entries if e.type == entry_type), None)

    @property
    def debit_entry(self) -> Optional[TransactionEntry]:
        return self._entry_of(EntryType.DEBIT)

    @property
    def credit_entry(self) -> Optional[TransactionEntry]:
        return self._entry_of(EntryType.CREDIT)


class MappingResult(BaseModel):
    """
    Proposed debit/credit accounts for one transaction.

    Acceptance is decided by the orchestrator thresholds, not by the stage
    that produced the result.
    """
    debit_account: Optional[Account] = None
    credit_account: Optional[Account] = None
    confidence: float = Field(0.0, ge=0.0, le=1.0, description="Stage confidence")
    source: MappingSource = MappingSource.NONE

    @model_validator(mode="after")
    def check_accounts_present(self):
        """A missing account can only carry zero confidence"""
        if (self.debit_account is None or self.credit_account is None) and self.confidence != 0:
            raise ValueError("confidence must be 0 when an account is missing")
        return self

    @property
    def requires_review(self) -> bool:
        return self.confidence == 0

    @property
    def is_mapped(self) -> bool:
        return self.debit_account is not None and self.credit_account is not None

    @classmethod
    def unmapped(cls) -> "MappingResult":
        return cls(confidence=0.0, source=MappingSource.NONE)


@dataclass(frozen=True)
class Feature:
    """
    One typed transaction feature.

    weight is the importance within its group (1.0 default, up to 1.5 for
    stronger signals); group_weight is the weight of the whole group.
    """
    type: str
    value: Union[str, int, float]
    weight: float = 1.0
    group_weight: float = 0.0

    @property
    def key(self) -> str:
        return f"{self.type}:{self.value}"

    @property
    def score_weight(self) -> float:
        return self.group_weight * self.weight


@dataclass(frozen=True)
class AccountPattern:
    """Derived per-account artifact, rebuilt with the vocabulary"""
    account_id: str
    code: str
    type: AccountType
    keywords: List[str]
    description: str
    vector: np.ndarray = field(repr=False, compare=False)


@dataclass(frozen=True)
class PatternMatch:
    """A single candidate account from learned patterns"""
    account_id: str
    confidence: float
    reason: str


@dataclass
class MatchCandidates:
    """Independent ranked debit and credit candidates"""
    debit_matches: List[PatternMatch] = field(default_factory=list)
    credit_matches: List[PatternMatch] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return bool(self.debit_matches) and bool(self.credit_matches)


@dataclass
class TransactionProfile:
    """Batch-level analysis of one transaction"""
    id: str
    description: str
    keywords: List[str]
    vector: np.ndarray = field(repr=False)
    amount: float
    amount_pattern: str
    date_pattern: str
    customer_pattern: Optional[str] = None
