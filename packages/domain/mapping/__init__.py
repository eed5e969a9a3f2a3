"""
Mapping Module - Assign debit/credit ledger accounts to transactions

Cascade, cheapest and most precise first:
1. RAG (bag-of-words similarity to the chart): accept > 0.8
2. Learned patterns (confirmed mappings by description/vendor): accept > 0.7
3. Account matching (code, then description): fixed 0.6 when both sides resolve
4. Otherwise unmapped, confidence 0, needs manual review

Learning loop:
- Confirmed mapping → learn_from_transaction() → next "Office Depot supplies"
  maps from the historical table at 0.95
"""

from packages.domain.mapping.errors import (
    ErrorKind,
    MappingError,
    NotInitializedError,
    DimensionMismatchError,
    MissingSignConventionError,
    MalformedTransactionError,
)
from packages.domain.mapping.orchestrator import MappingOrchestrator
from packages.domain.mapping.transaction_analyzer import TransactionAnalyzer
from packages.domain.mapping.schemas import (
    Account,
    AccountingStandard,
    AccountType,
    EntryType,
    MappingResult,
    MappingSource,
    SignConvention,
    Transaction,
    TransactionEntry,
)

__all__ = [
    'MappingOrchestrator',
    'TransactionAnalyzer',
    'Account',
    'AccountingStandard',
    'AccountType',
    'EntryType',
    'MappingResult',
    'MappingSource',
    'SignConvention',
    'Transaction',
    'TransactionEntry',
    'ErrorKind',
    'MappingError',
    'NotInitializedError',
    'DimensionMismatchError',
    'MissingSignConventionError',
    'MalformedTransactionError',
]
