import os
import sys
from datetime import date

import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from packages.common.config import Settings
from packages.domain.mapping.mapping_logger import MappingLogger
from packages.domain.mapping.schemas import (
    Account,
    AccountingStandard,
    AccountType,
    EntryType,
    SignConvention,
    Transaction,
    TransactionEntry,
)


@pytest.fixture
def settings():
    """Defaults only, ignoring any local .env"""
    return Settings(_env_file=None)


@pytest.fixture
def mapping_logger(settings):
    return MappingLogger(settings)


@pytest.fixture
def standard():
    return AccountingStandard(
        name="GAAP",
        sign_conventions={
            AccountType.ASSET: SignConvention(normal_balance=EntryType.DEBIT),
            AccountType.EXPENSE: SignConvention(normal_balance=EntryType.DEBIT),
            AccountType.LIABILITY: SignConvention(normal_balance=EntryType.CREDIT),
            AccountType.EQUITY: SignConvention(normal_balance=EntryType.CREDIT),
            AccountType.REVENUE: SignConvention(normal_balance=EntryType.CREDIT),
        },
    )


@pytest.fixture
def accounts():
    return [
        Account(id="acc-1000", code="1000", name="Cash", description="Cash on hand",
                type=AccountType.ASSET, subtype="current"),
        Account(id="acc-2000", code="2000", name="Accounts Payable",
                description="Amounts owed to suppliers",
                type=AccountType.LIABILITY, subtype="current"),
        Account(id="acc-4000", code="4000", name="Sales Revenue", description="Income from sales",
                type=AccountType.REVENUE, subtype="operating"),
        Account(id="acc-5200", code="5200", name="Office Supplies", description="Office supplies expense",
                type=AccountType.EXPENSE, subtype="operating"),
        Account(id="acc-5300", code="5300", name="Rent", description="Monthly premises rent",
                type=AccountType.EXPENSE, subtype="operating"),
        Account(id="acc-5900", code="5900", name="Old Misc", description="Retired account",
                type=AccountType.EXPENSE, subtype="other", is_active=False),
    ]


def make_transaction(
    id="txn-001",
    description="Payment for office supplies",
    debit_code="5200",
    credit_code="2000",
    amount="500.00",
    customer_name=None,
    on=date(2025, 3, 14),
):
    return Transaction(
        id=id,
        description=description,
        customer_name=customer_name,
        date=on,
        entries=[
            TransactionEntry(account_number=debit_code, type=EntryType.DEBIT, amount=amount),
            TransactionEntry(account_number=credit_code, type=EntryType.CREDIT, amount=amount),
        ],
    )


@pytest.fixture
def transaction_factory():
    return make_transaction
