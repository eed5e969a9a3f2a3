#!/usr/bin/env python3
"""
Map a batch of transactions from a JSON file (no persistence)

Input file shape:
    {
      "standard": {"name": "GAAP", "sign_conventions": {"asset": {"normal_balance": "debit"}, ...}},
      "accounts": [{"id": "acc-5200", "code": "5200", "name": "Office Supplies", "type": "expense"}, ...],
      "transactions": [{"id": "txn-001", "description": "...", "date": "2025-03-14", "entries": [...]}, ...],
      "confirmed": [{"transaction_id": "txn-000", "debit_account_id": "acc-5200", "credit_account_id": "acc-1000"}]
    }

"confirmed" is optional; those mappings are learned before the batch runs.

Usage:
    python scripts/map_transactions.py batch.json
    python scripts/map_transactions.py batch.json --metrics
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog
from pydantic import ValidationError

from packages.common.config import get_settings
from packages.common.logging_config import configure_logging
from packages.domain.mapping import (
    Account,
    AccountingStandard,
    MappingOrchestrator,
    Transaction,
    TransactionAnalyzer,
)

logger = structlog.get_logger()


def load_batch(path: Path):
    data = json.loads(path.read_text())
    standard = AccountingStandard.model_validate(data["standard"])
    accounts = [Account.model_validate(a) for a in data["accounts"]]
    transactions = [Transaction.model_validate(t) for t in data["transactions"]]
    return standard, accounts, transactions, data.get("confirmed", [])


async def main(path: Path, show_metrics: bool):
    settings = get_settings()
    configure_logging(settings)

    try:
        standard, accounts, transactions, confirmed = load_batch(path)
    except (OSError, KeyError, ValueError, ValidationError) as e:
        print(f'❌ Could not load batch {path}: {e}')
        return 1

    print('='*80)
    print(f'MAPPING {len(transactions)} TRANSACTIONS')
    print(f'Standard: {standard.name} | Accounts: {len(accounts)}')
    print('='*80)

    orchestrator = MappingOrchestrator(settings=settings)
    await orchestrator.initialize(accounts, standard)

    by_id = {t.id: t for t in transactions}
    for item in confirmed:
        transaction = by_id.get(item["transaction_id"])
        if transaction is None:
            logger.warning("confirmed_transaction_not_in_batch", transaction_id=item["transaction_id"])
            continue
        await orchestrator.learn_from_transaction(
            transaction, item["debit_account_id"], item["credit_account_id"]
        )

    results = await orchestrator.map_transactions(transactions)
    analyzer = TransactionAnalyzer(mapping_logger=orchestrator.mapping_logger, settings=settings)
    profiles = analyzer.analyze_transactions(transactions)

    review_count = 0
    for transaction in transactions:
        result = results[transaction.id]
        print(f'\n[{transaction.id}] {transaction.description}')
        profile = profiles[transaction.id]
        tags = [profile.amount_pattern, profile.date_pattern]
        if profile.customer_pattern:
            tags.append(profile.customer_pattern)
        print(f'    Profile: {", ".join(tags)} | Keywords: {", ".join(profile.keywords)}')

        if result.requires_review:
            print('    ⚠️  NO MAPPING - requires manual review')
            review_count += 1
            for account, score in orchestrator.suggest_accounts(transaction, limit=3):
                print(f'    ? {account.code} {account.name} ({score:.0%})')
            continue

        print(f'    → Debit:  {result.debit_account.code} - {result.debit_account.name}')
        print(f'    → Credit: {result.credit_account.code} - {result.credit_account.name}')
        print(f'    → Confidence: {result.confidence:.0%} ({result.source.value})')

    mapped = len(transactions) - review_count
    print()
    print('='*80)
    print('RESULTS')
    print('='*80)
    print(f'Mapped: {mapped}/{len(transactions)}')
    print(f'Requires review: {review_count}')
    recurring = {v: n for v, n in analyzer.get_common_vendors().items() if n > 1}
    if recurring:
        print('Recurring vendors: ' + ", ".join(f'{v} ({n})' for v, n in sorted(recurring.items())))
    print(json.dumps(orchestrator.get_stats(), indent=2))

    if show_metrics:
        print(orchestrator.mapping_logger.export_metrics().decode())

    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Map a JSON batch of transactions to ledger accounts")
    parser.add_argument("path", type=Path, help="Batch JSON file")
    parser.add_argument("--metrics", action="store_true", help="Print Prometheus metrics after mapping")
    args = parser.parse_args()

    sys.exit(asyncio.run(main(args.path, args.metrics)))
