from __future__ import annotations

import argparse
import logging
from pathlib import Path
from time import perf_counter
from typing import Sequence

from config import config
from db.db import init_db
from db.repositories import UnifiedTransactionRepository
from domain.aggregator import year_end
from domain.tax_engine import CostBasisMethod, compute_wallet_tax_report, validate_request
from domain.tax_report import TaxReport
from domain.transactions import UnifiedTransaction
from importers.unified_csv import load_transactions
from utils.report_rendering import render_tax_report

logger = logging.getLogger(__name__)


def run(
    year: int,
    *,
    csv_path: Path | None,
    db_file: Path,
    wallets: Sequence[str],
    method: str,
    store: bool,
) -> TaxReport:
    settings = config()
    validate_request(year, method)

    # Get transactions
    transactions: list[UnifiedTransaction]
    load_started = perf_counter()
    if csv_path is not None:
        logger.info("Loading transactions from %s", csv_path)
        transactions = load_transactions(csv_path)
        if store:
            logger.info("Persisting %d transactions to %s", len(transactions), db_file)
            UnifiedTransactionRepository(init_db(db_file=db_file, reset=True)).create_many(transactions)
    else:
        logger.info("Reading transactions from %s", db_file)
        repository = UnifiedTransactionRepository(init_db(db_file=db_file))
        transactions = repository.list_owned(wallets, until=year_end(year))
    logger.info("Loaded %d transactions in %.2fs", len(transactions), perf_counter() - load_started)

    # Compute report
    compute_started = perf_counter()
    report = compute_wallet_tax_report(
        transactions,
        year,
        wallets=wallets,
        method=method,
        capital_loss_limit=settings.capital_loss_limit_usd,
    )
    logger.info("Computed %d tax report in %.2fs", year, perf_counter() - compute_started)
    return report


def main(argv: Sequence[str] | None = None) -> None:
    settings = config()
    parser = argparse.ArgumentParser(description="Compute a FIFO capital gains tax report.")
    parser.add_argument("--year", type=int, required=True)
    parser.add_argument("--csv", type=Path, default=None, help="Unified transactions CSV; defaults to the database.")
    parser.add_argument("--db", type=Path, default=settings.database_file)
    parser.add_argument("--wallet", action="append", default=None, help="Owned wallet address; may be repeated.")
    parser.add_argument("--method", default=CostBasisMethod.FIFO.value)
    parser.add_argument("--store", action="store_true", help="Persist CSV transactions to the database.")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON.")
    args = parser.parse_args(argv)

    try:
        report = run(
            args.year,
            csv_path=args.csv,
            db_file=args.db,
            wallets=args.wallet or settings.default_wallets,
            method=args.method,
            store=args.store,
        )
    except ValueError as exc:
        parser.error(str(exc))

    if args.json:
        print(report.model_dump_json(indent=2))
    else:
        render_tax_report(report)


if __name__ == "__main__":
    logging.basicConfig(level=config().log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    main()
