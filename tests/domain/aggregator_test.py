from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from domain.aggregator import is_owned, select_ledger, year_end
from domain.transactions import Provenance, TransactionStatus, UnifiedTransaction
from tests.constants import BTC, ETH, FOREIGN_WALLET, OWNER_WALLET, SECOND_WALLET
from tests.helpers.time_utils import make_tx, utc


def test_year_end_is_last_instant_of_year() -> None:
    assert year_end(2024) == datetime(2024, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)


def test_union_of_ownership() -> None:
    wallets = {OWNER_WALLET.lower()}

    assert is_owned(make_tx("buy", ETH, "1", owner=OWNER_WALLET), wallets)
    assert not is_owned(make_tx("buy", ETH, "1", owner=FOREIGN_WALLET), wallets)
    assert is_owned(make_tx("buy", ETH, "1", owner=None, provenance=Provenance.CSV_IMPORT), wallets)
    assert not is_owned(make_tx("buy", ETH, "1", owner=FOREIGN_WALLET, provenance=Provenance.CSV_IMPORT), wallets)
    assert is_owned(make_tx("buy", ETH, "1", owner=None, provenance=Provenance.EXCHANGE_API), wallets)


def test_wallet_addresses_compare_case_insensitively() -> None:
    tx = make_tx("buy", ETH, "1", owner=OWNER_WALLET.upper().replace("0X", "0x"))

    selection = select_ledger([tx], wallets=[OWNER_WALLET], year=2024)

    assert selection.transactions == [tx]


def test_select_ledger_filters_scope_status_and_cutoff() -> None:
    prior_year = make_tx("buy", BTC, "1", "100", timestamp=utc(2022, 5, 1))
    in_year = make_tx("sell", BTC, "1", "200", timestamp=utc(2024, 5, 1), owner=SECOND_WALLET)
    next_year = make_tx("sell", BTC, "1", "300", timestamp=utc(2025, 1, 1))
    failed = make_tx("buy", BTC, "1", "100", timestamp=utc(2024, 2, 1), status=TransactionStatus.FAILED)
    pending = make_tx("buy", BTC, "1", "100", timestamp=utc(2024, 3, 1), status=TransactionStatus.PENDING)
    foreign = make_tx("buy", BTC, "1", "100", timestamp=utc(2024, 4, 1), owner=FOREIGN_WALLET)

    selection = select_ledger(
        [next_year, in_year, failed, foreign, pending, prior_year],
        wallets=[OWNER_WALLET, SECOND_WALLET],
        year=2024,
    )

    assert selection.transactions == [prior_year, pending, in_year]
    assert selection.duplicates_dropped == 0


def test_select_ledger_drops_duplicates_first_wins() -> None:
    original = make_tx("buy", ETH, "1", "100", timestamp=utc(2024, 1, 1), tx_hash="0xhash")
    same_hash = make_tx("buy", ETH, "1", "100", timestamp=utc(2024, 1, 2), tx_hash="0xhash")
    csv_time = utc(2024, 2, 1)
    csv_row = make_tx("sell", ETH, "0.5", "80", timestamp=csv_time, provenance=Provenance.CSV_IMPORT, source="koinly")
    csv_again = make_tx(
        "sell", "eth", "0.5", "80", timestamp=csv_time, provenance=Provenance.CSV_IMPORT, source="koinly"
    )
    other_source = make_tx(
        "sell", ETH, "0.5", "80", timestamp=csv_time, provenance=Provenance.CSV_IMPORT, source="cointracker"
    )

    selection = select_ledger(
        [original, same_hash, csv_row, csv_again, other_source], wallets=[OWNER_WALLET], year=2024
    )

    assert selection.transactions == [original, csv_row, other_source]
    assert selection.duplicates_dropped == 2


def test_select_ledger_sort_is_stable() -> None:
    same_time = utc(2024, 3, 1)
    first = make_tx("buy", ETH, "1", "100", timestamp=same_time)
    second = make_tx("sell", ETH, "1", "120", timestamp=same_time)
    earlier = make_tx("buy", BTC, "1", "100", timestamp=utc(2024, 1, 1))

    selection = select_ledger([first, second, earlier], wallets=[OWNER_WALLET], year=2024)

    assert selection.transactions == [earlier, first, second]


def test_rows_without_timestamp_are_passed_through() -> None:
    broken = UnifiedTransaction(type="buy", asset_symbol=ETH, amount=Decimal(1), provenance=Provenance.EXCHANGE_API)

    selection = select_ledger([broken], wallets=[], year=2024)

    assert selection.transactions == [broken]


def test_empty_input_is_valid() -> None:
    selection = select_ledger([], wallets=[OWNER_WALLET], year=2024)

    assert selection.transactions == []
    assert selection.duplicates_dropped == 0


def test_distinct_hashes_are_never_duplicates() -> None:
    same_time = utc(2024, 5, 1)
    buy = make_tx("buy", ETH, "1", "2000", timestamp=same_time, tx_hash="0xbbb")
    sell = make_tx("sell", ETH, "1", "2000", timestamp=same_time, tx_hash="0xccc")
    second_buy = make_tx("buy", ETH, "1", "2000", timestamp=same_time, tx_hash="0xddd")

    selection = select_ledger([buy, sell, second_buy], wallets=[OWNER_WALLET], year=2024)

    assert selection.transactions == [buy, sell, second_buy]
    assert selection.duplicates_dropped == 0


def test_hashless_row_matching_hashed_row_is_duplicate() -> None:
    same_time = utc(2024, 5, 1)
    hashed = make_tx("buy", ETH, "1", "2000", timestamp=same_time, tx_hash="0xbbb")
    hashless = make_tx("buy", ETH, "1", "2000", timestamp=same_time)
    later_hashed = make_tx("buy", ETH, "1", "2000", timestamp=same_time, tx_hash="0xeee")

    selection = select_ledger([hashed, hashless, later_hashed], wallets=[OWNER_WALLET], year=2024)

    assert selection.transactions == [hashed, later_hashed]
    assert selection.duplicates_dropped == 1


def test_malformed_rows_are_not_deduplicated() -> None:
    first = UnifiedTransaction(type="buy", asset_symbol=ETH, amount=Decimal(1), provenance=Provenance.EXCHANGE_API)
    second = UnifiedTransaction(type="buy", asset_symbol=ETH, amount=Decimal(1), provenance=Provenance.EXCHANGE_API)

    selection = select_ledger([first, second], wallets=[], year=2024)

    assert selection.transactions == [first, second]
    assert selection.duplicates_dropped == 0
