from datetime import datetime, timezone
from decimal import Decimal
from random import Random

from tests.constants import ETH
from tests.helpers.time_utils import TimeGenerator, make_tx


def test_time_generator_increases_with_seed() -> None:
    rng = Random(42)
    gen = TimeGenerator(_rng=rng)

    ts1 = gen()
    ts2 = gen()
    ts3 = gen()

    assert ts1 < ts2 < ts3
    gaps = [(ts2 - ts1).total_seconds(), (ts3 - ts2).total_seconds()]
    for gap in gaps:
        assert 5 <= gap <= 60

    # Deterministic given the same seed
    gen_again = TimeGenerator(_rng=Random(42))
    ts1_b, ts2_b, ts3_b = gen_again(), gen_again(), gen_again()
    gaps_b = [(ts2_b - ts1_b).total_seconds(), (ts3_b - ts2_b).total_seconds()]
    assert gaps == gaps_b


def test_make_tx_uses_generator_when_timestamp_missing() -> None:
    gen = TimeGenerator(_rng=Random(1))

    tx1 = make_tx("buy", ETH, "1", ts_gen=gen)
    tx2 = make_tx("buy", ETH, "1", ts_gen=gen)

    assert tx1.timestamp is not None and tx2.timestamp is not None
    assert tx1.timestamp < tx2.timestamp
    assert tx1.timestamp.tzinfo == timezone.utc
    assert tx1.id != tx2.id


def test_make_tx_respects_provided_timestamp() -> None:
    explicit_ts = datetime(2024, 2, 1, tzinfo=timezone.utc)

    tx = make_tx("sell", ETH, "0.5", "1000", timestamp=explicit_ts)

    assert tx.timestamp == explicit_ts
    assert tx.amount == Decimal("0.5")
    assert tx.value_usd == Decimal(1000)


def test_default_generator_is_reset_between_tests() -> None:
    # After the autouse reset, we should start from the same baseline.
    first = make_tx("buy", ETH, "1")
    second = make_tx("buy", ETH, "1")

    assert first.timestamp is not None and second.timestamp is not None
    assert first.timestamp < second.timestamp
    assert first.timestamp.date() == datetime(2024, 1, 1).date()
