from pathlib import Path
from typing import Generator

import pytest

from config import config
from db.db import init_db
from db.repositories import UnifiedTransactionRepository
from tests.constants import ETH
from tests.helpers.time_utils import make_tx


@pytest.fixture()
def configured_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    db_file = tmp_path / "artifacts" / "configured.db"
    monkeypatch.setenv("CRYPTO_TAX_DATABASE_FILE", str(db_file))
    config.cache_clear()
    yield db_file
    config.cache_clear()


def test_init_db_defaults_to_configured_file(configured_db: Path) -> None:
    with init_db() as session:
        UnifiedTransactionRepository(session).create_many([make_tx("buy", ETH, "1", "100")])

    assert configured_db.exists()


def test_init_db_reset_replaces_stored_history(configured_db: Path) -> None:
    with init_db() as session:
        UnifiedTransactionRepository(session).create_many([make_tx("buy", ETH, "1", "100")])

    with init_db(reset=True) as session:
        assert UnifiedTransactionRepository(session).list() == []
