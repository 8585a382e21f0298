from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from config import config
from db.models import Base


def init_db(echo: bool = False, *, db_file: str | Path | None = None, reset: bool = False) -> Session:
    """Open the transaction store, defaulting to the configured database file.

    With `reset` the existing file is removed first, so a CSV import replaces
    the stored history instead of appending to it.
    """
    path = Path(db_file) if db_file is not None else config().database_file
    if reset and path.exists():
        path.unlink()
    path.parent.mkdir(parents=True, exist_ok=True)

    engine: Engine = create_engine(f"sqlite:///{path}", echo=echo)

    Base.metadata.create_all(engine)
    return sessionmaker(engine)()
