from typing import Annotated, Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from config import AppSettings, config
from db.repositories import UnifiedTransactionRepository


def get_session(request: Request) -> Generator[Session, None, None]:
    with request.app.state.sessionmaker() as session:
        yield session


def get_transactions_repository(session: Annotated[Session, Depends(get_session)]) -> UnifiedTransactionRepository:
    return UnifiedTransactionRepository(session)


def get_settings() -> AppSettings:
    return config()
