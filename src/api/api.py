import logging
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Annotated, AsyncGenerator, Awaitable, Callable

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from api.dependencies import get_settings, get_transactions_repository
from config import AppSettings, config
from db.models import Base
from db.repositories import UnifiedTransactionRepository
from domain.aggregator import year_end
from domain.tax_engine import CostBasisMethod, compute_wallet_tax_report, validate_request
from domain.tax_report import TaxReport
from domain.transactions import UnifiedTransaction

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI) -> AsyncGenerator[None, None]:
    db_file = config().database_file
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_file}")
    Base.metadata.create_all(engine)
    fastapi_app.state.sessionmaker = sessionmaker(engine)
    yield
    engine.dispose()


app = FastAPI(lifespan=lifespan)


@app.middleware("http")
async def log_process_time(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    start_time = perf_counter()
    response = await call_next(request)
    process_time = perf_counter() - start_time
    logger.info("Request time: %s %s: %.4fs", request.method, request.url, process_time)
    return response


@app.get("/transactions")
def get_transactions(
    tr: Annotated[UnifiedTransactionRepository, Depends(get_transactions_repository)],
) -> list[UnifiedTransaction]:
    return tr.list()


@app.get("/tax-reports/{year}")
def get_tax_report(
    year: int,
    tr: Annotated[UnifiedTransactionRepository, Depends(get_transactions_repository)],
    settings: Annotated[AppSettings, Depends(get_settings)],
    wallet: Annotated[list[str] | None, Query()] = None,
    method: str = CostBasisMethod.FIFO.value,
) -> TaxReport:
    wallets = wallet if wallet else settings.default_wallets
    try:
        validate_request(year, method)
        # Lot state is rebuilt from the full history on every request.
        transactions = tr.list_owned(wallets, until=year_end(year))
        return compute_wallet_tax_report(
            transactions,
            year,
            wallets=wallets,
            method=method,
            capital_loss_limit=settings.capital_loss_limit_usd,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
