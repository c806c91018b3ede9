"""
Wallet Banking API Application Factory
"""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import BankingConfig, get_config
from ..errors import BankingError, ErrorKind
from ..logging_config import get_logger, setup_logging
from ..seed import seed_demo_data
from .accounts import router as accounts_router
from .dependencies import BankingSystem
from .transactions import router as transactions_router


logger = get_logger("banking.api")


class CaseInsensitivePathMiddleware:
    """Lower-case request paths so /api/Account and /api/account both route"""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            scope = dict(scope, path=scope["path"].lower())
        await self.app(scope, receive, send)


def create_app(
    system: Optional[BankingSystem] = None,
    config: Optional[BankingConfig] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        system: Pre-built banking system (tests pass one backed by
            in-memory storage); built from config when omitted
        config: Configuration used when building the system
    """
    config = config or (system.config if system else get_config())
    if system is None:
        system = BankingSystem.from_config(config)
        if config.seed_on_startup:
            seed_demo_data(system)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.banking_system.close()
        logger.info("Banking system closed")

    app = FastAPI(
        title="Wallet Banking API",
        description="Account ledger with deposits, withdrawals, transfers and loans",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.banking_system = system

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CaseInsensitivePathMiddleware)

    @app.exception_handler(BankingError)
    async def banking_error_handler(request: Request, exc: BankingError):
        return JSONResponse(status_code=exc.kind.http_status, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"message": "Internal server error", "kind": ErrorKind.SERVICE.code}
        )

    app.include_router(accounts_router, prefix="/api/account", tags=["Account"])
    app.include_router(transactions_router, prefix="/api/transactions", tags=["Transactions"])

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "wallet_banking_api",
            "version": __version__
        }

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
    uvicorn.run(
        "wallet_banking.api:create_app",
        factory=True,
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level="info"
    )
