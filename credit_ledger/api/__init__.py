"""
El Granito Credit Ledger API Application Factory
"""

from typing import Optional

import uvicorn

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .system import LedgerSystem, get_ledger_system
from .credits import router as credits_router
from .clients import router as clients_router
from .payments import router as payments_router
from .certificates import router as certificates_router
from .reports import router as reports_router
from .. import __version__


def create_app(system: Optional[LedgerSystem] = None) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        system: Ledger system to serve; defaults to the global one built
            from configuration
    """
    app = FastAPI(
        title="El Granito Credit Ledger API",
        description="Credits, installment schedules, card payments and delinquency tracking",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if system is not None:
        app.dependency_overrides[get_ledger_system] = lambda: system

    # Include routers
    app.include_router(credits_router, prefix="/credits", tags=["Credits"])
    app.include_router(clients_router, prefix="/clients", tags=["Clients"])
    app.include_router(payments_router, prefix="/payments", tags=["Payments"])
    app.include_router(certificates_router, prefix="/certificates", tags=["Certificates"])
    app.include_router(reports_router, prefix="/reports", tags=["Reports"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "credit_ledger_api",
            "version": __version__
        }

    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 8090, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "credit_ledger.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
