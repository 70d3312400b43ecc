from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mangum import Mangum

from accounts import EmailAlreadyRegistered
from bookings import InvalidTransition
from core.config import Settings
from core.context import AppContext
from core.errors import (
    MarketplaceError,
    NotAuthenticated,
    PermissionDenied,
    NotFound,
    InvalidRequest,
    RemoteWriteFailure,
)
from core.log import configure_logging
from ledger import InsufficientCoins, BelowMinimumExchange

from .routes import router


log = structlog.get_logger(__name__)

# First match wins, so subclasses go before their bases.
ERROR_STATUS = (
    (NotAuthenticated, status.HTTP_401_UNAUTHORIZED),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (EmailAlreadyRegistered, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (InsufficientCoins, status.HTTP_400_BAD_REQUEST),
    (BelowMinimumExchange, status.HTTP_400_BAD_REQUEST),
    (InvalidRequest, status.HTTP_400_BAD_REQUEST),
    (RemoteWriteFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(error: MarketplaceError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(error, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    code = status_for(exc)
    log.info("request_failed", path=request.url.path, error=type(exc).__name__, status=code)
    headers = {"WWW-Authenticate": "Bearer"} if code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=code, content={"detail": str(exc)}, headers=headers)


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    if context is None:
        context = AppContext.create(Settings.from_env())
    configure_logging(context.settings.log_level)

    app = FastAPI(
        title="Waste Pickup Marketplace API",
        description="Pickup bookings between waste sellers and recycling companies, with a green-coin reward wallet",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.context = context
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
    app.include_router(router)
    return app


app = create_app()

handler = Mangum(app)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
