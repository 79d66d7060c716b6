import asyncio
import logging
import os
from contextlib import asynccontextmanager

import bugsnag
from bugsnag.asgi import BugsnagMiddleware
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from accounts.errors import (
    AccountManagementError,
    AuthorizationDenied,
    CodeGenerationExhausted,
    InvalidEmailAddresses,
    InvalidPassword,
    InvalidRedemptionCode,
    InvalidUsername,
    NotFound,
    StorageUnavailable,
    UnsentInvitation,
    UserAlreadyExists,
)
from accounts.routes import accounts, auth, users
from accounts.services import get_guard, get_repository
from accounts.settings import settings
from accounts.utils.logging import logger

# First match wins, so subclasses go before their bases.
ERROR_STATUS_CODES = [
    (AuthorizationDenied, 403),
    (InvalidRedemptionCode, 400),
    (InvalidEmailAddresses, 400),
    (InvalidUsername, 400),
    (InvalidPassword, 400),
    (UserAlreadyExists, 409),
    (NotFound, 404),
    (UnsentInvitation, 502),
    (CodeGenerationExhausted, 503),
    (StorageUnavailable, 503),
]


def status_code_for(exc: AccountManagementError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application")

    # load the secured rules now so a malformed table stops start-up
    get_guard()
    await get_repository().initialize()

    yield

    logger.info("Shutting down application")


if settings.bugsnag_api_key:
    bugsnag.configure(
        api_key=settings.bugsnag_api_key,
        project_root=os.path.dirname(os.path.abspath(__file__)),
        release_stage=settings.env or "development",
        notify_release_stages=["development", "staging", "production"],
        auto_capture_sessions=True,
    )


app = FastAPI(lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logging.info(
        f"Incoming request: {request.method} {request.url.path} "
        f"from {request.client.host if request.client else 'unknown'}"
    )

    start_time = asyncio.get_event_loop().time()
    try:
        response = await call_next(request)
        process_time = asyncio.get_event_loop().time() - start_time

        logging.info(
            f"Request completed: {request.method} {request.url.path} "
            f"- Status: {response.status_code} - Duration: {process_time:.4f}s"
        )
        return response
    except Exception as e:
        process_time = asyncio.get_event_loop().time() - start_time
        logging.error(
            f"Error processing request: {request.method} {request.url.path} "
            f"- Error: {str(e)} - Duration: {process_time:.4f}s",
            exc_info=True,
        )
        raise


if settings.bugsnag_api_key:
    app.add_middleware(BugsnagMiddleware)


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(accounts.router, prefix="/accounts", tags=["accounts"])
app.include_router(users.router, prefix="/users", tags=["users"])


@app.exception_handler(AccountManagementError)
async def account_management_exception_handler(
    request: Request, exc: AccountManagementError
):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logging.error(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}"
        )
        if settings.bugsnag_api_key:
            bugsnag.notify(exc, context=f"{request.method} {request.url.path}")
    else:
        logging.info(
            f"HTTP {status_code} on {request.method} {request.url.path}: {exc}"
        )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logging.info(f"Bad request on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logging.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)} "
        f"on {request.method} {request.url.path}",
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logging.warning(
        f"Validation error on {request.method} {request.url.path}: {exc.errors()}"
    )
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    if exc.status_code >= 500:
        logging.error(
            f"HTTP {exc.status_code} error on {request.method} {request.url.path}: {exc.detail}"
        )
    else:
        logging.info(
            f"HTTP {exc.status_code} on {request.method} {request.url.path}: {exc.detail}"
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.api_route("/health", methods=["GET", "HEAD"])
async def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.server_host, port=settings.server_port)
