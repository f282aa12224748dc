"""
Module Runner API application.

============================================================
ERROR MAPPING
============================================================
NotFoundError       -> 404
ConflictError       -> 409
ContractViolation   -> 400
DispatchFailure     -> 503 (context carries the run id)
other runner errors -> 500

Bodies are ModuleRunnerError.to_dict().

============================================================
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from api.router import router
from core.exceptions import (
    ConflictError,
    ContractViolation,
    DispatchFailure,
    ModuleRunnerError,
    NotFoundError,
)
from module_runner.bootstrap import Runtime


logger = logging.getLogger(__name__)


def status_for(error: ModuleRunnerError) -> int:
    if isinstance(error, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, ConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(error, ContractViolation):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, DispatchFailure):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def module_runner_error_handler(request: Request, exc: ModuleRunnerError) -> JSONResponse:
    code = status_for(exc)
    log = logger.error if code >= 500 else logger.info
    log(f"{request.method} {request.url.path} -> {code}: {exc.to_log_format()}")
    return JSONResponse(status_code=code, content=exc.to_dict())


def create_app(runtime: Runtime) -> FastAPI:
    """FastAPI application bound to a built runtime."""
    app = FastAPI(
        title="Module Runner API",
        description="Module registry and run tracking for lead enrichment",
        version="1.0.0",
    )
    app.state.runtime = runtime
    app.add_exception_handler(ModuleRunnerError, module_runner_error_handler)
    app.include_router(router)
    return app
