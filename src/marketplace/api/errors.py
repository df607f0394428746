"""HTTP error mapping for the marketplace API.

Protean's handlers cover its own exceptions; the order pipeline's errors are
added on top so every failure reaches the client as JSON.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers

from marketplace.exceptions import ConflictError, InvalidTransition
from marketplace.gateway.port import GatewayError

logger = structlog.get_logger(__name__)


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Validation failed", "details": exc.messages})


async def _not_found(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc)})


async def _invalid_transition(request: Request, exc: InvalidTransition) -> JSONResponse:
    return JSONResponse(status_code=409, content=exc.to_dict())


async def _conflict(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "error": str(exc),
            "expected_version": exc.expected_version,
            "actual_version": exc.actual_version,
        },
    )


async def _gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
    logger.error("Payment gateway request failed", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=502, content={"error": f"Payment gateway error: {exc}"})


def register_marketplace_exception_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(ObjectNotFoundError, _not_found)
    app.add_exception_handler(InvalidTransition, _invalid_transition)
    app.add_exception_handler(ConflictError, _conflict)
    app.add_exception_handler(GatewayError, _gateway_error)
