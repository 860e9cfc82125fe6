from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from merenda.services.errors import (
    AlreadyResolved,
    Forbidden,
    InsufficientStock,
    InvalidInput,
    InvalidPayload,
    LedgerError,
    NotFound,
    NothingToConfirm,
    StorageFailure,
)

logger = logging.getLogger("merenda.api")

# ordre: la première classe qui matche gagne (sous-classes d'abord)
STATUS_BY_ERROR: list[tuple[type[LedgerError], int]] = [
    (InvalidInput, 400),
    (InsufficientStock, 400),
    (Forbidden, 403),
    (NotFound, 404),
    (NothingToConfirm, 404),
    (AlreadyResolved, 409),
    (InvalidPayload, 500),
    (StorageFailure, 500),
]


def status_for(exc: LedgerError) -> int:
    for cls, status in STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 500


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def problem(exc: LedgerError) -> dict[str, Any]:
    if isinstance(exc, StorageFailure):
        # jamais de détail de stockage côté client
        return {"error_code": exc.code, "message": "Internal error while accessing storage", "context": {}}
    return {
        "error_code": exc.code,
        "message": exc.message,
        "context": {k: _jsonable(v) for k, v in exc.context.items()},
    }


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s -> %s (%s)", request.method, request.url.path, status, exc.code)
    else:
        logger.warning("%s %s -> %s %s", request.method, request.url.path, status, exc.message)
    return JSONResponse(status_code=status, content=problem(exc))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
