from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from seatkeeper.domain.exceptions import AppError, NotFound, Conflict, Unprocessable, Unauthorized, InvalidInput, \
    Forbidden, SeatUnavailable, HoldExpired, ConcurrentModification, PersistenceFailure
from seatkeeper.core.ctx import REQUEST_ID_CTX

MEDIA_TYPE = "application/problem+json"

SEAT_GONE_MESSAGE = "This seat is no longer available, please choose another."

_STATUS_BY_CLASS: dict[type[AppError], int] = {
    NotFound: status.HTTP_404_NOT_FOUND,
    Unauthorized: status.HTTP_401_UNAUTHORIZED,
    Forbidden: status.HTTP_403_FORBIDDEN,
    Conflict: status.HTTP_409_CONFLICT,
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    Unprocessable: status.HTTP_422_UNPROCESSABLE_ENTITY,
    PersistenceFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
    AppError: status.HTTP_400_BAD_REQUEST,
}

_TITLES: dict[type[AppError], str] = {
    NotFound: "Not Found",
    Unauthorized: "Unauthorized",
    Forbidden: "Forbidden",
    Conflict: "Conflict",
    InvalidInput: "Bad Request",
    Unprocessable: "Unprocessable Entity",
    PersistenceFailure: "Service Unavailable",
    AppError: "Application Error",
}

_SEAT_GONE = (SeatUnavailable, HoldExpired, ConcurrentModification)


def _lookup(exc: AppError, table: dict, default):
    for cls in type(exc).mro():
        if cls in table:
            return table[cls]
    return default


def _status_for(exc: AppError) -> int:
    return _lookup(exc, _STATUS_BY_CLASS, status.HTTP_400_BAD_REQUEST)


def _title_for(exc: AppError) -> str:
    return _lookup(exc, _TITLES, "Application Error")


def _problem(
    request: Request,
    *,
    http_status: int,
    title: str,
    detail: str | None = None,
    extra: dict | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = {
        "status": http_status,
        "title": title,
        "detail": detail,
        "instance": str(request.url),
    }
    req_id = REQUEST_ID_CTX.get()
    if req_id:
        body["trace_id"] = req_id
    if extra:
        body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=http_status, content=body, media_type=MEDIA_TYPE, headers=headers or {})


def register_error_handler(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error_handler(request: Request, exc: AppError):
        detail = str(exc) or None
        extra = {
            "code": type(exc).__name__,
            "context": getattr(exc, "ctx", None) or None,
            "user_message": SEAT_GONE_MESSAGE if isinstance(exc, _SEAT_GONE) else None,
        }

        headers: dict[str, str] | None = None
        if isinstance(exc, Unauthorized):
            headers = {"WWW-Authenticate": f'Bearer realm="api", error="invalid_token", error_description="{detail}"'}
        elif isinstance(exc, PersistenceFailure):
            headers = {"Retry-After": "1"}

        return _problem(
            request,
            http_status=_status_for(exc),
            title=_title_for(exc),
            detail=detail,
            extra=extra,
            headers=headers
        )
