from fastapi import HTTPException, status
from app.modules.bookings.errors import BookingError, ErrorKind
from app.modules.bookings.intervals import TimeInterval

HTTP_STATUS = {
    ErrorKind.DURATION_INVALID: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.OUTSIDE_BUSINESS_HOURS: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.HOLIDAY: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.TIMEOUT: status.HTTP_503_SERVICE_UNAVAILABLE,
}

RETRY_AFTER_SECONDS = 1

def http_error(err: BookingError, alternatives: list[TimeInterval] | None = None) -> HTTPException:
    detail = err.model_dump(mode="json")
    if alternatives is not None:
        detail["alternatives"] = [iv.model_dump(mode="json") for iv in alternatives]
    headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if err.retryable else None
    return HTTPException(status_code=HTTP_STATUS[err.kind], detail=detail, headers=headers)
