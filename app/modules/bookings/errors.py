import enum
import uuid
from pydantic import BaseModel

class ErrorKind(str, enum.Enum):
    DURATION_INVALID = "duration_invalid"
    OUTSIDE_BUSINESS_HOURS = "outside_business_hours"
    HOLIDAY = "holiday"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    TIMEOUT = "timeout"

# kinds the caller can recover from by re-prompting, suggesting alternatives or enqueueing
USER_FACING = {
    ErrorKind.DURATION_INVALID,
    ErrorKind.OUTSIDE_BUSINESS_HOURS,
    ErrorKind.HOLIDAY,
    ErrorKind.CONFLICT,
}

class BookingError(BaseModel):
    kind: ErrorKind
    message: str
    resource_id: str | None = None
    conflicting_booking_id: uuid.UUID | None = None

    @property
    def retryable(self) -> bool:
        return self.kind is ErrorKind.TIMEOUT

    @classmethod
    def duration_invalid(cls, minutes: float, lo: int, hi: int) -> "BookingError":
        return cls(kind=ErrorKind.DURATION_INVALID, message=f"duration {minutes:g} min outside [{lo}, {hi}] min")

    @classmethod
    def outside_business_hours(cls) -> "BookingError":
        return cls(kind=ErrorKind.OUTSIDE_BUSINESS_HOURS, message="requested time is outside business hours")

    @classmethod
    def holiday(cls, day) -> "BookingError":
        return cls(kind=ErrorKind.HOLIDAY, message=f"{day.isoformat()} is a holiday")

    @classmethod
    def conflict(cls, resource_id: str | None, with_id: uuid.UUID | None, message: str | None = None) -> "BookingError":
        return cls(
            kind=ErrorKind.CONFLICT,
            message=message or f"resource {resource_id} already has a booking at that time",
            resource_id=resource_id,
            conflicting_booking_id=with_id,
        )

    @classmethod
    def not_found(cls, what: str, ident) -> "BookingError":
        return cls(kind=ErrorKind.NOT_FOUND, message=f"{what} {ident} not found")

    @classmethod
    def invalid_transition(cls, current: str, target: str) -> "BookingError":
        return cls(kind=ErrorKind.INVALID_TRANSITION, message=f"cannot move appointment from {current} to {target}")

    @classmethod
    def timeout(cls, resource_ids) -> "BookingError":
        return cls(kind=ErrorKind.TIMEOUT, message=f"timed out waiting for resources {', '.join(resource_ids)}")
