from datetime import datetime
from pydantic import BaseModel, Field, model_validator
from app.modules.bookings.intervals import TimeInterval, ensure_aware
from app.modules.bookings.schemas import BookingCandidate

class SlotsQuery(BaseModel):
    resource_id: str
    start: datetime
    end: datetime
    min_duration: int | None = Field(default=None, gt=0)  # minutes; policy minimum when omitted

    @model_validator(mode="after")
    def _window(self):
        if ensure_aware(self.start) >= ensure_aware(self.end):
            raise ValueError("end time must be after start time")
        return self

    @property
    def window(self) -> TimeInterval:
        return TimeInterval(start=self.start, end=self.end)

class SlotOut(BaseModel):
    start: datetime
    end: datetime

    @classmethod
    def of(cls, iv: TimeInterval) -> "SlotOut":
        return cls(start=iv.start, end=iv.end)

class AlternativesRequest(BookingCandidate):
    max_suggestions: int = Field(default=3, ge=1, le=50)
