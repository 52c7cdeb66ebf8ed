import uuid
from datetime import datetime, timedelta, timezone
from typing import Literal
from pydantic import BaseModel, Field, model_validator
from app.modules.bookings.intervals import TimeInterval, ensure_aware

WaitlistStatus = Literal["waiting", "promoted", "withdrawn"]
Urgency = Literal["routine", "urgent", "emergency"]

def _now() -> datetime:
    return datetime.now(timezone.utc)

class WaitlistCreate(BaseModel):
    patient_id: uuid.UUID
    client_id: uuid.UUID | None = None
    desired_type: str = "consult"
    # resource preferences; None means any resource that frees up
    staff_id: str | None = None
    room_id: str | None = None
    duration_minutes: int = Field(default=30, gt=0)
    earliest_start: datetime | None = None
    latest_end: datetime | None = None
    priority: int = 100  # lower value is served first
    urgency: Urgency = "routine"
    reason: str | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def _window(self):
        if self.earliest_start is not None:
            self.earliest_start = ensure_aware(self.earliest_start)
        if self.latest_end is not None:
            self.latest_end = ensure_aware(self.latest_end)
        if self.earliest_start and self.latest_end and self.earliest_start >= self.latest_end:
            raise ValueError("latest_end must be after earliest_start")
        return self

class WaitlistEntry(WaitlistCreate):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    enqueued_at: datetime = Field(default_factory=_now)
    seq: int = 0
    status: WaitlistStatus = "waiting"
    booking_id: uuid.UUID | None = None
    resolved_at: datetime | None = None

    @property
    def sort_key(self) -> tuple:
        return (self.priority, self.enqueued_at, self.seq)

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.duration_minutes)

    def accepts(self, interval: TimeInterval) -> bool:
        """True when ``interval`` lies inside the entry's preferred window."""
        if self.earliest_start and interval.start < self.earliest_start:
            return False
        if self.latest_end and interval.end > self.latest_end:
            return False
        return True

class WaitlistUpdate(BaseModel):
    priority: int
    urgency: Urgency | None = None

class WaitlistPromote(BaseModel):
    start: datetime | None = None
    end: datetime | None = None

    @model_validator(mode="after")
    def _pair(self):
        if (self.start is None) != (self.end is None):
            raise ValueError("provide both start and end, or neither")
        if self.start is not None and ensure_aware(self.start) >= ensure_aware(self.end):
            raise ValueError("end time must be after start time")
        return self

    @property
    def interval(self) -> TimeInterval | None:
        if self.start is None:
            return None
        return TimeInterval(start=self.start, end=self.end)

class WaitlistOut(BaseModel):
    id: uuid.UUID
    patient_id: uuid.UUID
    client_id: uuid.UUID | None = None
    desired_type: str
    staff_id: str | None = None
    room_id: str | None = None
    duration_minutes: int
    priority: int
    urgency: Urgency
    status: WaitlistStatus
    enqueued_at: datetime
    booking_id: uuid.UUID | None = None

class WaitlistStats(BaseModel):
    total_waiting: int
    by_type: dict[str, int]
    oldest_enqueued_at: datetime | None = None
