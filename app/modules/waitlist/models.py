import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Integer, Index
from app.core.base import Base, TimestampedMixin, UTCDateTime
from app.modules.waitlist.schemas import WaitlistEntry

class WaitlistRecord(Base, TimestampedMixin):
    __tablename__ = "waitlist_entry"
    patient_id: Mapped[uuid.UUID]
    client_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    desired_type: Mapped[str] = mapped_column(String(48))
    # Preferences; NULL means "whichever resource frees up"
    staff_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    room_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=30)
    earliest_start: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    latest_end: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    priority: Mapped[int] = mapped_column(Integer, default=100)
    urgency: Mapped[str] = mapped_column(String(16), default="routine")  # routine, urgent, emergency
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    enqueued_at: Mapped[datetime] = mapped_column(UTCDateTime)
    seq: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(16), default="waiting")  # waiting, promoted, withdrawn
    booking_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (Index("ix_waitlist_serve_order", "status", "priority", "enqueued_at", "seq"),)

    _fields = (
        "id", "patient_id", "client_id", "desired_type", "staff_id", "room_id",
        "duration_minutes", "earliest_start", "latest_end", "priority", "urgency",
        "reason", "notes", "enqueued_at", "seq", "status", "booking_id", "resolved_at",
    )

    def to_domain(self) -> WaitlistEntry:
        return WaitlistEntry.model_validate({f: getattr(self, f) for f in self._fields})

    @classmethod
    def from_domain(cls, e: WaitlistEntry) -> "WaitlistRecord":
        return cls(**{f: getattr(e, f) for f in cls._fields})

    def apply(self, e: WaitlistEntry):
        for f in ("priority", "urgency", "notes", "status", "booking_id", "resolved_at"):
            setattr(self, f, getattr(e, f))
