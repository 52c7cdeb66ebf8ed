import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Text, ForeignKey, JSON, Boolean, Index, text
from app.core.base import Base, TimestampedMixin, UTCDateTime
from app.modules.bookings.intervals import TimeInterval
from app.modules.bookings.schemas import Booking, Resource

class ResourceRecord(Base):
    # one row per bookable resource; its row lock serializes writers across processes
    __tablename__ = "resource"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(16))  # staff | room | equipment
    name: Mapped[str | None] = mapped_column(String(160), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    version: Mapped[int] = mapped_column(default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, server_default=text("CURRENT_TIMESTAMP"))

    def to_domain(self) -> Resource:
        return Resource(id=self.id, kind=self.kind, name=self.name, active=self.active)

class BookingRecord(Base, TimestampedMixin):
    __tablename__ = "booking"
    start: Mapped[datetime] = mapped_column(UTCDateTime, index=True)
    end: Mapped[datetime] = mapped_column(UTCDateTime)
    staff_id: Mapped[str] = mapped_column(ForeignKey("resource.id"))
    room_id: Mapped[str] = mapped_column(ForeignKey("resource.id"))
    equipment_ids: Mapped[list] = mapped_column(JSON, default=list)
    patient_id: Mapped[uuid.UUID]
    client_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    appointment_type: Mapped[str] = mapped_column(String(48))
    status: Mapped[str] = mapped_column(String(16), default="confirmed")  # confirmed | cancelled
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    resources: Mapped[list["BookingResourceRecord"]] = relationship(
        back_populates="booking", cascade="all, delete-orphan", lazy="selectin"
    )

    def to_domain(self) -> Booking:
        return Booking(
            id=self.id,
            interval=TimeInterval(start=self.start, end=self.end),
            staff_id=self.staff_id,
            room_id=self.room_id,
            equipment_ids=list(self.equipment_ids or []),
            patient_id=self.patient_id,
            client_id=self.client_id,
            appointment_type=self.appointment_type,
            status=self.status,
            notes=self.notes,
            cancel_reason=self.cancel_reason,
            cancelled_at=self.cancelled_at,
            created_at=self.created_at,
        )

    def apply(self, b: Booking):
        self.start = b.interval.start
        self.end = b.interval.end
        self.status = b.status
        self.notes = b.notes
        self.cancel_reason = b.cancel_reason
        self.cancelled_at = b.cancelled_at

    @classmethod
    def from_domain(cls, b: Booking) -> "BookingRecord":
        rec = cls(
            id=b.id,
            start=b.interval.start,
            end=b.interval.end,
            staff_id=b.staff_id,
            room_id=b.room_id,
            equipment_ids=list(b.equipment_ids),
            patient_id=b.patient_id,
            client_id=b.client_id,
            appointment_type=b.appointment_type,
            status=b.status,
            notes=b.notes,
            cancel_reason=b.cancel_reason,
            cancelled_at=b.cancelled_at,
            created_at=b.created_at,
        )
        rec.resources = [BookingResourceRecord(resource_id=rid) for rid in b.resource_ids]
        return rec

class BookingResourceRecord(Base):
    # resource -> booking index used by the conflict scan
    __tablename__ = "booking_resource"
    booking_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("booking.id"), primary_key=True)
    resource_id: Mapped[str] = mapped_column(ForeignKey("resource.id"), primary_key=True)

    booking: Mapped[BookingRecord] = relationship(back_populates="resources")

    __table_args__ = (Index("ix_booking_resource_resource", "resource_id"),)
