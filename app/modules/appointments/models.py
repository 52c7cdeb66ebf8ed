import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, ForeignKey, JSON
from app.core.base import Base, TimestampedMixin, UTCDateTime
from app.modules.appointments.schemas import Appointment

class AppointmentRecord(Base, TimestampedMixin):
    __tablename__ = "appointment"
    booking_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("booking.id"), unique=True)
    patient_id: Mapped[uuid.UUID]
    client_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    appointment_type: Mapped[str] = mapped_column(String(48))

    status: Mapped[str] = mapped_column(String(24), default="scheduled")  # scheduled, checked_in, completed, cancelled, no_show
    checked_in_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    no_show_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # audit trail of transitions: [{"from_status", "to_status", "at", "reason"}]
    history: Mapped[list] = mapped_column(JSON, default=list)

    def to_domain(self) -> Appointment:
        return Appointment.model_validate({
            "id": self.id,
            "booking_id": self.booking_id,
            "patient_id": self.patient_id,
            "client_id": self.client_id,
            "appointment_type": self.appointment_type,
            "status": self.status,
            "checked_in_at": self.checked_in_at,
            "completed_at": self.completed_at,
            "cancelled_at": self.cancelled_at,
            "no_show_at": self.no_show_at,
            "history": self.history or [],
            "created_at": self.created_at,
        })

    def apply(self, a: Appointment):
        self.status = a.status
        self.checked_in_at = a.checked_in_at
        self.completed_at = a.completed_at
        self.cancelled_at = a.cancelled_at
        self.no_show_at = a.no_show_at
        self.history = [h.model_dump(mode="json") for h in a.history]
