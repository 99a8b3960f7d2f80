from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, TYPE_CHECKING
from datetime import date, datetime, time
from uuid import UUID, uuid4

from medbud.core.utils import utcnow

if TYPE_CHECKING:
    from .doctor import Doctor

class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    doctor_id: UUID = Field(foreign_key="doctors.id", index=True)
    patient_id: Optional[UUID] = Field(default=None, foreign_key="patients.id")
    appointment_date: date
    appointment_time: time
    symptoms: Optional[str] = None
    payment_status: Optional[str] = None # pending, completed
    payment_method: Optional[str] = None
    status: str = Field(default="confirmed") # confirmed, completed, cancelled
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    doctor: "Doctor" = Relationship(back_populates="appointments")
