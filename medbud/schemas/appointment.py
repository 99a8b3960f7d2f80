from pydantic import BaseModel, Field
from uuid import UUID
from datetime import date, datetime, time
from typing import Optional

from medbud.schemas.token import TokenResponse

class AppointmentCreate(BaseModel):
    doctor_id: UUID
    patient_id: Optional[UUID] = None
    appointment_date: date
    appointment_time: time
    symptoms: Optional[str] = Field(default=None, max_length=2000)
    payment_method: str = "card"

class AppointmentResponse(BaseModel):
    id: UUID
    doctor_id: UUID
    patient_id: Optional[UUID] = None
    appointment_date: date
    appointment_time: time
    symptoms: Optional[str] = None
    payment_status: Optional[str] = None
    payment_method: Optional[str] = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True

class BookingResponse(BaseModel):
    appointment: AppointmentResponse
    token: Optional[TokenResponse] = None
    token_display: Optional[str] = None
    tokens_ahead: int = 0
    estimated_wait_minutes: int = 0
