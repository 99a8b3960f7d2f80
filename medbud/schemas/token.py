from pydantic import BaseModel
from uuid import UUID
from datetime import date, datetime
from typing import Optional

from medbud.db.models.token import TokenStatus, TokenType

class TokenCreate(BaseModel):
    token_date: Optional[date] = None
    token_type: TokenType = TokenType.WALK_IN
    patient_id: Optional[UUID] = None
    estimated_time: Optional[datetime] = None
    priority: bool = False

class TokenStatusUpdate(BaseModel):
    status: TokenStatus

class TokenResponse(BaseModel):
    id: UUID
    doctor_id: UUID
    patient_id: Optional[UUID] = None
    appointment_id: Optional[UUID] = None
    token_number: int
    token_date: date
    token_type: TokenType
    status: TokenStatus
    estimated_time: Optional[datetime] = None
    delay_minutes: Optional[int] = None
    priority: bool = False
    display: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class NextTokenNumberResponse(BaseModel):
    doctor_id: UUID
    token_date: date
    next_token_number: int
