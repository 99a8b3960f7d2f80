from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from typing import Optional, List

class PatientRecordCreate(BaseModel):
    patient_id: UUID
    diagnosis: Optional[str] = None
    prescription: Optional[str] = None
    notes: Optional[str] = None
    attachments: Optional[List[str]] = None

class PatientRecordResponse(BaseModel):
    id: UUID
    patient_id: UUID
    doctor_id: UUID
    token_id: UUID
    diagnosis: Optional[str] = None
    prescription: Optional[str] = None
    notes: Optional[str] = None
    attachments: Optional[List[str]] = None
    created_at: datetime

    class Config:
        from_attributes = True
