from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID, uuid4

from medbud.core.utils import utcnow
from sqlalchemy import Column, JSON
from sqlalchemy.dialects.postgresql import JSONB

class PatientRecord(SQLModel, table=True):
    __tablename__ = "patient_records"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    patient_id: UUID = Field(foreign_key="patients.id", index=True)
    doctor_id: UUID = Field(foreign_key="doctors.id", index=True)
    token_id: UUID = Field(foreign_key="tokens.id", unique=True)
    diagnosis: Optional[str] = None
    prescription: Optional[str] = None
    notes: Optional[str] = None
    attachments: Optional[list] = Field(default=None, sa_column=Column(JSON().with_variant(JSONB(), "postgresql")))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
