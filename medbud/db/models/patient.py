from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID, uuid4

from medbud.core.utils import utcnow

class Patient(SQLModel, table=True):
    __tablename__ = "patients"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    full_name: str
    phone: Optional[str] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=utcnow)
