from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, List, TYPE_CHECKING
from datetime import datetime
from uuid import UUID, uuid4

from medbud.core.utils import utcnow

if TYPE_CHECKING:
    from .appointment import Appointment
    from .token import Token

class Doctor(SQLModel, table=True):
    __tablename__ = "doctors"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str
    specialization: str
    consultation_fee: int = Field(default=0)
    consult_duration_minutes: int = Field(default=10)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)

    appointments: List["Appointment"] = Relationship(back_populates="doctor")
    tokens: List["Token"] = Relationship(back_populates="doctor")
