from enum import Enum
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import UniqueConstraint
from typing import Optional, TYPE_CHECKING
from datetime import date, datetime
from uuid import UUID, uuid4

from medbud.core.utils import token_display, utcnow

if TYPE_CHECKING:
    from .doctor import Doctor


class TokenStatus(str, Enum):
    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TokenType(str, Enum):
    APPOINTMENT = "appointment"
    WALK_IN = "walk_in"


class Token(SQLModel, table=True):
    __tablename__ = "tokens"
    __table_args__ = (
        UniqueConstraint("doctor_id", "token_date", "token_number", name="uq_tokens_doctor_date_number"),
    )
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    doctor_id: UUID = Field(foreign_key="doctors.id", index=True)
    patient_id: Optional[UUID] = Field(default=None, foreign_key="patients.id", index=True)
    appointment_id: Optional[UUID] = Field(default=None, foreign_key="appointments.id")
    token_number: int
    token_date: date = Field(index=True)
    token_type: TokenType = Field(default=TokenType.APPOINTMENT)
    status: TokenStatus = Field(default=TokenStatus.WAITING)
    estimated_time: Optional[datetime] = None
    delay_minutes: Optional[int] = None
    priority: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    doctor: "Doctor" = Relationship(back_populates="tokens")

    @property
    def display(self) -> str:
        return token_display(self.token_number, self.token_type, self.priority)
