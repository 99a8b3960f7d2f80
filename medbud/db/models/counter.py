from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint
from datetime import date
from uuid import UUID, uuid4

class Counter(SQLModel, table=True):
    """Last token number handed out for one doctor on one day."""
    __tablename__ = "counters"
    __table_args__ = (
        UniqueConstraint("doctor_id", "token_date", name="uq_counters_doctor_date"),
    )
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    doctor_id: UUID = Field(foreign_key="doctors.id")
    token_date: date
    last_token: int = Field(default=0)
