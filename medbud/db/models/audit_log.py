from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID, uuid4

from medbud.core.utils import utcnow
from sqlalchemy import Column, JSON
from sqlalchemy.dialects.postgresql import JSONB

class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    actor_id: Optional[UUID] = None
    action: str = Field(index=True) # token.issued, token.status_changed, record.created
    payload: Optional[dict] = Field(default=None, sa_column=Column(JSON().with_variant(JSONB(), "postgresql")))
    created_at: datetime = Field(default_factory=utcnow)
