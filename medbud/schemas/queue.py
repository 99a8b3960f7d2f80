from pydantic import BaseModel
from uuid import UUID
from datetime import date
from typing import List

from medbud.schemas.token import TokenResponse

class DailyStats(BaseModel):
    total: int = 0
    completed: int = 0
    waiting: int = 0
    in_progress: int = 0
    cancelled: int = 0

class QueueSnapshot(BaseModel):
    doctor_id: UUID
    token_date: date
    waiting: List[TokenResponse] = []
    in_progress: List[TokenResponse] = []
    completed: List[TokenResponse] = []
    cancelled: List[TokenResponse] = []
    stats: DailyStats

class TokenTransitionResponse(BaseModel):
    token: TokenResponse
    snapshot: QueueSnapshot
