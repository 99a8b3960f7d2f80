from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from medbud.api.deps import ensure_own_queue, get_current_doctor
from medbud.core.utils import utc_today
from medbud.db.models import Doctor
from medbud.db.session import get_session
from medbud.schemas.queue import TokenTransitionResponse
from medbud.schemas.token import TokenCreate, TokenResponse, TokenStatusUpdate
from medbud.services.queue_service import QueueService

router = APIRouter()

async def get_queue_service(session: AsyncSession = Depends(get_session)) -> QueueService:
    return QueueService(session)

@router.post("", response_model=TokenResponse, status_code=201)
async def issue_token(
    request: TokenCreate,
    doctor: Doctor = Depends(get_current_doctor),
    service: QueueService = Depends(get_queue_service)
):
    return await service.issue_token(
        doctor.id,
        request.token_date or utc_today(),
        token_type=request.token_type,
        patient_id=request.patient_id,
        estimated_time=request.estimated_time,
        priority=request.priority,
        actor_id=doctor.id,
    )

@router.patch("/{token_id}/status", response_model=TokenTransitionResponse)
async def update_token_status(
    token_id: UUID,
    request: TokenStatusUpdate,
    doctor: Doctor = Depends(get_current_doctor),
    service: QueueService = Depends(get_queue_service)
):
    token = await service.get_token(token_id)
    ensure_own_queue(doctor, token.doctor_id)
    token, snapshot = await service.transition_status(token_id, request.status, actor_id=doctor.id)
    return TokenTransitionResponse(token=TokenResponse.model_validate(token), snapshot=snapshot)
