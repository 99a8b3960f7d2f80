from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from medbud.api.deps import get_current_patient
from medbud.db.models import Patient
from medbud.db.session import get_session
from medbud.schemas.appointment import AppointmentResponse
from medbud.schemas.token import TokenResponse
from medbud.services.appointment_service import AppointmentService
from medbud.services.queue_service import QueueService

router = APIRouter()

@router.get("/me/appointments", response_model=List[AppointmentResponse])
async def read_upcoming_appointments(
    limit: int = Query(5, ge=1, le=50),
    patient: Patient = Depends(get_current_patient),
    session: AsyncSession = Depends(get_session)
):
    service = AppointmentService(session)
    return await service.list_patient_appointments(patient.id, limit=limit)

@router.get("/me/tokens", response_model=List[TokenResponse])
async def read_waiting_tokens(
    limit: int = Query(5, ge=1, le=50),
    patient: Patient = Depends(get_current_patient),
    session: AsyncSession = Depends(get_session)
):
    service = QueueService(session)
    return await service.list_patient_tokens(patient.id, limit=limit)
