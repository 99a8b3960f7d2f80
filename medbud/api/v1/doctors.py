from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from medbud.api.deps import ensure_own_queue, get_current_doctor
from medbud.core.utils import utc_today
from medbud.db.models import Doctor
from medbud.db.session import get_session
from medbud.schemas.appointment import AppointmentResponse
from medbud.schemas.queue import DailyStats, QueueSnapshot, TokenTransitionResponse
from medbud.schemas.record import PatientRecordResponse
from medbud.schemas.token import NextTokenNumberResponse, TokenResponse
from medbud.services.appointment_service import AppointmentService
from medbud.services.queue_service import QueueService
from medbud.services.record_service import RecordService

router = APIRouter()

@router.get("/{doctor_id}/tokens/next-number", response_model=NextTokenNumberResponse)
async def get_next_token_number(
    doctor_id: UUID,
    token_date: Optional[date] = None,
    doctor: Doctor = Depends(get_current_doctor),
    session: AsyncSession = Depends(get_session)
):
    ensure_own_queue(doctor, doctor_id)
    token_date = token_date or utc_today()
    service = QueueService(session)
    return NextTokenNumberResponse(
        doctor_id=doctor_id,
        token_date=token_date,
        next_token_number=await service.allocate_token_number(doctor_id, token_date)
    )

@router.get("/{doctor_id}/queue", response_model=QueueSnapshot)
async def get_queue(
    doctor_id: UUID,
    token_date: Optional[date] = None,
    doctor: Doctor = Depends(get_current_doctor),
    session: AsyncSession = Depends(get_session)
):
    ensure_own_queue(doctor, doctor_id)
    service = QueueService(session)
    return await service.get_queue_snapshot(doctor_id, token_date or utc_today())

@router.post("/{doctor_id}/queue/call-next", response_model=TokenTransitionResponse)
async def call_next_patient(
    doctor_id: UUID,
    token_date: Optional[date] = None,
    doctor: Doctor = Depends(get_current_doctor),
    session: AsyncSession = Depends(get_session)
):
    ensure_own_queue(doctor, doctor_id)
    service = QueueService(session)
    token, snapshot = await service.call_next(doctor_id, token_date or utc_today(), actor_id=doctor.id)
    return TokenTransitionResponse(token=TokenResponse.model_validate(token), snapshot=snapshot)

@router.get("/{doctor_id}/stats", response_model=DailyStats)
async def get_daily_stats(
    doctor_id: UUID,
    token_date: Optional[date] = None,
    doctor: Doctor = Depends(get_current_doctor),
    session: AsyncSession = Depends(get_session)
):
    ensure_own_queue(doctor, doctor_id)
    service = QueueService(session)
    return await service.get_daily_stats(doctor_id, token_date or utc_today())

@router.get("/{doctor_id}/appointments", response_model=List[AppointmentResponse])
async def read_day_appointments(
    doctor_id: UUID,
    appointment_date: Optional[date] = None,
    doctor: Doctor = Depends(get_current_doctor),
    session: AsyncSession = Depends(get_session)
):
    ensure_own_queue(doctor, doctor_id)
    service = AppointmentService(session)
    return await service.list_appointments_for_day(doctor_id, appointment_date or utc_today())

@router.get("/{doctor_id}/records", response_model=List[PatientRecordResponse])
async def read_doctor_records(
    doctor_id: UUID,
    doctor: Doctor = Depends(get_current_doctor),
    session: AsyncSession = Depends(get_session)
):
    ensure_own_queue(doctor, doctor_id)
    service = RecordService(session)
    return await service.list_doctor_records(doctor_id)
