from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from medbud.db.models import Doctor
from medbud.db.session import get_session
from medbud.schemas.appointment import AppointmentCreate, AppointmentResponse, BookingResponse
from medbud.schemas.token import TokenResponse
from medbud.services.appointment_service import AppointmentService

router = APIRouter()

async def get_appointment_service(session: AsyncSession = Depends(get_session)) -> AppointmentService:
    return AppointmentService(session)

def construct_response(appointment, token, tokens_ahead: int = 0, wait_minutes: int = 0) -> BookingResponse:
    return BookingResponse(
        appointment=AppointmentResponse.model_validate(appointment),
        token=TokenResponse.model_validate(token) if token else None,
        token_display=token.display if token else None,
        tokens_ahead=tokens_ahead,
        estimated_wait_minutes=wait_minutes
    )

@router.post("", response_model=BookingResponse, status_code=201)
async def book_appointment(
    request: AppointmentCreate,
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment, token, tokens_ahead, wait_minutes = await service.book_appointment(request)
    return construct_response(appointment, token, tokens_ahead, wait_minutes)

@router.get("/{appointment_id}", response_model=BookingResponse)
async def read_appointment(
    appointment_id: UUID,
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment, token = await service.get_appointment(appointment_id)
    if token is None:
        return construct_response(appointment, None)

    doctor = await service.session.get(Doctor, appointment.doctor_id)
    consult_minutes = doctor.consult_duration_minutes if doctor else None
    tokens_ahead, wait_minutes = await service.queue.estimate_wait(token, consult_minutes)
    return construct_response(appointment, token, tokens_ahead, wait_minutes)
