from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID

from medbud.api.deps import get_current_doctor
from medbud.db.models import Doctor
from medbud.db.session import get_session
from medbud.schemas.record import PatientRecordCreate, PatientRecordResponse
from medbud.services.record_service import RecordService

router = APIRouter()

async def get_record_service(session: AsyncSession = Depends(get_session)) -> RecordService:
    return RecordService(session)

@router.post("", response_model=PatientRecordResponse, status_code=201)
async def create_record(
    request: PatientRecordCreate,
    doctor: Doctor = Depends(get_current_doctor),
    service: RecordService = Depends(get_record_service)
):
    return await service.record_completion(
        request.patient_id,
        doctor.id,
        diagnosis=request.diagnosis,
        prescription=request.prescription,
        notes=request.notes,
        attachments=request.attachments,
    )

@router.get("/patients/{patient_id}", response_model=List[PatientRecordResponse])
async def read_patient_records(
    patient_id: UUID,
    doctor: Doctor = Depends(get_current_doctor),
    service: RecordService = Depends(get_record_service)
):
    return await service.list_patient_records(patient_id)
