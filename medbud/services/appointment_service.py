from datetime import date
from typing import List, Optional, Tuple
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from medbud.core.exceptions import AppointmentNotFound
from medbud.core.utils import combine_slot, utc_today
from medbud.db.models import Appointment, Token, TokenType
from medbud.schemas.appointment import AppointmentCreate
from medbud.services.queue_service import QueueService

class AppointmentService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.queue = QueueService(session)

    async def book_appointment(self, data: AppointmentCreate) -> Tuple[Appointment, Token, int, int]:
        # 1. Validate Doctor
        doctor = await self.queue.get_doctor(data.doctor_id)
        doctor_id = doctor.id
        consult_minutes = doctor.consult_duration_minutes

        if data.appointment_date < utc_today():
            raise HTTPException(status_code=400, detail="Cannot book an appointment in the past")

        # 2. Validate Patient (anonymous public bookings carry no patient)
        if data.patient_id:
            await self.queue.get_patient(data.patient_id)

        # 3. Payment is settled at checkout, so the booking is confirmed right away
        appointment = Appointment(
            doctor_id=doctor_id,
            patient_id=data.patient_id,
            appointment_date=data.appointment_date,
            appointment_time=data.appointment_time,
            symptoms=data.symptoms,
            payment_status="completed",
            payment_method=data.payment_method,
            status="confirmed"
        )

        # 4. Issue Token together with the appointment
        token = await self.queue.issue_token(
            doctor_id,
            data.appointment_date,
            token_type=TokenType.APPOINTMENT,
            patient_id=data.patient_id,
            appointment=appointment,
            estimated_time=combine_slot(data.appointment_date, data.appointment_time),
            actor_id=data.patient_id,
        )

        tokens_ahead, wait_minutes = await self.queue.estimate_wait(token, consult_minutes)
        return appointment, token, tokens_ahead, wait_minutes

    async def get_appointment(self, appointment_id: UUID) -> Tuple[Appointment, Optional[Token]]:
        appointment = await self.session.get(Appointment, appointment_id)
        if not appointment:
            raise AppointmentNotFound()

        stmt = select(Token).where(Token.appointment_id == appointment_id)
        result = await self.session.execute(stmt)
        return appointment, result.scalars().first()

    async def list_patient_appointments(
        self,
        patient_id: UUID,
        from_date: Optional[date] = None,
        limit: Optional[int] = None
    ) -> List[Appointment]:
        """Upcoming appointments for a patient, earliest first."""
        stmt = select(Appointment).where(
            Appointment.patient_id == patient_id,
            Appointment.appointment_date >= (from_date or utc_today())
        ).order_by(Appointment.appointment_date, Appointment.appointment_time)
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_appointments_for_day(self, doctor_id: UUID, appointment_date: date) -> List[Appointment]:
        stmt = select(Appointment).where(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date == appointment_date
        ).order_by(Appointment.appointment_time)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
