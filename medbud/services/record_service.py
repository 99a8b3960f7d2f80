from typing import List, Optional
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from medbud.core.exceptions import NoActiveToken, StoreUnavailable
from medbud.core.logger import logger
from medbud.core.utils import constraint_violated
from medbud.db.models import AuditLog, PatientRecord, Token, TokenStatus
from medbud.services.queue_service import QueueService

# One record per token, as Postgres and SQLite report it
RECORD_TOKEN_MARKERS = ("patient_records_token_id_key", "patient_records.token_id")

class RecordService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.queue = QueueService(session)

    async def find_active_token(self, doctor_id: UUID, patient_id: UUID) -> Optional[Token]:
        stmt = select(Token).where(
            Token.doctor_id == doctor_id,
            Token.patient_id == patient_id,
            Token.status == TokenStatus.IN_PROGRESS
        ).order_by(Token.token_date.desc(), Token.token_number.desc()).limit(1).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def record_completion(
        self,
        patient_id: UUID,
        doctor_id: UUID,
        diagnosis: Optional[str] = None,
        prescription: Optional[str] = None,
        notes: Optional[str] = None,
        attachments: Optional[list] = None,
    ) -> PatientRecord:
        """
        Save the consultation record and complete the patient's in-progress token.

        Both writes share one transaction: if completing the token fails the
        record is rolled back with it.
        """
        token = await self.find_active_token(doctor_id, patient_id)
        if not token:
            logger.warning(f"Record rejected: no in-progress token for patient {patient_id} with doctor {doctor_id}")
            raise NoActiveToken()

        token_id = token.id
        record = PatientRecord(
            patient_id=patient_id,
            doctor_id=doctor_id,
            token_id=token_id,
            diagnosis=diagnosis,
            prescription=prescription,
            notes=notes,
            attachments=attachments,
        )
        try:
            self.session.add(record)
            await self.session.flush()
            await self.queue.apply_transition(token, TokenStatus.COMPLETED, actor_id=doctor_id)
            self.session.add(AuditLog(
                actor_id=doctor_id,
                action="record.created",
                payload={"record_id": str(record.id), "token_id": str(token_id)},
            ))
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            if constraint_violated(exc, RECORD_TOKEN_MARKERS):
                # Another request already wrote the record for this token
                raise NoActiveToken() from exc
            logger.error(f"Saving record for token {token_id} broke an integrity rule: {exc}")
            raise StoreUnavailable() from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error(f"Saving record for token {token_id} failed: {exc}")
            raise StoreUnavailable() from exc
        except HTTPException:
            await self.session.rollback()
            raise

        logger.info(f"Record {record.id} saved, token #{token.token_number} completed")
        return record

    async def list_doctor_records(self, doctor_id: UUID) -> List[PatientRecord]:
        stmt = select(PatientRecord).where(
            PatientRecord.doctor_id == doctor_id
        ).order_by(PatientRecord.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_patient_records(self, patient_id: UUID) -> List[PatientRecord]:
        stmt = select(PatientRecord).where(
            PatientRecord.patient_id == patient_id
        ).order_by(PatientRecord.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
