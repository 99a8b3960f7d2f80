import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import select

from medbud.core.exceptions import NoActiveToken, StoreUnavailable
from medbud.db.models import AuditLog, PatientRecord, TokenStatus
from medbud.services.queue_service import QueueService
from medbud.services.record_service import RecordService

from conftest import SERVICE_DATE, load_token


async def count_records(session_factory) -> int:
    async with session_factory() as session:
        result = await session.execute(select(PatientRecord))
        return len(result.scalars().all())


@pytest.mark.asyncio
async def test_completion_without_any_token(session_factory, session, doctor, patient):
    with pytest.raises(NoActiveToken) as exc_info:
        await RecordService(session).record_completion(patient.id, doctor.id, diagnosis="Flu")

    assert exc_info.value.status_code == 409
    assert await count_records(session_factory) == 0


@pytest.mark.asyncio
async def test_completion_requires_token_in_progress(session_factory, session, doctor, patient):
    await QueueService(session).issue_token(doctor.id, SERVICE_DATE, patient_id=patient.id)

    with pytest.raises(NoActiveToken):
        await RecordService(session).record_completion(patient.id, doctor.id, diagnosis="Flu")

    assert await count_records(session_factory) == 0


@pytest.mark.asyncio
async def test_completion_is_scoped_to_the_doctor(session_factory, session, doctor, other_doctor, patient):
    queue = QueueService(session)
    token = await queue.issue_token(other_doctor.id, SERVICE_DATE, patient_id=patient.id)
    await queue.transition_status(token.id, TokenStatus.IN_PROGRESS)

    with pytest.raises(NoActiveToken):
        await RecordService(session).record_completion(patient.id, doctor.id)

    assert await count_records(session_factory) == 0


@pytest.mark.asyncio
async def test_record_completes_the_active_token(session_factory, session, doctor, patient):
    queue = QueueService(session)
    token = await queue.issue_token(doctor.id, SERVICE_DATE, patient_id=patient.id)
    waiting = await queue.issue_token(doctor.id, SERVICE_DATE)
    await queue.transition_status(token.id, TokenStatus.IN_PROGRESS)

    record = await RecordService(session).record_completion(
        patient.id,
        doctor.id,
        diagnosis="Viral fever",
        prescription="Paracetamol 500mg twice daily",
        notes="Review in 3 days",
        attachments=["blood-report.pdf"],
    )

    assert record.token_id == token.id
    assert record.attachments == ["blood-report.pdf"]
    assert (await load_token(session_factory, token.id)).status == TokenStatus.COMPLETED
    assert (await load_token(session_factory, waiting.id)).status == TokenStatus.WAITING

    stats = await queue.get_daily_stats(doctor.id, SERVICE_DATE)
    assert (stats.total, stats.completed, stats.waiting) == (2, 1, 1)

    actions = (await session.execute(select(AuditLog.action))).scalars().all()
    assert "record.created" in actions


@pytest.mark.asyncio
async def test_second_completion_for_same_token_fails(session_factory, session, doctor, patient):
    queue = QueueService(session)
    token = await queue.issue_token(doctor.id, SERVICE_DATE, patient_id=patient.id)
    await queue.transition_status(token.id, TokenStatus.IN_PROGRESS)

    service = RecordService(session)
    await service.record_completion(patient.id, doctor.id, diagnosis="Migraine")
    with pytest.raises(NoActiveToken):
        await service.record_completion(patient.id, doctor.id, diagnosis="Migraine")

    assert await count_records(session_factory) == 1


@pytest.mark.asyncio
async def test_failed_status_change_discards_the_record(session_factory, session, doctor, patient, monkeypatch):
    queue = QueueService(session)
    token = await queue.issue_token(doctor.id, SERVICE_DATE, patient_id=patient.id)
    token_id = token.id
    await queue.transition_status(token_id, TokenStatus.IN_PROGRESS)

    service = RecordService(session)

    async def broken_transition(*args, **kwargs):
        raise OperationalError("UPDATE tokens", {}, Exception("connection reset"))

    monkeypatch.setattr(service.queue, "apply_transition", broken_transition)

    with pytest.raises(StoreUnavailable):
        await service.record_completion(patient.id, doctor.id, diagnosis="Asthma")

    assert await count_records(session_factory) == 0
    assert (await load_token(session_factory, token_id)).status == TokenStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_records_listed_newest_first(session, doctor, patient):
    queue = QueueService(session)
    service = RecordService(session)
    for diagnosis in ("Cold", "Sprain"):
        token = await queue.issue_token(doctor.id, SERVICE_DATE, patient_id=patient.id)
        await queue.transition_status(token.id, TokenStatus.IN_PROGRESS)
        await service.record_completion(patient.id, doctor.id, diagnosis=diagnosis)

    by_doctor = await service.list_doctor_records(doctor.id)
    by_patient = await service.list_patient_records(patient.id)

    assert [r.diagnosis for r in by_doctor] == ["Sprain", "Cold"]
    assert [r.id for r in by_patient] == [r.id for r in by_doctor]


@pytest.mark.asyncio
@pytest.mark.parametrize("message,expected", [
    ("UNIQUE constraint failed: patient_records.token_id", NoActiveToken),
    ("FOREIGN KEY constraint failed", StoreUnavailable),
])
async def test_integrity_errors_are_told_apart(session_factory, session, doctor, patient, monkeypatch, message, expected):
    queue = QueueService(session)
    token = await queue.issue_token(doctor.id, SERVICE_DATE, patient_id=patient.id)
    token_id = token.id
    patient_id, doctor_id = patient.id, doctor.id
    await queue.transition_status(token_id, TokenStatus.IN_PROGRESS)

    service = RecordService(session)

    async def failing_transition(*args, **kwargs):
        raise IntegrityError("INSERT INTO patient_records", {}, Exception(message))

    monkeypatch.setattr(service.queue, "apply_transition", failing_transition)

    with pytest.raises(expected):
        await service.record_completion(patient_id, doctor_id, diagnosis="Sinusitis")

    assert await count_records(session_factory) == 0
    assert (await load_token(session_factory, token_id)).status == TokenStatus.IN_PROGRESS
