import asyncio
import weakref
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value
from sqlmodel import and_, func, or_, select

from medbud.core.config import settings
from medbud.core.exceptions import (
    DoctorNotFound,
    DuplicateTokenNumber,
    IllegalTransition,
    PatientNotFound,
    StoreUnavailable,
    TokenNotFound,
)
from medbud.core.logger import logger
from medbud.core.utils import constraint_violated, utcnow
from medbud.db.models import Appointment, AuditLog, Counter, Doctor, Patient, Token, TokenStatus, TokenType
from medbud.schemas.queue import DailyStats, QueueSnapshot
from medbud.schemas.token import TokenResponse

# waiting -> in_progress -> completed, waiting -> cancelled. Terminal states have no exits.
ALLOWED_TRANSITIONS: Dict[TokenStatus, frozenset] = {
    TokenStatus.WAITING: frozenset({TokenStatus.IN_PROGRESS, TokenStatus.CANCELLED}),
    TokenStatus.IN_PROGRESS: frozenset({TokenStatus.COMPLETED}),
    TokenStatus.COMPLETED: frozenset(),
    TokenStatus.CANCELLED: frozenset(),
}

APPOINTMENT_STATUS_FOR = {
    TokenStatus.COMPLETED: "completed",
    TokenStatus.CANCELLED: "cancelled",
}

# Unique constraints guarding token numbers, as Postgres and SQLite name them
NUMBER_COLLISION_MARKERS = (
    "uq_tokens_doctor_date_number",
    "uq_counters_doctor_date",
    "tokens.token_number",
    "counters.token_date",
)


def ensure_transition(current, target) -> TokenStatus:
    """
    Validate a single status edge and return the target as a TokenStatus.

    Every code path that changes a token's status goes through here.
    """
    current = TokenStatus(current)
    target = TokenStatus(target)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise IllegalTransition(current.value, target.value)
    return target


def compute_daily_stats(tokens: Iterable[Token]) -> DailyStats:
    counts = {status: 0 for status in TokenStatus}
    for token in tokens:
        counts[TokenStatus(token.status)] += 1
    return DailyStats(
        total=sum(counts.values()),
        completed=counts[TokenStatus.COMPLETED],
        waiting=counts[TokenStatus.WAITING],
        in_progress=counts[TokenStatus.IN_PROGRESS],
        cancelled=counts[TokenStatus.CANCELLED],
    )


def build_snapshot(doctor_id: UUID, token_date: date, tokens: Iterable[Token]) -> QueueSnapshot:
    ordered = sorted(tokens, key=lambda t: t.token_number)
    buckets: Dict[TokenStatus, List[TokenResponse]] = {status: [] for status in TokenStatus}
    for token in ordered:
        buckets[TokenStatus(token.status)].append(TokenResponse.model_validate(token))
    return QueueSnapshot(
        doctor_id=doctor_id,
        token_date=token_date,
        waiting=buckets[TokenStatus.WAITING],
        in_progress=buckets[TokenStatus.IN_PROGRESS],
        completed=buckets[TokenStatus.COMPLETED],
        cancelled=buckets[TokenStatus.CANCELLED],
        stats=compute_daily_stats(ordered),
    )


_allocation_locks: "weakref.WeakValueDictionary[Tuple[UUID, date], asyncio.Lock]" = weakref.WeakValueDictionary()


def allocation_lock(doctor_id: UUID, token_date: date) -> asyncio.Lock:
    # One lock per doctor-day, dropped once no request holds it
    key = (doctor_id, token_date)
    lock = _allocation_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _allocation_locks[key] = lock
    return lock


class QueueService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_doctor(self, doctor_id: UUID) -> Doctor:
        doctor = await self.session.get(Doctor, doctor_id)
        if not doctor or not doctor.is_active:
            raise DoctorNotFound()
        return doctor

    async def get_patient(self, patient_id: UUID) -> Patient:
        patient = await self.session.get(Patient, patient_id)
        if not patient:
            raise PatientNotFound()
        return patient

    async def get_token(self, token_id: UUID) -> Token:
        token = await self.session.get(Token, token_id)
        if not token:
            raise TokenNotFound()
        return token

    async def allocate_token_number(self, doctor_id: UUID, token_date: date) -> int:
        """Next token number for the doctor-day: highest issued number + 1, or 1."""
        stmt = select(Token.token_number).where(
            Token.doctor_id == doctor_id,
            Token.token_date == token_date
        ).order_by(Token.token_number.desc()).limit(1)
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error(f"Could not read tokens for doctor {doctor_id} on {token_date}: {exc}")
            raise StoreUnavailable() from exc
        highest = result.scalars().first()
        return (highest or 0) + 1

    async def _reserve_token_number(self, doctor_id: UUID, token_date: date, resync: bool = False) -> int:
        scope = (Counter.doctor_id == doctor_id, Counter.token_date == token_date)

        if resync:
            # Pull a stale counter up to the highest number actually stored
            highest = await self.allocate_token_number(doctor_id, token_date) - 1
            await self.session.execute(
                update(Counter)
                .where(*scope, Counter.last_token < highest)
                .values(last_token=highest)
                .execution_options(synchronize_session=False)
            )

        result = await self.session.execute(
            update(Counter)
            .where(*scope)
            .values(last_token=Counter.last_token + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            number = await self.allocate_token_number(doctor_id, token_date)
            self.session.add(Counter(doctor_id=doctor_id, token_date=token_date, last_token=number))
            await self.session.flush()
            return number

        current = await self.session.execute(select(Counter.last_token).where(*scope))
        return current.scalar_one()

    async def issue_token(
        self,
        doctor_id: UUID,
        token_date: date,
        token_type: TokenType = TokenType.APPOINTMENT,
        patient_id: Optional[UUID] = None,
        appointment: Optional[Appointment] = None,
        estimated_time: Optional[datetime] = None,
        priority: bool = False,
        actor_id: Optional[UUID] = None,
    ) -> Token:
        """
        Create a waiting token with the next number for the doctor-day.

        The number comes from the per doctor-day counter, bumped in the same
        transaction as the insert. When an appointment is given it is
        inserted in that transaction as well, so a failed allocation leaves
        neither row behind.
        """
        retries = max(settings.TOKEN_ALLOCATION_RETRIES, 0)
        number = None

        if patient_id is not None:
            await self.get_patient(patient_id)

        async with allocation_lock(doctor_id, token_date):
            for attempt in range(retries + 1):
                try:
                    number = await self._reserve_token_number(doctor_id, token_date, resync=attempt > 0)
                    if appointment is not None:
                        self.session.add(appointment)
                        await self.session.flush()

                    token = Token(
                        doctor_id=doctor_id,
                        patient_id=patient_id,
                        appointment_id=appointment.id if appointment is not None else None,
                        token_number=number,
                        token_date=token_date,
                        token_type=token_type,
                        status=TokenStatus.WAITING,
                        estimated_time=estimated_time,
                        priority=priority,
                    )
                    self.session.add(token)
                    self.session.add(AuditLog(
                        actor_id=actor_id,
                        action="token.issued",
                        payload={
                            "token_id": str(token.id),
                            "doctor_id": str(doctor_id),
                            "token_date": token_date.isoformat(),
                            "token_number": number,
                            "token_type": TokenType(token_type).value,
                        },
                    ))
                    await self.session.commit()
                    break
                except IntegrityError as exc:
                    await self.session.rollback()
                    if not constraint_violated(exc, NUMBER_COLLISION_MARKERS):
                        logger.error(f"Token issue for doctor {doctor_id} on {token_date} broke an integrity rule: {exc}")
                        raise StoreUnavailable() from exc
                    if attempt >= retries:
                        logger.error(f"Token number {number} for doctor {doctor_id} on {token_date} still taken after {retries} retries")
                        raise DuplicateTokenNumber(number) from exc
                    logger.warning(f"Token number {number} for doctor {doctor_id} on {token_date} collided, retrying")
                except SQLAlchemyError as exc:
                    await self.session.rollback()
                    logger.error(f"Token issue failed for doctor {doctor_id} on {token_date}: {exc}")
                    raise StoreUnavailable() from exc
                except HTTPException:
                    await self.session.rollback()
                    raise

        logger.info(f"Issued token #{token.token_number} ({TokenType(token.token_type).value}) for doctor {doctor_id} on {token_date}")
        return token

    async def apply_transition(self, token: Token, target, actor_id: Optional[UUID] = None) -> Token:
        """
        Move a token to a new status inside the caller's transaction.

        The update is conditional on the status we validated against, so a
        concurrent change surfaces as an IllegalTransition instead of being
        overwritten. The caller commits.
        """
        previous = TokenStatus(token.status)
        new_status = ensure_transition(previous, target)
        now = utcnow()

        result = await self.session.execute(
            update(Token)
            .where(Token.id == token.id, Token.status == previous)
            .values(status=new_status, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise IllegalTransition(previous.value, new_status.value)
        set_committed_value(token, "status", new_status)
        set_committed_value(token, "updated_at", now)

        mirrored = APPOINTMENT_STATUS_FOR.get(new_status)
        if mirrored and token.appointment_id:
            appointment = await self.session.get(Appointment, token.appointment_id)
            if appointment:
                appointment.status = mirrored
                appointment.updated_at = now
                self.session.add(appointment)

        self.session.add(AuditLog(
            actor_id=actor_id,
            action="token.status_changed",
            payload={
                "token_id": str(token.id),
                "from": previous.value,
                "to": new_status.value,
            },
        ))
        logger.info(f"Token #{token.token_number} for doctor {token.doctor_id} on {token.token_date}: {previous.value} -> {new_status.value}")
        return token

    async def transition_status(self, token_id: UUID, target, actor_id: Optional[UUID] = None) -> Tuple[Token, QueueSnapshot]:
        token = await self.get_token(token_id)
        try:
            await self.apply_transition(token, target, actor_id=actor_id)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error(f"Status change for token {token_id} failed: {exc}")
            raise StoreUnavailable() from exc
        except HTTPException:
            await self.session.rollback()
            raise

        snapshot = await self.get_queue_snapshot(token.doctor_id, token.token_date)
        return token, snapshot

    async def call_next(self, doctor_id: UUID, token_date: date, actor_id: Optional[UUID] = None) -> Tuple[Token, QueueSnapshot]:
        # Priority tokens jump the line, otherwise lowest number first
        stmt = select(Token).where(
            Token.doctor_id == doctor_id,
            Token.token_date == token_date,
            Token.status == TokenStatus.WAITING
        ).order_by(Token.priority.desc(), Token.token_number).limit(1).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        token = result.scalars().first()
        if not token:
            raise TokenNotFound("No waiting tokens in the queue")
        return await self.transition_status(token.id, TokenStatus.IN_PROGRESS, actor_id=actor_id)

    async def list_tokens(self, doctor_id: UUID, token_date: date) -> List[Token]:
        stmt = select(Token).where(
            Token.doctor_id == doctor_id,
            Token.token_date == token_date
        ).order_by(Token.token_number).execution_options(populate_existing=True)
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error(f"Could not list tokens for doctor {doctor_id} on {token_date}: {exc}")
            raise StoreUnavailable() from exc
        return list(result.scalars().all())

    async def list_patient_tokens(self, patient_id: UUID, limit: Optional[int] = None) -> List[Token]:
        # Waiting tokens across every doctor, soonest day first
        stmt = select(Token).where(
            Token.patient_id == patient_id,
            Token.status == TokenStatus.WAITING
        ).order_by(Token.token_date, Token.token_number).execution_options(populate_existing=True)
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_daily_stats(self, doctor_id: UUID, token_date: date) -> DailyStats:
        return compute_daily_stats(await self.list_tokens(doctor_id, token_date))

    async def get_queue_snapshot(self, doctor_id: UUID, token_date: date) -> QueueSnapshot:
        tokens = await self.list_tokens(doctor_id, token_date)
        return build_snapshot(doctor_id, token_date, tokens)

    async def estimate_wait(self, token: Token, consult_minutes: Optional[int] = None) -> Tuple[int, int]:
        """
        Return (tokens ahead, estimated wait in minutes) for a token.

        Ahead of a waiting token are the patients already with the doctor and
        the waiting tokens call_next picks first. A token that is no longer
        waiting has nobody ahead of it.
        """
        if TokenStatus(token.status) != TokenStatus.WAITING:
            return 0, 0

        if token.priority:
            called_first = and_(Token.priority.is_(True), Token.token_number < token.token_number)
        else:
            called_first = or_(Token.priority.is_(True), Token.token_number < token.token_number)
        stmt = select(func.count(Token.id)).where(
            Token.doctor_id == token.doctor_id,
            Token.token_date == token.token_date,
            or_(
                Token.status == TokenStatus.IN_PROGRESS,
                and_(Token.status == TokenStatus.WAITING, called_first)
            )
        )
        result = await self.session.execute(stmt)
        ahead = result.scalar() or 0

        if consult_minutes is None:
            consult_minutes = settings.DEFAULT_CONSULT_MINUTES
        return ahead, ahead * consult_minutes
