import json
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt.exceptions import PyJWTError
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from medbud.core.exceptions import NotAuthorized, StoreUnavailable
from medbud.core.logger import logger
from medbud.core.redis import redis_client
from medbud.core.security import decode_access_token
from medbud.db.models import Doctor, Patient
from medbud.db.session import get_session

bearer_scheme = HTTPBearer(auto_error=False)

credentials_exception = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)

async def resolve_subject(credentials: HTTPAuthorizationCredentials | None, role: str) -> UUID:
    """
    Check the bearer token and its Redis session, return the id in `sub`.

    The session must exist and carry the expected role.
    """
    if credentials is None:
        raise credentials_exception

    token = credentials.credentials
    try:
        payload = decode_access_token(token)
        subject = UUID(payload.get("sub"))
    except (PyJWTError, ValueError, TypeError):
        raise credentials_exception

    # Sessions are revoked by deleting them from Redis
    try:
        session_data = await redis_client.get_token(token)
    except RedisError as exc:
        logger.error(f"Session store unavailable: {exc}")
        raise StoreUnavailable("Session store unavailable, please retry") from exc
    if session_data is None:
        raise credentials_exception

    try:
        session_role = json.loads(session_data).get("role")
    except (ValueError, AttributeError):
        raise credentials_exception
    if session_role != role:
        raise NotAuthorized(f"{role.capitalize()} access required")
    return subject

async def get_current_doctor(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session)
) -> Doctor:
    doctor_id = await resolve_subject(credentials, "doctor")
    doctor = await session.get(Doctor, doctor_id)
    if doctor is None or not doctor.is_active:
        raise credentials_exception
    return doctor

async def get_current_patient(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session)
) -> Patient:
    patient_id = await resolve_subject(credentials, "patient")
    patient = await session.get(Patient, patient_id)
    if patient is None:
        raise credentials_exception
    return patient

def ensure_own_queue(doctor: Doctor, doctor_id: UUID):
    if doctor.id != doctor_id:
        raise NotAuthorized()
