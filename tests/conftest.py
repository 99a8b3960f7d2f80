import os

# The app engine is never used by the tests, keep it off Postgres
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./medbud-test.db")

from datetime import date
from uuid import uuid4

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from medbud.api.deps import get_current_doctor, get_current_patient
from medbud.db.models import Doctor, Patient, Token, TokenStatus, TokenType
from medbud.db.session import get_session
from medbud.main import app

SERVICE_DATE = date(2024, 6, 1)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'medbud.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def strict_session(tmp_path):
    """A session on a database that enforces foreign keys, as Postgres does."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'medbud-strict.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    async with async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)() as session:
        yield session
    await engine.dispose()


@pytest_asyncio.fixture
async def doctor(session):
    doctor = Doctor(
        name="Dr. Asha Menon",
        specialization="General Medicine",
        consultation_fee=500,
        consult_duration_minutes=15,
    )
    session.add(doctor)
    await session.commit()
    return doctor


@pytest_asyncio.fixture
async def other_doctor(session):
    doctor = Doctor(name="Dr. Ravi Kumar", specialization="Cardiology", consultation_fee=900)
    session.add(doctor)
    await session.commit()
    return doctor


@pytest_asyncio.fixture
async def patient(session):
    patient = Patient(full_name="Meera Nair", phone="9876543210")
    session.add(patient)
    await session.commit()
    return patient


@pytest_asyncio.fixture
async def client(session_factory, doctor):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    async def override_current_doctor():
        return doctor

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_current_doctor] = override_current_doctor
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def patient_client(client, patient):
    async def override_current_patient():
        return patient

    app.dependency_overrides[get_current_patient] = override_current_patient
    return client

async def load_token(session_factory, token_id) -> Token:
    """Read a token through a fresh session so nothing comes from an identity map."""
    async with session_factory() as session:
        return await session.get(Token, token_id)


def make_token(number: int, status: TokenStatus, doctor_id=None, **kwargs) -> Token:
    return Token(
        doctor_id=doctor_id or uuid4(),
        token_number=number,
        token_date=kwargs.pop("token_date", SERVICE_DATE),
        token_type=kwargs.pop("token_type", TokenType.APPOINTMENT),
        status=status,
        **kwargs,
    )
