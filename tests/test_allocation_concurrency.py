import asyncio

import pytest
from sqlmodel import select

from medbud.db.models import Token
from medbud.services.queue_service import QueueService

from conftest import SERVICE_DATE


async def issue_in_own_session(session_factory, doctor_id) -> int:
    async with session_factory() as session:
        token = await QueueService(session).issue_token(doctor_id, SERVICE_DATE)
        return token.token_number


@pytest.mark.asyncio
async def test_read_only_allocation_races(session_factory, doctor):
    # Two bookings that both read before either writes see the same number,
    # which is why issuing goes through the counter instead.
    async with session_factory() as first, session_factory() as second:
        numbers = await asyncio.gather(
            QueueService(first).allocate_token_number(doctor.id, SERVICE_DATE),
            QueueService(second).allocate_token_number(doctor.id, SERVICE_DATE),
        )
    assert numbers == [1, 1]


@pytest.mark.asyncio
async def test_overlapping_issues_get_distinct_numbers(session_factory, doctor):
    numbers = await asyncio.gather(
        issue_in_own_session(session_factory, doctor.id),
        issue_in_own_session(session_factory, doctor.id),
    )
    assert sorted(numbers) == [1, 2]


@pytest.mark.asyncio
async def test_burst_of_issues_stays_gapless(session_factory, doctor):
    numbers = await asyncio.gather(*[
        issue_in_own_session(session_factory, doctor.id) for _ in range(10)
    ])
    assert sorted(numbers) == list(range(1, 11))

    async with session_factory() as session:
        result = await session.execute(select(Token.token_number).where(Token.doctor_id == doctor.id))
        assert sorted(result.scalars().all()) == list(range(1, 11))
