from fastapi import APIRouter
from medbud.api.v1 import appointments, doctors, patients, records, tokens

api_router = APIRouter()

api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
api_router.include_router(tokens.router, prefix="/tokens", tags=["tokens"])
api_router.include_router(doctors.router, prefix="/doctors", tags=["doctors"])
api_router.include_router(records.router, prefix="/records", tags=["records"])
api_router.include_router(patients.router, prefix="/patients", tags=["patients"])
