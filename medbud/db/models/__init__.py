from sqlmodel import SQLModel
from .doctor import Doctor
from .patient import Patient
from .appointment import Appointment
from .token import Token, TokenStatus, TokenType
from .counter import Counter
from .patient_record import PatientRecord
from .audit_log import AuditLog

__all__ = [
    "SQLModel",
    "Doctor",
    "Patient",
    "Appointment",
    "Token",
    "TokenStatus",
    "TokenType",
    "Counter",
    "PatientRecord",
    "AuditLog",
]
