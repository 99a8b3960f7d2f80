from fastapi import HTTPException, status


class StoreUnavailable(HTTPException):
    """A read or write against the database or session store failed."""

    def __init__(self, detail: str = "Storage backend unavailable, please retry"):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


class NoActiveToken(HTTPException):
    def __init__(self, detail: str = "No active token found for this patient"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class DuplicateTokenNumber(HTTPException):
    """Raised when the token number collides with an existing one for the same doctor and day."""

    def __init__(self, token_number: int | None = None):
        detail = "Token number already taken, please retry"
        if token_number is not None:
            detail = f"Token number {token_number} already taken, please retry"
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)
        self.token_number = token_number


class IllegalTransition(HTTPException):
    def __init__(self, current: str, target: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot move token from {current} to {target}",
        )
        self.current = current
        self.target = target


class TokenNotFound(HTTPException):
    def __init__(self, detail: str = "Token not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class DoctorNotFound(HTTPException):
    def __init__(self, detail: str = "Doctor not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class PatientNotFound(HTTPException):
    def __init__(self, detail: str = "Patient not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AppointmentNotFound(HTTPException):
    def __init__(self, detail: str = "Appointment not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class NotAuthorized(HTTPException):
    def __init__(self, detail: str = "Not authorized to manage this queue"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
