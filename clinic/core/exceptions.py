from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """Referenced doctor, patient or appointment does not exist."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(HTTPException):
    """Requested slot overlaps an active appointment for the same doctor."""

    def __init__(self, detail: str = "The selected time slot is not available"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ValidationError(HTTPException):
    """Input that passed schema parsing but violates a scheduling rule."""

    def __init__(self, detail: str = "Invalid input"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class StoreError(HTTPException):
    def __init__(self, detail: str = "A storage error occurred"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
