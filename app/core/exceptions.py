from fastapi import HTTPException, status

class BaseAppException(HTTPException):
    code = "APP_ERROR"

    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)

    def __str__(self) -> str:
        return f"{self.code}: {self.detail}"

class ValidationError(BaseAppException):
    code = "VALIDATION_ERROR"

    def __init__(self, detail: str = "Validation error"):
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)

class NotFoundError(BaseAppException):
    code = "NOT_FOUND"

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

class StateConflictError(BaseAppException):
    """The action is not valid for the entity's current state."""
    code = "STATE_CONFLICT"

    def __init__(self, detail: str = "Action not allowed in current state"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)

class PermissionDeniedError(BaseAppException):
    code = "PERMISSION_DENIED"

    def __init__(self, detail: str = "Insufficient permissions"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

class ServiceUnavailableError(BaseAppException):
    """Unexpected infrastructure failure, e.g. the database is unreachable."""
    code = "INTERNAL_ERROR"

    def __init__(self, detail: str = "Internal server error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)

class NotificationDeliveryError(Exception):
    """Raised inside the notification worker so Celery retries the delivery."""
