"""Domain exceptions raised by the service layer.

The HTTP layer maps each class to a status code in ``taskminder.main``.
"""


class TaskminderError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"detail": self.message}


class ValidationFailed(TaskminderError):
    """A required field is missing or malformed."""

    status_code = 400

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict[str, str]:
        return {"detail": self.message, "field": self.field}


class NotFoundError(TaskminderError):
    """A referenced task or user does not exist."""

    status_code = 404


class PreconditionFailed(TaskminderError):
    """A destructive operation lacks confirmation or an action name is unknown."""

    status_code = 400


class AuthenticationFailed(TaskminderError):
    """An OTP or external identity token could not be verified."""

    status_code = 401


class DeliveryError(TaskminderError):
    """The email transport failed to deliver a message."""

    status_code = 502
