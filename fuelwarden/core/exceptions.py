"""Application error taxonomy.

Every failure raised by the data access layer, the identity provider and the
form state machines is one of these. Each carries an HTTP status code so the
API layer can render it without message matching.
"""

from typing import Optional

from fastapi import status


class FuelWardenError(Exception):
    """Base application exception."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def add_context(self, prefix: str) -> "FuelWardenError":
        """Prefixes the message in place, keeping the type and its fields."""
        self.message = f"{prefix}: {self.message}"
        self.args = (self.message,)
        return self


class ValidationError(FuelWardenError):
    """A field is outside its declared range or enum."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class NotAuthenticatedError(FuelWardenError):
    """No usable identity for the requested scope."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class PermissionDeniedError(FuelWardenError):
    """The document store rejected the caller for a document it does not own."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, document_id: Optional[str], message: str = "Permission denied"):
        self.document_id = document_id
        super().__init__(message)


class NotFoundError(FuelWardenError):
    """The operation targets a document id that does not exist."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, document_id: Optional[str], message: str = "Document not found"):
        self.document_id = document_id
        super().__init__(message)


class DuplicateError(FuelWardenError):
    """A singleton entity already exists for the user."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, user_id: str, entity: str):
        self.user_id = user_id
        self.entity = entity
        super().__init__(f"A {entity} already exists for user '{user_id}'")


class RemoteError(FuelWardenError):
    """Network or unexpected failure from a remote service."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class AuthError(FuelWardenError):
    """The identity provider rejected a sign-in, sign-up or account change."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR"):
        self.code = code
        super().__init__(message)
