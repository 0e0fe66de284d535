"""
Service-layer exceptions.

Services raise these; ``main.py`` maps every ``StoreError`` to a JSON body
of the form ``{"message": ...}`` with the error's status code.
"""
from typing import Dict, Optional


class StoreError(Exception):
    """Base class for business errors raised by services."""
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict] = None, status_code: Optional[int] = None):
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(StoreError):
    status_code = 400


class NotFoundError(StoreError):
    status_code = 404


class ConflictError(StoreError):
    status_code = 409


class PermissionDeniedError(StoreError):
    status_code = 403


class AuthenticationError(StoreError):
    status_code = 401
