"""
Errors raised by the task board operations.

Where Django already has a matching exception the domain error subclasses it,
so an error that is not handled by a view still gets the framework's
response (403 for ``Forbidden``, 404 for ``NotFound``).
"""

from django.core.exceptions import PermissionDenied, ValidationError
from django.http import Http404

__all__ = [
    "ValidationError",
    "Unauthorized",
    "Forbidden",
    "NotFound",
    "DuplicateEmail",
    "Conflict",
    "InvalidCredentials",
]


class Unauthorized(Exception):
    """No principal, or the session has expired."""


class Forbidden(PermissionDenied):
    """Signed in, but not allowed to touch this resource."""


class NotFound(Http404):
    pass


class DuplicateEmail(ValidationError):
    def __init__(self, email=None):
        super().__init__({"email": ["Email already exists."]})
        self.email = email


class Conflict(Exception):
    """The row changed between read and write."""

    def __init__(self, task_id=None):
        super().__init__(f"Task {task_id} was modified by someone else.")
        self.task_id = task_id


class InvalidCredentials(Exception):
    message = "Invalid email or password."

    def __init__(self, message=None):
        super().__init__(message or self.message)
