"""
Booking error taxonomy

Services raise these at the point a business rule fails; main.py renders
them into the {success, message, errors?} envelope with the matching status code.
"""

from typing import Optional


class CareBookError(Exception):
    """Base class for errors that carry a user-facing message"""

    status_code = 400

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationError(CareBookError):
    """Malformed or missing input"""


class NotFoundError(CareBookError):
    status_code = 404


class ConflictError(CareBookError):
    """Overlapping booking or duplicate resource"""


class ExpiredError(CareBookError):
    """OTP or QR token past its expiry"""


class InvalidCodeError(CareBookError):
    """OTP mismatch or unknown QR token"""


class StateError(CareBookError):
    """Operation not valid for the booking's current status"""


class ForbiddenError(CareBookError):
    status_code = 403


class InternalError(CareBookError):
    status_code = 500
