"""
Custom exception classes for the car rental web app.

Services raise these for look-ups and guard failures; the application
factory maps them to JSON error responses.
"""


class CarRentalError(Exception):
    """Base class for every domain error raised by the services."""

    status_code = 400
    default_message = "Error: request could not be processed"

    def __init__(self, message: str = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def __str__(self) -> str:  # pragma: no cover
        return self.message


class CarNotFoundError(CarRentalError):
    """Raised when a car ID cannot be found in the fleet."""

    status_code = 404
    default_message = "Error: car not found"


class UserNotFoundError(CarRentalError):
    """Raised when a user ID cannot be found in the system."""

    status_code = 404
    default_message = "Error: user not found"


class AppointmentNotFoundError(CarRentalError):
    """Raised when an appointment cannot be found (or is not visible to the caller)."""

    status_code = 404
    default_message = "Error: appointment not found"


class PromotionNotFoundError(CarRentalError):
    status_code = 404
    default_message = "Error: promotion not found"


class SubscriptionNotFoundError(CarRentalError):
    status_code = 404
    default_message = "Error: subscription plan not found"


class PaymentNotFoundError(CarRentalError):
    status_code = 404
    default_message = "Error: payment not found"


class ReviewNotFoundError(CarRentalError):
    status_code = 404
    default_message = "Error: review not found"


class InvalidDateRangeError(CarRentalError):
    """Raised when start is not before end or a date cannot be parsed."""

    default_message = "Error: invalid date range"


class CarUnavailableError(CarRentalError):
    """Raised when a car is not available for the requested dates."""

    status_code = 409
    default_message = "Error: car is not available"


class PaymentProcessingError(CarRentalError):
    """Raised when a payment cannot be created or moved to a new status."""

    default_message = "Error: payment processing failed"


class PermissionDeniedError(CarRentalError):
    status_code = 403
    default_message = "Error: you are not allowed to do this"


class ValidationError(CarRentalError):
    """Raised when submitted field values are out of range or missing."""

    default_message = "Error: invalid input"


class UploadError(CarRentalError):
    default_message = "Error: file upload failed"
