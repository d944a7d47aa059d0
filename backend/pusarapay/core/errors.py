# core/errors.py
from typing import Any, Dict, List, Optional


class PaymentError(Exception):
    """Base class for every error the payment flows raise on purpose."""

    code = "payment_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.code, "message": self.message}


class ValidationError(PaymentError):
    """Bad creation input. Raised before any store write."""

    code = "validation_error"

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.fields = fields or []

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["fields"] = self.fields
        return body


class ProviderError(PaymentError):
    """ToyyibPay bill creation failed, timed out or answered without a bill code."""

    code = "provider_error"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details


class StorageError(PaymentError):
    code = "storage_error"


class MalformedNotification(PaymentError):
    """A provider notification without the fields needed to reconcile it.

    Only ever logged: the provider is acknowledged regardless.
    """

    code = "malformed_notification"


class ReservationNotFound(PaymentError):
    """The reservation backend does not know the reservation id."""

    code = "reservation_not_found"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details


class ReservationServiceError(PaymentError):
    """The reservation backend could not be reached or answered with a server error."""

    code = "reservation_service_error"
