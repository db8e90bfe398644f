"""Billing error taxonomy, mapped to HTTP status codes in main.py"""
from typing import Optional


class BillingError(Exception):
    """Base class for business-rule rejections raised by services"""

    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(BillingError):
    status_code = 400


class ConflictError(BillingError):
    status_code = 409


class NotFoundError(BillingError):
    status_code = 404


class AuthorizationError(BillingError):
    status_code = 403


class GatewayError(BillingError):
    """Payment gateway rejected or could not be verified. The record stays pending_payment."""

    status_code = 400

    def __init__(self, message: str, response_code: Optional[str] = None):
        super().__init__(message)
        self.response_code = response_code


class InternalServiceError(BillingError):
    """Server-side misconfiguration or persistence failure. Detail is logged, never returned."""

    status_code = 500
    public_message = "Internal server error, please try again later"

    def __init__(self, message: str):
        super().__init__(message)
