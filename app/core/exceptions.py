"""
Domain errors raised by the services layer.

Each error carries the HTTP status it is rendered with; the handler in
app.main turns them into {"detail": ..., "error": ...} responses.
"""
from fastapi import status


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "internal_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


class AccessDenied(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "access_denied"


class InvalidArgument(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_argument"


class PaymentNotConfirmed(AppError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    error = "payment_not_confirmed"


class UpstreamPaymentError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    error = "upstream_payment_error"


class ConcurrentUpdate(AppError):
    """Another request advanced the same funnel session first."""
    status_code = status.HTTP_409_CONFLICT
    error = "concurrent_update"
