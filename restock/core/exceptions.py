"""
Error taxonomy for the alert and reorder workflow.

Services raise these; views turn them into ``{"error": kind, "message": ...}``
responses through ``restock.core.utils.error_response``.
"""
from rest_framework import status


class RestockError(Exception):
    """Base class for workflow errors"""
    kind = 'Error'
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    # When False the caller only sees default_message; details stay in the logs
    expose_message = True
    default_message = 'Request failed'

    def __init__(self, message=None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    @property
    def public_message(self):
        return self.message if self.expose_message else self.default_message


class ValidationError(RestockError):
    """Bad input shape or range"""
    kind = 'ValidationError'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid request data'


class NotFoundError(RestockError):
    """Unknown product, order or alert"""
    kind = 'NotFoundError'
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found'


class ConflictError(RestockError):
    """Request conflicts with current state"""
    kind = 'ConflictError'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Request conflicts with the current state'


class DispatchError(RestockError):
    """Notification delivery failed"""
    kind = 'DispatchError'
    status_code = status.HTTP_502_BAD_GATEWAY
    expose_message = False
    default_message = 'Failed to deliver the purchase order to the supplier'


class PersistenceError(RestockError):
    """Underlying store transaction failed and was rolled back"""
    kind = 'PersistenceError'
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    expose_message = False
    default_message = 'Failed to save changes'
