"""Error taxonomy for the resident ordering core.

Handlers in the API layer map each class to an HTTP status; nothing here knows
about HTTP.
"""


class OrderError(Exception):
    """Base class for expected ordering failures."""
    status_code = 400

    def __init__(self, message: str, *, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(OrderError):
    """Bad day/meal type/item count/empty order. The user must correct the input."""
    status_code = 400


class DeadlinePassedError(OrderError):
    """An edit or submit was attempted after the week's cutoff."""
    status_code = 403


class AuthorizationError(OrderError):
    """The actor may not touch this resident or facility."""
    status_code = 403


class NotFoundError(OrderError):
    status_code = 404


class ConflictError(OrderError):
    """A concurrent writer changed the order first.

    The lifecycle resolves this into the already-persisted result; it only
    escapes for plain draft saves that lost a race.
    """
    status_code = 409


class PaymentError(OrderError):
    """The gateway rejected the charge. The order is left resumable and uncharged."""
    status_code = 402

    def __init__(self, message: str, *, code=None, details=None):
        super().__init__(message, details=details)
        self.code = code


class PaymentTimeoutError(PaymentError):
    """The gateway did not answer in time; the order stays submitted/pending."""
    status_code = 504


__all__ = [
    'OrderError', 'ValidationError', 'DeadlinePassedError', 'AuthorizationError',
    'NotFoundError', 'ConflictError', 'PaymentError', 'PaymentTimeoutError',
]
