"""Custom exceptions for the marketplace inventory application."""

class MarketplaceError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class BusinessLogicError(MarketplaceError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class ValidationError(BusinessLogicError):
    """Raised when input is rejected before any mutation happens."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)

class NotFoundError(MarketplaceError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class ConcurrentModificationError(MarketplaceError):
    """Raised when a write keeps losing a race after the allowed retries."""
    def __init__(self, resource, resource_id, attempts):
        message = f"{resource} {resource_id} was modified concurrently; gave up after {attempts} attempts"
        super().__init__(message, 409, {'retryable': True})
