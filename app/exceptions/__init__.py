"""Custom exceptions for the bookstore application."""

class BookstoreError(Exception):
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

class ValidationFailedError(BookstoreError):
    """Raised when a required field is missing or a value is malformed."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)

class NotFoundError(BookstoreError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class OutOfStockError(BookstoreError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, title, requested, available):
        message = f"Insufficient stock for {title}: requested {requested}, available {available}"
        super().__init__(message, 409, {'requested': requested, 'available': available})
        self.title = title
        self.requested = requested
        self.available = available

class DuplicateKeyError(BookstoreError):
    """Raised on a unique collision (book ISBN, customer email)."""
    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)

class ReferentialConflictError(BookstoreError):
    """Raised when a delete is blocked by rows that still reference the target."""
    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)

class PermissionDeniedError(BookstoreError):
    """Raised when the caller fails the administrator check."""
    def __init__(self, message="Administrator access required"):
        super().__init__(message, 403)

class TransportFailureError(BookstoreError):
    """Raised when the database call itself failed (connection, timeout)."""
    def __init__(self, message="The data service is unavailable, please retry"):
        super().__init__(message, 503)
