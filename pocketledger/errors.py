# pocketledger/errors.py
"""Error taxonomy shared by the access layer and the HTTP handlers."""


class LedgerError(Exception):
    status_code = 500
    message = "Something went wrong"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self):
        return {"error": self.message}


class Unauthenticated(LedgerError):
    status_code = 401
    message = "Unauthorized"


class Forbidden(LedgerError):
    status_code = 403
    message = "Unauthorized"


class NotFound(LedgerError):
    status_code = 404
    message = "Not found"


class ValidationError(LedgerError):
    status_code = 400
    message = "Invalid request"

    def __init__(self, message=None, missing=None):
        super().__init__(message)
        self.missing = list(missing or [])

    def to_dict(self):
        body = super().to_dict()
        if self.missing:
            body["missing"] = self.missing
        return body


class StorageError(LedgerError):
    """Raised by record store adapters; details never reach the caller."""

    status_code = 500

    def __init__(self, detail=None):
        super().__init__(None)
        self.detail = detail

    def __str__(self):
        return self.detail or self.message
