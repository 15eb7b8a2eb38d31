"""
Error taxonomy shared by the storage, application and HTTP layers.

Every error carries a stable machine-readable ``kind`` and the HTTP status
the gateway answers with.
"""


class SubscriptionError(Exception):
    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SubscriptionValidationError(SubscriptionError, ValueError):
    """Malformed id, month or body; nothing was written"""
    kind = "validation_error"
    status_code = 400


class SubscriptionNotFoundError(SubscriptionError):
    kind = "not_found"
    status_code = 404


class StorageError(SubscriptionError):
    """Connection or query failure in the database"""
    kind = "storage_error"
    status_code = 500


class DuplicateSubscriptionError(StorageError):
    kind = "duplicate_id"
    status_code = 409
