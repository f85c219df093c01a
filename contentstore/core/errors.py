"""Exceptions raised by the content store."""


class ContentStoreError(Exception):
    """Base class for content store failures."""
    pass


class UnknownResource(ContentStoreError):
    """Address does not match any registered route."""

    def __init__(self, address, reason: str = ""):
        self.address = str(address)
        message = f"Unknown uri: {self.address}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class UnsupportedOperation(ContentStoreError):
    """Address resolves, but the operation is not allowed on its shape."""

    def __init__(self, operation: str, address):
        self.operation = operation
        self.address = str(address)
        super().__init__(f"Unknown {operation} uri: {self.address}")


class MalformedPredicate(ContentStoreError):
    """Predicate fragment and bound arguments do not agree, or the fragment is unsafe."""
    pass


class InvalidColumn(ContentStoreError):
    """Column name or sort term is not a plain identifier."""
    pass


class ConstraintViolation(ContentStoreError):
    """Storage rejected the write (uniqueness, NOT NULL, ...)."""
    pass


class SchemaValidationError(ContentStoreError):
    """Record rejected by strict schema validation."""

    def __init__(self, message: str, errors=None):
        self.errors = errors or []
        super().__init__(message)


class StorageResetError(ContentStoreError):
    """Whole-store reset failed; the previous handle is no longer usable."""
    pass
