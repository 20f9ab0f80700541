"""Exceptions for mockaws."""

from typing import Any

# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------


class MockAWSError(Exception):
    """
    Base exception for all mockaws errors.

    Every subclass carries the wire-level error code and HTTP status that
    the front end reports to clients, so callers can serialize any engine
    failure without knowing its concrete type.
    """

    code = "InternalFailure"
    status_code = 400

    def as_dict(self) -> dict[str, Any]:
        """Serialize for a DynamoDB JSON error response body."""
        return {
            "__type": f"com.amazonaws.dynamodb.v20120810#{self.code}",
            "message": str(self),
        }


# ---------------------------------------------------------------------------
# Client Input Exceptions
# ---------------------------------------------------------------------------


class ClientInputError(MockAWSError):
    """
    Raised when a request is missing a required field or carries a value
    of the wrong shape.

    Attributes:
        field: The offending request field, if known
    """

    code = "ValidationException"

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class UnsupportedOperationError(ClientInputError):
    """Raised when the operation name is not one the emulator implements."""

    code = "UnknownOperationException"

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Unsupported operation: {operation}")


# ---------------------------------------------------------------------------
# Item Exceptions
# ---------------------------------------------------------------------------


class ResourceNotFoundError(MockAWSError):
    """Raised when an update targets an item that does not exist."""

    code = "ResourceNotFoundException"

    def __init__(self, table_name: str, key: dict[str, Any] | None = None) -> None:
        self.table_name = table_name
        self.key = key
        super().__init__("Requested resource not found")


class ConditionalCheckFailedError(MockAWSError):
    """
    Raised when a condition expression evaluates to false.

    No mutation is performed. Callers implementing optimistic concurrency
    catch this specifically and retry.
    """

    code = "ConditionalCheckFailedException"

    def __init__(self, table_name: str, condition: str | None = None) -> None:
        self.table_name = table_name
        self.condition = condition
        super().__init__("The conditional request failed")


class TransactionCanceledError(MockAWSError):
    """
    Raised when any sub-operation of a transactional write fails.

    The store is left exactly as it was before the call.

    Attributes:
        index: Position of the first failing sub-operation
        cause: The failure of that sub-operation
        size: Number of sub-operations in the transaction
    """

    code = "TransactionCanceledException"

    def __init__(self, index: int, cause: MockAWSError, size: int) -> None:
        self.index = index
        self.cause = cause
        self.size = size
        super().__init__(self._format_message())

    @property
    def cancellation_reasons(self) -> list[dict[str, str]]:
        """Per-operation reasons, ``None`` for operations that did not fail."""
        reasons = [{"Code": "None"} for _ in range(self.size)]
        reasons[self.index] = {
            "Code": self.cause.code.removesuffix("Exception"),
            "Message": str(self.cause),
        }
        return reasons

    def _format_message(self) -> str:
        codes = ", ".join(r["Code"] for r in self.cancellation_reasons)
        return (
            "Transaction cancelled, please refer cancellation reasons for "
            f"specific reasons [{codes}]"
        )

    def as_dict(self) -> dict[str, Any]:
        body = super().as_dict()
        body["CancellationReasons"] = self.cancellation_reasons
        return body


# ---------------------------------------------------------------------------
# Storage Exceptions
# ---------------------------------------------------------------------------


class StorageError(MockAWSError):
    """
    Raised when the underlying database fails.

    This is fatal for the request and is reported as an internal error.
    """

    code = "InternalServerError"
    status_code = 500
