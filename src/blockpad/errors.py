"""blockpad Error Hierarchy.

Provides a structured error hierarchy for all editor operations:
- BlockpadError: Base exception for all application errors
- ValidationError: Input validation failures
- NotFoundError: Unknown block or document ids (contract violations)
- DatabaseError: Block store failures
- StorageError: Persistence write-back failures (recoverable)
- ConfigurationError: Configuration/setup issues

Each error type includes:
- Descriptive message
- Recoverable flag for retry logic
- Structured representation for RPC responses

Usage:
    from blockpad.errors import BlockNotFoundError

    if block_id not in document.blocks:
        raise BlockNotFoundError(block_id)
"""

from __future__ import annotations

from typing import Any


# =============================================================================
# Error Base Classes
# =============================================================================


class BlockpadError(Exception):
    """Base exception for all blockpad application errors.

    Attributes:
        message: Human-readable error description
        recoverable: Whether the operation can be retried
        context: Additional context for debugging
    """

    def __init__(
        self,
        message: str,
        *,
        recoverable: bool = False,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to structured dictionary for RPC responses."""
        return {
            "type": type(self).__name__.lower().replace("error", ""),
            "message": self.message,
            "recoverable": self.recoverable,
            **{k: v for k, v in self.context.items() if v is not None},
        }


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(BlockpadError):
    """Input validation failed.

    Example:
        raise ValidationError("Content too long", field="content", constraint="max_length")
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.pop("context", {})
        if field:
            context["field"] = field
        if constraint:
            context["constraint"] = constraint
        if value is not None:
            context["value"] = _truncate(str(value), 100)
        super().__init__(message, recoverable=False, context=context)
        self.field = field
        self.constraint = constraint


# =============================================================================
# Lookup Errors
# =============================================================================


class NotFoundError(BlockpadError):
    """A referenced entity does not exist.

    Operating on an unknown id is a programming error, so these are never
    recoverable.
    """

    def __init__(
        self,
        message: str,
        *,
        resource_type: str | None = None,
        resource_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            recoverable=False,
            context={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class BlockNotFoundError(NotFoundError):
    """No block with this id in the open document."""

    def __init__(self, block_id: str) -> None:
        super().__init__(
            f"Block not found: {block_id}",
            resource_type="block",
            resource_id=block_id,
        )


class DocumentNotFoundError(NotFoundError):
    """No document with this id."""

    def __init__(self, document_id: str) -> None:
        super().__init__(
            f"Document not found: {document_id}",
            resource_type="document",
            resource_id=document_id,
        )


# =============================================================================
# Storage Errors
# =============================================================================


class DatabaseError(BlockpadError):
    """Block store operation failed."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(
            message,
            recoverable=recoverable,
            context={"operation": operation},
        )
        self.operation = operation


class StorageError(BlockpadError):
    """Persisting an editor change set failed.

    In-memory editor state stays authoritative; the next successful write
    supersedes the failed one.
    """

    def __init__(
        self,
        message: str,
        *,
        document_id: str | None = None,
        attempts: int | None = None,
    ) -> None:
        super().__init__(
            message,
            recoverable=True,
            context={"document_id": document_id, "attempts": attempts},
        )
        self.document_id = document_id
        self.attempts = attempts


class ConfigurationError(BlockpadError):
    """Configuration is invalid or incomplete."""

    def __init__(self, message: str, *, setting: str | None = None) -> None:
        super().__init__(message, recoverable=False, context={"setting": setting})
        self.setting = setting


# =============================================================================
# Helpers
# =============================================================================


def _truncate(value: str | None, max_len: int) -> str | None:
    """Truncate a string value for safe logging."""
    if value is None:
        return None
    if len(value) <= max_len:
        return value
    return value[:max_len] + "..."


# =============================================================================
# RPC Error Code Mapping
# =============================================================================


ERROR_CODES: dict[type[BlockpadError], int] = {
    ValidationError: -32000,
    NotFoundError: -32003,
    BlockNotFoundError: -32003,
    DocumentNotFoundError: -32003,
    DatabaseError: -32020,
    StorageError: -32051,
    ConfigurationError: -32030,
}


def get_error_code(exc: BlockpadError) -> int:
    """Get the JSON-RPC error code for a domain error."""
    if type(exc) in ERROR_CODES:
        return ERROR_CODES[type(exc)]
    for error_type, code in ERROR_CODES.items():
        if isinstance(exc, error_type):
            return code
    return -32603
