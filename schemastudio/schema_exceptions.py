"""
Exception classes and operation results for the schema document engine.

This module provides the exception hierarchy used across the engine and the
OperationResult returned by every Document Store operation, so editing
surfaces can report failures instead of losing edits silently.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)


class ResultCode:
    """Result code constants for store operations."""
    OK = "ok"
    NOT_FOUND = "not_found"
    NOT_A_SECTION = "not_a_section"
    OUT_OF_RANGE = "out_of_range"
    DUPLICATE_ID = "duplicate_id"
    DUPLICATE_KEY = "duplicate_key"
    INVALID_FIELD = "invalid_field"
    INVALID_PATCH = "invalid_patch"
    CLIPBOARD_EMPTY = "clipboard_empty"
    NOTHING_TO_UNDO = "nothing_to_undo"
    NOTHING_TO_REDO = "nothing_to_redo"
    IMPORT_FAILED = "import_failed"


class SchemaStudioError(Exception):
    """
    Base exception for schema engine errors.

    Attributes:
        message: Error message
        context: Additional context information
        recovery_suggestions: List of suggested recovery actions
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None,
                 recovery_suggestions: Optional[List[str]] = None):
        self.message = message
        self.context = context or {}
        self.recovery_suggestions = recovery_suggestions or []
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def get_full_details(self) -> Dict[str, Any]:
        """Get complete error details including context and suggestions."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'context': self.context,
            'recovery_suggestions': self.recovery_suggestions
        }


class StructuralError(SchemaStudioError):
    """
    Raised when an operation references a field or position that does not exist,
    or would break a tree invariant (unique ids, unique keys, field shape).
    """

    def __init__(self, code: str, message: str, field_id: Optional[str] = None):
        self.code = code
        self.field_id = field_id

        context = {'code': code}
        if field_id is not None:
            context['field_id'] = field_id

        recovery_suggestions = {
            ResultCode.NOT_FOUND: ["Refresh the field list; the field may have been removed"],
            ResultCode.NOT_A_SECTION: ["Choose a section field as the target container"],
            ResultCode.OUT_OF_RANGE: ["Check the source and destination positions"],
            ResultCode.DUPLICATE_KEY: ["Pick a key that is not used by another field"],
            ResultCode.DUPLICATE_ID: ["Create the field with the field factory to get a fresh id"],
        }.get(code, [])

        super().__init__(message, context, recovery_suggestions)


class SchemaImportError(SchemaStudioError):
    """
    Raised when an imported document is malformed or has an unsupported version.

    The document is rejected as a whole; nothing is applied.
    """

    def __init__(self, errors: List[str], message: Optional[str] = None):
        self.errors = list(errors)

        if message is None:
            message = f"Schema import rejected: {'; '.join(self.errors[:3])}"
            if len(self.errors) > 3:
                message += f" (and {len(self.errors) - 3} more)"

        context = {
            'error_count': len(self.errors),
            'errors': self.errors
        }

        recovery_suggestions = [
            "Check that the document is a schema exported by this tool",
            "Verify the document declares version 1",
            "Make sure every field has a unique id and key"
        ]

        super().__init__(message, context, recovery_suggestions)


class ExpressionError(SchemaStudioError):
    """Base class for expression failures. Never surfaced past the evaluator."""

    def __init__(self, message: str, source: str = "", position: Optional[int] = None):
        self.source = source
        self.position = position
        context = {'source': source}
        if position is not None:
            context['position'] = position
        super().__init__(message, context)


class ExpressionSyntaxError(ExpressionError):
    """Raised by the tokenizer and parser for malformed expressions."""


class ExpressionEvaluationError(ExpressionError):
    """Raised while evaluating a parsed expression (bad operand types, division by zero)."""


class StorageError(SchemaStudioError):
    """Raised when persisted designer state cannot be read or written."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        context = {}
        if original_error is not None:
            context = {
                'original_error_type': type(original_error).__name__,
                'original_error_message': str(original_error)
            }
        recovery_suggestions = [
            "Check that the storage directory exists and is writable",
            "Delete the stored state file to start from an empty schema"
        ]
        super().__init__(message, context, recovery_suggestions)


@dataclass
class OperationResult:
    """
    Outcome of a Document Store operation.

    Attributes:
        ok: Whether the operation succeeded (a no-op counts as success)
        changed: Whether the schema or selection actually changed
        code: One of the ResultCode constants
        message: Human readable description
        field_id: Id of the field the operation produced or targeted
        errors: Detailed problems (import validation, field shape)
    """
    ok: bool
    changed: bool = False
    code: str = ResultCode.OK
    message: str = ""
    field_id: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @classmethod
    def success(cls, message: str = "", field_id: Optional[str] = None) -> "OperationResult":
        return cls(ok=True, changed=True, message=message, field_id=field_id)

    @classmethod
    def noop(cls, message: str = "", code: str = ResultCode.OK,
             field_id: Optional[str] = None) -> "OperationResult":
        return cls(ok=True, changed=False, code=code, message=message, field_id=field_id)

    @classmethod
    def failure(cls, code: str, message: str, field_id: Optional[str] = None,
                errors: Optional[List[str]] = None) -> "OperationResult":
        logger.debug(f"Operation failed ({code}): {message}")
        return cls(ok=False, changed=False, code=code, message=message,
                   field_id=field_id, errors=list(errors or []))

    def __bool__(self) -> bool:
        return self.ok

    def raise_for_error(self) -> "OperationResult":
        """Raise the matching exception if the operation failed, otherwise return self."""
        if self.ok:
            return self
        if self.code == ResultCode.IMPORT_FAILED:
            raise SchemaImportError(self.errors or [self.message])
        raise StructuralError(self.code, self.message, self.field_id)


def log_error_with_context(error: SchemaStudioError, operation: str) -> None:
    """
    Log error with full context information.

    Args:
        error: SchemaStudioError instance
        operation: Description of the operation that failed
    """
    logger.error(f"Schema engine error during {operation}")
    logger.error(f"Error type: {type(error).__name__}")
    logger.error(f"Error message: {error.message}")

    if error.context:
        logger.error("Error context:")
        for key, value in error.context.items():
            logger.error(f"  {key}: {value}")

    if error.recovery_suggestions:
        logger.info("Recovery suggestions:")
        for i, suggestion in enumerate(error.recovery_suggestions, 1):
            logger.info(f"  {i}. {suggestion}")
