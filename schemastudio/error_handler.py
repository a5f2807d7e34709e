"""
Error display utilities for the Schema Studio Streamlit app.
Maps engine exceptions and failed store operations to user-friendly messages.
"""

import json
import logging
import traceback
from typing import Any, Optional, Callable

import streamlit as st
import yaml

from .schema_exceptions import (
    ExpressionError,
    OperationResult,
    ResultCode,
    SchemaImportError,
    SchemaStudioError,
    StorageError,
    StructuralError,
    log_error_with_context,
)

logger = logging.getLogger(__name__)


class ErrorType:
    """Error type constants."""
    SCHEMA = "schema"
    IMPORT = "import"
    STRUCTURE = "structure"
    EXPRESSION = "expression"
    STORAGE = "storage"
    FILE_SYSTEM = "file_system"
    USER_INPUT = "user_input"
    SYSTEM = "system"


# Messages for failed store operations, by result code
RESULT_MESSAGES = {
    ResultCode.NOT_FOUND: "🔍 That field no longer exists.",
    ResultCode.NOT_A_SECTION: "📂 Fields can only be placed inside a section.",
    ResultCode.OUT_OF_RANGE: "↕️ The field cannot be moved there.",
    ResultCode.DUPLICATE_ID: "🪪 Another field already uses this id.",
    ResultCode.DUPLICATE_KEY: "🔑 Another field already uses this key. Keys must be unique.",
    ResultCode.INVALID_FIELD: "📋 The field definition is incomplete or malformed.",
    ResultCode.INVALID_PATCH: "✏️ That change cannot be applied to the field.",
    ResultCode.IMPORT_FAILED: "📥 The schema could not be imported. Nothing was changed.",
}


class ErrorHandler:
    """Error handling for the schema designer and preview pages."""

    @staticmethod
    def handle_error(
        error: Exception,
        context: str,
        error_type: str = ErrorType.SYSTEM,
        user_message: Optional[str] = None,
        show_details: bool = False
    ) -> None:
        """
        Handle errors with user-friendly messages and recovery suggestions.

        Args:
            error: The exception that occurred
            context: Context where the error occurred
            error_type: Type of error (from ErrorType constants)
            user_message: Custom user-friendly message
            show_details: Whether to show technical details
        """
        if isinstance(error, SchemaStudioError):
            log_error_with_context(error, context)
        else:
            logger.error(f"Error in {context}: {str(error)}", exc_info=True)

        if not user_message:
            user_message = ErrorHandler.get_user_friendly_message(error, error_type)

        ErrorHandler._display_error(user_message, error, context, show_details)

    @staticmethod
    def get_user_friendly_message(error: Exception, error_type: str) -> str:
        """Generate user-friendly error messages based on error type."""
        error_messages = {
            ErrorType.SCHEMA: {
                SchemaImportError: "📋 The schema document is not valid.",
                json.JSONDecodeError: "📋 The schema is not valid JSON.",
                yaml.YAMLError: "📋 The schema is not valid YAML.",
                "default": "📋 Schema error occurred. Please check the schema document."
            },

            ErrorType.IMPORT: {
                SchemaImportError: RESULT_MESSAGES[ResultCode.IMPORT_FAILED],
                UnicodeDecodeError: "📥 The uploaded file is not UTF-8 text.",
                "default": "📥 Import failed. Please check the uploaded document."
            },

            ErrorType.STRUCTURE: {
                StructuralError: "🧱 The change would break the field tree.",
                "default": "🧱 The field tree could not be changed."
            },

            ErrorType.EXPRESSION: {
                ExpressionError: "🧮 The expression could not be understood.",
                "default": "🧮 Expression error. The field stays visible and keeps its value."
            },

            ErrorType.STORAGE: {
                StorageError: "💾 Designer state could not be saved or restored. Your edits stay in this session.",
                "default": "💾 Storage error occurred."
            },

            ErrorType.FILE_SYSTEM: {
                FileNotFoundError: "📁 The requested file could not be found.",
                PermissionError: "🔒 Permission denied. Please check file permissions.",
                OSError: "💾 File system error occurred. Please try again.",
                "default": "📁 A file system error occurred. Please try again."
            },

            ErrorType.USER_INPUT: {
                ValueError: "⚠️ Invalid input provided. Please check your data and try again.",
                "default": "⚠️ Input error. Please review your data and try again."
            },

            ErrorType.SYSTEM: {
                ImportError: "💻 Required system component is missing.",
                "default": "💻 System error occurred. Please try again."
            }
        }

        error_type_messages = error_messages.get(error_type, error_messages[ErrorType.SYSTEM])

        for exception_type, message in error_type_messages.items():
            if exception_type != "default" and isinstance(error, exception_type):
                return message

        return error_type_messages.get("default", "An unexpected error occurred.")

    @staticmethod
    def _display_error(
        user_message: str,
        error: Exception,
        context: str,
        show_details: bool = False
    ) -> None:
        """Display error message with recovery suggestions and optional details."""
        st.error(user_message)

        if isinstance(error, SchemaImportError) and error.errors:
            for problem in error.errors[:10]:
                st.caption(f"• {problem}")

        if isinstance(error, SchemaStudioError) and error.recovery_suggestions:
            st.markdown("**🔧 Suggested Actions:**")
            for suggestion in error.recovery_suggestions:
                st.write(f"- {suggestion}")

        if show_details:
            with st.expander("🔍 Technical Details"):
                st.write(f"**Error Type:** {type(error).__name__}")
                st.write(f"**Context:** {context}")
                st.write(f"**Error Message:** {str(error)}")
                st.code(traceback.format_exc())

    @staticmethod
    def report_result(result: OperationResult, context: str,
                      success_message: Optional[str] = None) -> bool:
        """
        Show the outcome of a store operation.

        Failures are shown as errors next to the control that issued them;
        no-ops with a notable code (empty clipboard, nothing to undo) as info.

        Returns:
            True if the operation succeeded
        """
        if not result.ok:
            logger.warning(f"{context} failed ({result.code}): {result.message}")
            st.error(RESULT_MESSAGES.get(result.code, f"❌ {result.message}"))
            if result.message:
                st.caption(result.message)
            for problem in result.errors[:10]:
                st.caption(f"• {problem}")
            return False

        if not result.changed and result.code != ResultCode.OK:
            st.info(f"ℹ️ {result.message}")
        elif result.changed and success_message:
            st.success(success_message)
        return True

    @staticmethod
    def with_error_handling(
        func: Callable,
        context: str,
        error_type: str = ErrorType.SYSTEM,
        user_message: Optional[str] = None,
        show_details: bool = False,
        default_return: Any = None
    ) -> Any:
        """
        Run an operation and display any engine or file error it raises.

        Returns:
            Function result or default_return on error
        """
        try:
            return func()
        except (SchemaStudioError, OSError, ValueError) as e:
            ErrorHandler.handle_error(e, context, error_type, user_message, show_details)
            return default_return


# Convenience functions
def handle_error(error: Exception, context: str, error_type: str = ErrorType.SYSTEM) -> None:
    """Convenience function for error handling."""
    ErrorHandler.handle_error(error, context, error_type)


def report_result(result: OperationResult, context: str, success_message: Optional[str] = None) -> bool:
    """Convenience function for reporting store operation results."""
    return ErrorHandler.report_result(result, context, success_message)
