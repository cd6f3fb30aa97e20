"""
Exception types for Mindloom.

Unrecoverable failures abort the current operation before any value is
produced. Recoverable oddities are reported as warnings instead
(see mindloom.models.diagnostics).
"""

from typing import Optional


class MindloomError(Exception):
    """Base class for all exceptions raised by Mindloom."""

    def __init__(self, message: str, details: Optional[str] = None):
        """
        Initialize the error.

        Args:
            message: The error message
            details: Optional additional details about the error
        """
        super().__init__(message)
        self.details = details


class StructureError(MindloomError):
    """Raised when a raw outline contains no usable title at all."""

    pass


class CombineError(MindloomError):
    """Raised when mindmaps cannot be combined (e.g. missing category schema)."""

    pass


class ParseError(MindloomError):
    """Raised when outline text is structurally unreadable."""

    def __init__(self, message: str, line_number: Optional[int] = None, details: Optional[str] = None):
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message, details)
        self.line_number = line_number


class AgentError(MindloomError):
    """Raised when the language model service fails or returns garbage."""

    pass


class PersistenceError(MindloomError):
    """Raised when a stored mindmap cannot be found or read."""

    pass
