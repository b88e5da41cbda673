"""
Custom exception hierarchy for the FAQ Desk API.

HTTP-facing errors derive from BaseAppException and are rendered by the
handlers in faqdesk.core.error_handlers. Collaborator failures raised while a
conversation turn is processed derive from the plain exceptions further down
and are translated into user-facing messages by the bot services.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class BaseAppException(HTTPException):
    """Base exception for all application errors."""

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        headers: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code or self.__class__.__name__


# Request Exceptions


class InvalidActivityError(BaseAppException):
    """Raised when an inbound activity cannot be parsed."""

    def __init__(self, detail: str):
        super().__init__(
            detail,
            status.HTTP_400_BAD_REQUEST,
            error_code="INVALID_ACTIVITY",
        )


# Collaborator Exceptions


class KnowledgeBaseError(Exception):
    """Raised when the knowledge base service returns an unexpected error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class KnowledgeBaseNotReadyError(KnowledgeBaseError):
    """The knowledge base has never been published, or holds no entries yet."""


class KnowledgeBaseQuotaExceededError(KnowledgeBaseError):
    """The knowledge base storage quota is exhausted."""


class TranslationError(Exception):
    """Raised when the translation service fails or returns a malformed body."""


class TransportError(Exception):
    """Raised when the messaging connector rejects an outbound call."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RosterLookupError(Exception):
    """Raised when the expert team roster cannot be fetched."""


class UnsupportedFileTypeError(ValueError):
    """Raised for batch files that are neither CSV nor XLSX."""

    def __init__(self, extension: str):
        super().__init__(f"Unsupported batch file type: {extension!r}")
        self.extension = extension
