#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Custom exception classes and error handling utilities for Playlist Digest.

Provides a centralized error hierarchy and a helper that maps any exception
to the process exit code used by the command line entry point.
"""

from typing import Optional


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_QUOTA_EXCEEDED = 2
EXIT_PARTIAL_FAILURE = 3
EXIT_INTERRUPTED = 130


# --- Base Exception Classes ---

class AppBaseError(Exception):
    """Base class for all application-specific exceptions.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        exit_code: Process exit code to use when the error aborts a run
    """

    def __init__(self, message: str, error_code: Optional[str] = None,
                 exit_code: int = EXIT_FAILURE):
        """Initialize the exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            exit_code: Process exit code to use when this error is fatal
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.exit_code = exit_code
        super().__init__(message)


class TransientError(AppBaseError):
    """Base class for errors that might be temporary."""
    pass


class CriticalError(AppBaseError):
    """Base class for errors that indicate a serious problem."""
    pass


# --- API-Related Exceptions ---

class QuotaExceededError(AppBaseError):
    """Raised when an API quota has been exhausted."""

    def __init__(self, message: str = "API quota exceeded"):
        super().__init__(
            message=message,
            error_code="QUOTA_EXCEEDED",
            exit_code=EXIT_QUOTA_EXCEEDED
        )


class ResourceNotFoundError(AppBaseError):
    """Raised when a requested YouTube resource cannot be found."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            message=message,
            error_code="RESOURCE_NOT_FOUND"
        )


class RateLimitedError(TransientError):
    """Raised when requests are being rate limited."""

    def __init__(self, message: str = "API rate limit reached"):
        super().__init__(
            message=message,
            error_code="RATE_LIMITED"
        )


class APIConfigurationError(CriticalError):
    """Raised when an API key is missing or a client cannot be built."""

    def __init__(self, message: str = "API configuration error"):
        super().__init__(
            message=message,
            error_code="API_CONFIG_ERROR"
        )


class InvalidInputError(AppBaseError):
    """Raised when the user input is invalid."""

    def __init__(self, message: str = "Invalid input"):
        super().__init__(
            message=message,
            error_code="INVALID_INPUT"
        )


class TimeoutExceededError(TransientError):
    """Raised when an operation times out."""

    def __init__(self, message: str = "Operation timed out"):
        super().__init__(
            message=message,
            error_code="TIMEOUT"
        )


# --- Pipeline Exceptions ---

class ItemSourceError(CriticalError):
    """Raised when the playlist items cannot be enumerated."""

    def __init__(self, message: str = "Failed to fetch playlist items"):
        super().__init__(
            message=message,
            error_code="ITEM_SOURCE_ERROR"
        )


class ReferenceUploadError(CriticalError):
    """Raised when the reference documents cannot be prepared."""

    def __init__(self, message: str = "Failed to upload reference documents"):
        super().__init__(
            message=message,
            error_code="REFERENCE_UPLOAD_ERROR"
        )


class ProcessingError(AppBaseError):
    """Raised when summarizing or fact-checking a single video fails."""

    def __init__(self, message: str = "Failed to process video", stage: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="PROCESSING_ERROR"
        )
        self.stage = stage


class SinkWriteError(AppBaseError):
    """Raised when a result cannot be persisted."""

    def __init__(self, message: str = "Failed to write result"):
        super().__init__(
            message=message,
            error_code="SINK_WRITE_ERROR"
        )


# --- Error Handling Utilities ---

def handle_exception(exception: BaseException) -> int:
    """Map any exception to a process exit code.

    Args:
        exception: The exception to handle

    Returns:
        int: Exit code for the command line entry point
    """
    if isinstance(exception, AppBaseError):
        return exception.exit_code

    elif isinstance(exception, KeyboardInterrupt):
        return EXIT_INTERRUPTED

    else:
        # ValueError and unknown exceptions are generic failures
        return EXIT_FAILURE
