"""
Custom exceptions for the madcatalog application.

Expected failures of catalogue operations are returned as result values
(see ``madcatalog.models.results``). The exceptions defined here cover the
conditions that are not part of any operation contract: a missing actor,
malformed pagination arguments and unexpected storage failures.
"""

from __future__ import annotations


class MadCatalogError(Exception):
    """Base exception for all madcatalog errors."""

    def __init__(self, message: str) -> None:
        """
        Initialize MadCatalogError.

        Parameters
        ----------
        message : str
            Human-readable error message.
        """
        self.message = message
        super().__init__(message)


class ActorRequiredError(MadCatalogError):
    """
    Exception raised when a mutation is attempted without an actor id.

    Every mutation appends an attributable event record, so an empty actor
    id is rejected before any transaction is opened.

    Examples
    --------
    >>> try:
    ...     await catalog.add_tag_to_video("", video_id=v, tag_id=t)
    ... except ActorRequiredError as e:
    ...     print(e.operation)
    add_tag_to_video
    """

    def __init__(self, operation: str) -> None:
        """
        Initialize ActorRequiredError.

        Parameters
        ----------
        operation : str
            Name of the operation that was refused.
        """
        self.operation = operation
        super().__init__(f"An actor id is required for '{operation}'")


class InvalidPaginationError(MadCatalogError):
    """
    Exception raised for invalid connection arguments.

    Raised when ``first`` and ``last`` are combined, when a count is
    negative, or when a cursor cannot be decoded.
    """

    def __init__(self, message: str, argument: str | None = None) -> None:
        """
        Initialize InvalidPaginationError.

        Parameters
        ----------
        message : str
            Human-readable error message.
        argument : str | None, optional
            Name of the offending argument (default: None).
        """
        self.argument = argument
        super().__init__(message)


class InternalServiceError(MadCatalogError):
    """
    Opaque wrapper for unexpected storage failures.

    The original exception is logged with full context where it is caught
    and kept on ``original_error``; boundaries must only ever show the
    generic message.

    Attributes
    ----------
    message : str
        Generic, non-revealing error message.
    original_error : Exception | None
        The exception that caused this error.
    """

    def __init__(
        self,
        message: str = "Internal server error",
        original_error: Exception | None = None,
    ) -> None:
        """
        Initialize InternalServiceError.

        Parameters
        ----------
        message : str, optional
            Generic error message (default: "Internal server error").
        original_error : Exception | None, optional
            The exception that caused this error (default: None).
        """
        self.original_error = original_error
        super().__init__(message)
