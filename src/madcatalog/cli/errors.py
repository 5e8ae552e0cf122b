"""
Standardized error message helpers for CLI commands.

Provides:
- Error categories and CLI exit code mappings
- Mapping of operation error kinds onto categories
- Rich panel wrappers for error/warning/success display

Error Format:
    Title -> Problem -> Expected -> Got -> Hint

Examples:
    >>> format_error("Not Found", "Tag 0190... does not exist")
    'Error: Not Found: Tag 0190... does not exist'

    >>> format_error(
    ...     "Validation",
    ...     "Invalid source id",
    ...     expected="sm, nm or so followed by digits",
    ...     got="xx123"
    ... )
    'Error: Validation: Invalid source id
       Expected: sm, nm or so followed by digits
       Got: xx123'
"""

from __future__ import annotations

import dataclasses
import logging
from enum import Enum
from typing import Any, NoReturn, Optional

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.panel import Panel

from madcatalog.exceptions import (
    ActorRequiredError,
    InternalServiceError,
    InvalidPaginationError,
    MadCatalogError,
)

logger = logging.getLogger(__name__)

# Module-level console for CLI error display
console = Console()


# =============================================================================
# Error Categories
# =============================================================================


class ErrorCategory:
    """
    Standard error categories for CLI commands.

    Categories map to specific error types:
    - NOT_FOUND: Resource does not exist in database
    - VALIDATION: Input format or value validation failed
    - CONFLICT: Operation conflicts with existing state
    - DATABASE: Database operation failed
    """

    NOT_FOUND = "Not Found"
    VALIDATION = "Validation"
    CONFLICT = "Conflict"
    DATABASE = "Database"


# =============================================================================
# Exit Code Mappings
# =============================================================================

EXIT_SUCCESS = 0
EXIT_USER_ERROR = 1
EXIT_SYSTEM_ERROR = 2
EXIT_CANCELLED = 3

# Error kinds rejected for the shape of the input rather than current state
VALIDATION_KINDS = frozenset(
    {
        "NO_NAMES",
        "INVALID_PRIMARY_INDEX",
        "INVALID_SOURCE_ID",
        "INVALID_NAME",
        "SELF_LOOP",
        "EXPLICIT_IMPLICIT_COLLISION",
        "PRIMARY_NAME",
    }
)


def get_exit_code_for_category(category: str) -> int:
    """
    Map error category to appropriate exit code.

    Parameters
    ----------
    category : str
        Error category from ErrorCategory.

    Returns
    -------
    int
        Exit code appropriate for the error type.

    Examples
    --------
    >>> get_exit_code_for_category(ErrorCategory.NOT_FOUND)
    1
    >>> get_exit_code_for_category(ErrorCategory.DATABASE)
    2
    """
    category_to_exit_code = {
        ErrorCategory.NOT_FOUND: EXIT_USER_ERROR,
        ErrorCategory.VALIDATION: EXIT_USER_ERROR,
        ErrorCategory.CONFLICT: EXIT_USER_ERROR,
        ErrorCategory.DATABASE: EXIT_SYSTEM_ERROR,
    }
    return category_to_exit_code.get(category, EXIT_USER_ERROR)


def category_for_kind(kind: Enum) -> str:
    """
    Map an operation error kind onto an error category.

    Examples
    --------
    >>> category_for_kind(AttachErrorKind.TAG_NOT_FOUND)
    'Not Found'
    >>> category_for_kind(SubmitErrorKind.DUPLICATED_TAGGING)
    'Validation'
    >>> category_for_kind(AcceptErrorKind.ALREADY_CHECKED)
    'Conflict'
    """
    value = str(kind.value)
    if value.endswith("NOT_FOUND"):
        return ErrorCategory.NOT_FOUND
    if value.startswith("DUPLICATED") or value in VALIDATION_KINDS:
        return ErrorCategory.VALIDATION
    return ErrorCategory.CONFLICT


def _describe_value(value: Any) -> str:
    if isinstance(value, BaseModel):
        identifier = getattr(value, "id", None)
        return f"{type(value).__name__} {identifier}" if identifier else str(value)
    return str(value)


def describe_error(error: Any) -> str:
    """
    Render an operation error dataclass as one line.

    Every field but ``kind`` that is set is listed; records carried by the
    error are shown by type and id.
    """
    parts = [str(error.kind.value)]
    for item in dataclasses.fields(error):
        if item.name == "kind":
            continue
        value = getattr(error, item.name)
        if value is None:
            continue
        parts.append(f"{item.name}={_describe_value(value)}")
    return " ".join(parts)


# =============================================================================
# Error Formatting Functions
# =============================================================================


def format_error(
    category: str,
    message: str,
    expected: Optional[str] = None,
    got: Optional[str] = None,
    hint: Optional[str] = None,
) -> str:
    """
    Format error message in standardized 4-part format.

    Parameters
    ----------
    category : str
        Error category (e.g., "Not Found", "Validation", "Conflict", "Database").
        Use ErrorCategory constants for consistency.
    message : str
        Human-readable error description.
    expected : Optional[str]
        Description of expected format/value (optional).
    got : Optional[str]
        Actual value that was received (optional).
    hint : Optional[str]
        Actionable suggestion for resolving the error (optional).

    Returns
    -------
    str
        Formatted error message string.
    """
    lines = [f"Error: {category}: {message}"]

    if expected is not None:
        lines.append(f"   Expected: {expected}")

    if got is not None:
        lines.append(f"   Got: {got}")

    if hint is not None:
        lines.append(f"   Hint: {hint}")

    return "\n".join(lines)


# =============================================================================
# Rich Panel Display Functions
# =============================================================================


def display_error_panel(
    category: str,
    message: str,
    expected: Optional[str] = None,
    got: Optional[str] = None,
    hint: Optional[str] = None,
    title: str = "Error",
) -> None:
    """Display formatted error in a Rich panel."""
    formatted = format_error(category, message, expected, got, hint)
    console.print(
        Panel(
            f"[red]{formatted}[/red]",
            title=title,
            border_style="red",
        )
    )


def display_success_panel(
    message: str,
    title: str = "Success",
    extra_info: Optional[str] = None,
) -> None:
    """
    Display success message in a Rich panel.

    Parameters
    ----------
    message : str
        Success message to display.
    title : str
        Panel title (default: "Success").
    extra_info : Optional[str]
        Additional information to display below the message.
    """
    content = f"[green]{message}[/green]"
    if extra_info:
        content += f"\n\n{extra_info}"

    console.print(
        Panel(
            content,
            title=title,
            border_style="green",
        )
    )


def display_warning_panel(message: str, title: str = "Warning") -> None:
    """Display warning message in a Rich panel."""
    console.print(Panel(f"[yellow]{message}[/yellow]", title=title, border_style="yellow"))


# =============================================================================
# Exit helpers
# =============================================================================


def exit_with_operation_error(operation: str, error: Any) -> NoReturn:
    """
    Show a failed operation result and exit.

    Raises
    ------
    typer.Exit
        Always, with the exit code of the error's category.
    """
    category = category_for_kind(error.kind)
    logger.debug("%s returned %s", operation, describe_error(error))
    display_error_panel(
        category, f"{operation} failed: {describe_error(error)}", title=operation
    )
    raise typer.Exit(code=get_exit_code_for_category(category))


def exit_with_exception(exc: MadCatalogError) -> NoReturn:
    """
    Show an exception raised by the catalogue and exit.

    ``InternalServiceError`` is shown with its generic message only; the
    detail was logged where it was caught.

    Raises
    ------
    typer.Exit
        Always.
    """
    if isinstance(exc, InternalServiceError):
        display_error_panel(
            ErrorCategory.DATABASE,
            "The operation could not be completed",
            hint="See the log file for details.",
        )
        raise typer.Exit(code=get_exit_code_for_category(ErrorCategory.DATABASE))

    if isinstance(exc, ActorRequiredError):
        display_error_panel(
            ErrorCategory.VALIDATION,
            exc.message,
            hint="Pass --actor or set MADCATALOG_DEFAULT_ACTOR_ID.",
        )
    elif isinstance(exc, InvalidPaginationError):
        display_error_panel(
            ErrorCategory.VALIDATION, exc.message, got=exc.argument
        )
    else:
        display_error_panel(ErrorCategory.VALIDATION, exc.message)
    raise typer.Exit(code=EXIT_USER_ERROR)
