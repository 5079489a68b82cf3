"""
Utility functions for MCP client operations.
"""

from typing import Any

from pydantic import BaseModel


def leaf_exception(error: BaseException) -> BaseException:
    """
    Return the first non-group exception inside an exception group.

    Transports run inside anyio task groups, so a spawn or connect failure
    usually arrives wrapped in one or more ``BaseExceptionGroup`` layers.
    """
    while isinstance(error, BaseExceptionGroup) and error.exceptions:
        error = error.exceptions[0]
    return error


def is_closed_connection_error(error: BaseException) -> bool:
    """
    Check if an exception indicates a closed connection.

    Args:
        error: The exception to check

    Returns:
        True if the error indicates a closed connection, False otherwise
    """
    error = leaf_exception(error)
    closed_indicators = ["closed", "closedresourceerror", "brokenresourceerror", "endofstream"]

    error_type = type(error).__name__.lower()
    if any(indicator in error_type for indicator in closed_indicators):
        return True

    error_str = str(error).lower()
    if any(indicator in error_str for indicator in closed_indicators):
        return True

    # MCPError and friends keep the original type in details
    details = getattr(error, "details", None)
    if isinstance(details, dict):
        details_error_type = str(details.get("error_type", "")).lower()
        if any(indicator in details_error_type for indicator in closed_indicators):
            return True

    if error.__cause__ is not None:
        cause_type = type(error.__cause__).__name__.lower()
        if any(indicator in cause_type for indicator in closed_indicators):
            return True

    return False


def to_jsonable(value: Any) -> Any:
    """Convert MCP SDK models (and containers of them) to plain JSON data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value
