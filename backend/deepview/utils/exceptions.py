"""
HTTP Exception helpers to reduce code duplication in routes.

Usage:
    from deepview.utils.exceptions import raise_bad_request, raise_not_found

    raise_bad_request("No user message found")
    raise_not_found("Conversation", conversation_id)
"""

from typing import NoReturn

from fastapi import HTTPException, status


def raise_bad_request(detail: str) -> NoReturn:
    """Raise HTTP 400 Bad Request."""
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )


def raise_not_found(resource: str, id: int | str | None = None) -> NoReturn:
    """Raise HTTP 404 Not Found."""
    if id is not None:
        detail = f"{resource} with id {id} not found"
    else:
        detail = f"{resource} not found"
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail,
    )


def raise_internal_error(detail: str = "Internal server error") -> NoReturn:
    """Raise HTTP 500 Internal Server Error."""
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )
