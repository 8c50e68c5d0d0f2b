"""Standardized API response helpers.

List endpoints return a consistent envelope:
    {"items": [...], "total": <int>}

Single-item endpoints return the object directly (no wrapper). Workflow
failures are rendered by ``error_response`` as:
    {"error": {"kind": ..., "message": ..., "details": {...}}}
"""

from typing import Any, Optional


def list_response(
    items: list,
    total: Optional[int] = None,
) -> dict:
    """Wrap a list in the standard envelope.

    Args:
        items: The list of serialized items.
        total: Total count (defaults to len(items) when the full list is returned).

    Returns:
        {"items": items, "total": total}
    """
    return {
        "items": items,
        "total": total if total is not None else len(items),
    }


def error_response(kind: str, message: str, details: Optional[dict[str, Any]] = None) -> dict:
    """Wrap a structured workflow failure."""
    return {
        "error": {
            "kind": kind,
            "message": message,
            "details": details or {},
        }
    }
