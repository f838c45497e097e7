"""
Uniform result envelopes returned by every service operation.

Success: ``{"success": True, **data}``
Failure: ``{"success": False, "error": message, "code": ErrorCode}``
"""

from typing import Any, Dict


class ErrorCode:
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"
    STORE = "store"
    PARTIAL = "partial"


def ok(**data: Any) -> Dict[str, Any]:
    return {"success": True, **data}


def fail(error: str, code: str = ErrorCode.VALIDATION, **data: Any) -> Dict[str, Any]:
    return {"success": False, "error": error, "code": code, **data}


def partial(error: str, **data: Any) -> Dict[str, Any]:
    """Primary transition committed but a follow-up side effect did not."""
    return {"success": False, "partial": True, "error": error, "code": ErrorCode.PARTIAL, **data}
