"""Turn service result envelopes into HTTP responses."""

from typing import Any, Dict

from fastapi import HTTPException, status

from peertutor.services.results import ErrorCode

STATUS_BY_CODE = {
    ErrorCode.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.STORE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def unwrap(result: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return ``result`` for success and partial failures, raise otherwise.

    A partial failure means the main change was saved, so the client gets a
    200 with ``success: false, partial: true`` and the follow-up message.
    """
    if result.get("success") or result.get("partial"):
        return result

    code = result.get("code", ErrorCode.VALIDATION)
    detail = {k: v for k, v in result.items() if k != "success"}
    raise HTTPException(
        status_code=STATUS_BY_CODE.get(code, status.HTTP_400_BAD_REQUEST),
        detail=detail,
    )
