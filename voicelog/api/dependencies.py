"""Shared API dependencies."""

from __future__ import annotations

from functools import lru_cache

from fastapi import HTTPException, Request, status

from ..runtime import Runtime, build_runtime

__all__ = [
    "USER_ID_HEADER",
    "get_runtime",
    "get_user_id",
    "shutdown_runtime",
]

USER_ID_HEADER = "x-user-id"
MAX_USER_ID_LENGTH = 64


@lru_cache()
def _runtime_singleton() -> Runtime:
    return build_runtime()


def get_runtime() -> Runtime:
    """Return the process-wide runtime (repositories, pipeline, engines)."""

    return _runtime_singleton()


def shutdown_runtime() -> None:
    """Drain background jobs of the process-wide runtime, if one was built."""

    if _runtime_singleton.cache_info().currsize:
        _runtime_singleton().shutdown()
        _runtime_singleton.cache_clear()


def get_user_id(request: Request) -> str:
    """Identify the caller; session handling lives in front of this service."""

    user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error_code": "user_id_missing",
                "message": f"'{USER_ID_HEADER}' header with a user id is required",
                "details": {"header": USER_ID_HEADER},
            },
        )
    return user_id
