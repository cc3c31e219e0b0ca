"""Caller identity supplied by the upstream identity provider."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Header, HTTPException, Request, status

if TYPE_CHECKING:
    from turista.containers import AppContainer


async def current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Return the trusted user id from the X-User-Id header."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return x_user_id.strip()


def get_container(request: Request) -> AppContainer:
    """Return the dependency container attached to the app."""
    return request.app.state.container
