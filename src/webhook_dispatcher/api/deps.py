"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from webhook_dispatcher.services.resthook import Resthook


def get_resthook(request: Request) -> Resthook:
    return request.app.state.resthook


ResthookDep = Annotated[Resthook, Depends(get_resthook)]
