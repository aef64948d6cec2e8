"""Shared router dependencies."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import Header, HTTPException, Request, status

from butler.container import Services
from butler.errors import ApprovalStateError, NotFoundError, ValidationError


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services are not initialised",
        )
    return services


def require_staff_id(x_staff_id: str | None = Header(default=None)) -> str:
    """Staff identity for decisions; authentication happens upstream."""

    if not x_staff_id:
        raise HTTPException(status_code=400, detail="X-Staff-Id header is required")
    return x_staff_id


@contextmanager
def service_errors() -> Iterator[None]:
    """Translate domain errors into HTTP responses."""

    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (ApprovalStateError, ValidationError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
