"""
FastAPI dependencies.

Services come from the ServiceContainer stored on ``app.state`` during
startup. Caller identity is the ``X-User-Id`` header set by the upstream
authentication proxy.
"""

from typing import Optional

from fastapi import Header, HTTPException, Request, status

from campus2career.container import ServiceContainer
from campus2career.notifications import NotificationDispatcher
from campus2career.reconciler import ApplicationReconciler


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is starting up.")
    return container


def get_reconciler(request: Request) -> ApplicationReconciler:
    return get_container(request).reconciler


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return get_container(request).dispatcher


def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """Return the authenticated caller's id; 401 when the header is missing."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required.")
    return x_user_id.strip()
