"""
Session and Role Guard Decorators.

Factories that produce decorators gating privileged callables behind a
valid staff session.  Every guarded call goes through
``SessionManager.get_current``, so it also slides the inactivity window
and surfaces expiry lazily.

Usage::

    from cityreport.guards import require_role, require_session

    session_guard = require_session(sessions)
    super_admin_only = require_role(sessions, AdminRole.SUPER_ADMIN)

    @session_guard
    def resolve_report(report_id: str) -> None:
        ...
"""

from __future__ import annotations

from functools import wraps
from typing import Callable, ParamSpec, TypeVar

from cityreport.errors import AuthError
from cityreport.models.enums import AdminRole
from cityreport.services.session_manager import SessionManager

P = ParamSpec("P")
R = TypeVar("R")


def require_session(
    sessions: SessionManager,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Return a decorator that requires a valid session.

    Raises:
        AuthError: From the wrapped call when no valid session exists.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            if sessions.get_current() is None:
                raise AuthError(
                    "Authentication required. Please sign in before "
                    "performing this action."
                )
            return func(*args, **kwargs)

        return wrapper

    return decorator


def require_role(
    sessions: SessionManager,
    role: AdminRole,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Return a decorator that requires a valid session with exactly *role*."""

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            session = sessions.get_current()
            if session is None:
                raise AuthError(
                    "Authentication required. Please sign in before "
                    "performing this action."
                )
            if session.user.role != role:
                raise AuthError("Not authorised.")
            return func(*args, **kwargs)

        return wrapper

    return decorator
