"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

get_auth_context() runs AuthGuard.authenticate() on the request's
Authorization header and yields the AuthContext (session id + role).
get_principal() additionally resolves the full Principal -- one extra store
round trip, so only routes that need role-specific fields should use it.
require_roles(*roles) builds a dependency that rejects other roles.

Errors are not converted here: Unauthenticated, Unauthorized and
InfrastructureFailure propagate to the exception handlers in api/main.py.

Layer rule: no imports from api/ or users/.
  auth/dependencies.py may import from fastapi (for Depends/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, Request

from auth.guard import AuthGuard
from auth.models import AuthContext, Principal, Role
from auth.policies import require_role


def get_auth_guard(request: Request) -> AuthGuard:
    return request.app.state.auth_guard


def get_auth_context(request: Request) -> AuthContext:
    """Require a valid bearer token bound to a live session.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(ctx: AuthContext = Depends(get_auth_context)): ...
    """
    return get_auth_guard(request).authenticate(request.headers.get("Authorization"))


def get_principal(request: Request, ctx: AuthContext = Depends(get_auth_context)) -> Principal:
    """Require authentication and load the full principal for the session."""
    return get_auth_guard(request).resolve_principal(ctx)


def require_roles(*roles: Role) -> Callable[..., AuthContext]:
    """Return a dependency that admits only the given roles.

    Use as a FastAPI dependency:
        @router.get("/admin-only")
        def route(ctx: AuthContext = Depends(require_roles(Role.ADMIN))): ...
    """

    def dependency(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        require_role(ctx, *roles)
        return ctx

    return dependency


def require_principal(*roles: Role) -> Callable[..., Principal]:
    """Like require_roles(), then resolve the principal.

    The role check runs on the token's role first, so a caller with the
    wrong role never costs a user-store query.
    """

    def dependency(request: Request, ctx: AuthContext = Depends(require_roles(*roles))) -> Principal:
        return get_principal(request, ctx)

    return dependency
