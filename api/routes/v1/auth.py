"""
api/routes/v1/auth.py -- Login, second factor, session check and logout.

Routes:
  POST /api/v1/auth/login    -- primary credentials; returns a 2FA transaction id
  POST /api/v1/auth/2fa      -- transaction id + emailed code; returns a bearer token
  GET  /api/v1/auth/session  -- is this bearer token still bound to a live session?
  POST /api/v1/auth/logout   -- invalidates the session behind the bearer token

Security:
  POST /login and POST /2fa are rate-limited per IP (Settings.login_rate_limit).
  AuthService.login() runs argon2 for unknown logins too -- never inline a
  lookup + verify here, that re-introduces the timing leak.
  Wrong login and wrong password produce the same body.
  Cache-Control: no-store on every response that carries a transaction id or token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import LoginRequest, LoginResponse, LogoutResponse, SessionResponse, TwoFactorRequest, TwoFactorResponse
from auth.dependencies import get_auth_context
from auth.models import AuthContext
from auth.service import AuthService

# Auth policy:
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/2fa:      public -- the transaction id is the credential
# - GET  /api/v1/auth/session:  requires auth (get_auth_context)
# - POST /api/v1/auth/logout:   requires auth (get_auth_context)
router = APIRouter()


def _no_store(content: dict) -> JSONResponse:
    resp = JSONResponse(status_code=200, content=content)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Check login/password for the given user type and start the second factor.

    On success the emailed code's transaction id is returned; no session or
    token exists until POST /auth/2fa confirms the code.
    """
    service: AuthService = request.app.state.auth_service
    result = service.login(body.login, body.password, body.user_type, body.remember_me)
    return _no_store(
        LoginResponse(
            valid=result.valid,
            transaction_id=result.transaction_id,
            remember_me=result.remember_me,
        ).model_dump()
    )


@limiter.limit(login_rate_limit)
@router.post("/auth/2fa", response_model=TwoFactorResponse)
def two_factor(request: Request, body: TwoFactorRequest) -> JSONResponse:
    """Exchange a transaction id and its code for a bearer token.

    A wrong code, an unknown transaction and an expired transaction all give
    {valid: false, token: null}.
    """
    service: AuthService = request.app.state.auth_service
    token = service.complete_two_factor(body.transaction_id, body.code)
    return _no_store(TwoFactorResponse(valid=token is not None, token=token).model_dump())


@router.get("/auth/session", response_model=SessionResponse)
def check_session(ctx: AuthContext = Depends(get_auth_context)) -> SessionResponse:
    """Return 200 while the token's session is alive; the guard returns 401 otherwise."""
    return SessionResponse(valid=True, user_type=ctx.role)


@router.post("/auth/logout", response_model=LogoutResponse)
def logout(request: Request, ctx: AuthContext = Depends(get_auth_context)) -> LogoutResponse:
    """Invalidate the session. The token keeps a valid signature but is rejected from now on."""
    service: AuthService = request.app.state.auth_service
    service.logout(ctx)
    return LogoutResponse(success=True)
