"""Browser-facing login endpoints.

This router is the only place where login outcomes become HTTP: success
redirects to ``/``, failure redirects to ``/?error=<code>&message=<detail>``.
Static paths are declared before ``/{provider}`` so they are never treated
as provider names.
"""

from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from loguru import logger
from pydantic import BaseModel

from src.federation.api.http.deps import (
    get_login_flow,
    get_optional_user,
    get_provider_registry,
    get_session_id,
    get_session_manager,
)
from src.federation.core.errors import AuthError, ServerError
from src.federation.core.models import AuthSession
from src.federation.core.services import (
    LoginFailed,
    LoginFlow,
    ProviderRegistry,
    SessionManager,
)
from src.federation.entities.user import User

router_auth = APIRouter(tags=["auth"])


class DemoLoginRequest(BaseModel):
    username: str | None = None
    password: str | None = None


def failure_redirect(error: AuthError) -> RedirectResponse:
    query = urlencode({"error": error.code, "message": error.message})
    return RedirectResponse(url=f"/?{query}", status_code=status.HTTP_302_FOUND)


def _set_session_cookie(
    response: Response, sessions: SessionManager, session: AuthSession
) -> None:
    response.set_cookie(value=session.id, **sessions.cookie_params())


def _clear_session_cookie(response: Response, sessions: SessionManager) -> None:
    params = sessions.cookie_params()
    response.delete_cookie(
        params["key"],
        path=params["path"],
        secure=params["secure"],
        httponly=params["httponly"],
        samesite=params["samesite"],
    )


@router_auth.get("/providers")
async def list_providers(
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> dict[str, list[str]]:
    """Providers with complete credentials, in display order."""
    return {"providers": registry.names()}


@router_auth.get("/me")
async def get_me(user: User | None = Depends(get_optional_user)) -> Any:
    if user is None:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"message": "Not authenticated"},
        )
    return user.public_dict()


@router_auth.get("/logout")
async def logout(
    session_id: str | None = Depends(get_session_id),
    sessions: SessionManager = Depends(get_session_manager),
) -> RedirectResponse:
    await sessions.logout(session_id)
    response = RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)
    _clear_session_cookie(response, sessions)
    logger.info("Session logged out")
    return response


@router_auth.get("/login")
async def legacy_login() -> RedirectResponse:
    return RedirectResponse(url="/?showLogin=true", status_code=status.HTTP_302_FOUND)


@router_auth.post("/demo-login")
async def demo_login(
    body: DemoLoginRequest,
    session_id: str | None = Depends(get_session_id),
    flow: LoginFlow = Depends(get_login_flow),
    sessions: SessionManager = Depends(get_session_manager),
) -> JSONResponse:
    if not body.username or not body.password:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Username and password are required"},
        )

    outcome = await flow.login_local(body.username, body.password, session_id)
    if outcome is None:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"message": "Invalid credentials"},
        )

    response = JSONResponse(content={"success": True, "user": outcome.user.public_dict()})
    _set_session_cookie(response, sessions, outcome.session)
    return response


@router_auth.get("/{provider}")
async def start_login(
    provider: str,
    session_id: str | None = Depends(get_session_id),
    flow: LoginFlow = Depends(get_login_flow),
    sessions: SessionManager = Depends(get_session_manager),
) -> RedirectResponse:
    try:
        started = await flow.start(provider, session_id)
    except AuthError as e:
        logger.bind(provider=provider, error_code=e.code).warning("Login could not start")
        return failure_redirect(e)

    response = RedirectResponse(url=started.redirect_url, status_code=status.HTTP_302_FOUND)
    _set_session_cookie(response, sessions, started.session)
    return response


@router_auth.api_route("/{provider}/callback", methods=["GET", "POST"])
async def login_callback(
    provider: str,
    request: Request,
    session_id: str | None = Depends(get_session_id),
    flow: LoginFlow = Depends(get_login_flow),
    sessions: SessionManager = Depends(get_session_manager),
) -> RedirectResponse:
    """Provider redirect target.

    Apple posts the callback as a form (``response_mode=form_post``) and
    reports cancellations as a plain GET; both end up here.
    """
    params: dict[str, Any] = dict(request.query_params)
    if request.method == "POST":
        form = await request.form()
        params.update({key: value for key, value in form.items() if isinstance(value, str)})

    try:
        outcome = await flow.complete(provider, session_id, params)
    except Exception:
        logger.bind(provider=provider).exception("Unexpected failure in login callback")
        return failure_redirect(ServerError("Login could not be completed"))

    if isinstance(outcome, LoginFailed):
        return failure_redirect(outcome.error)

    response = RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)
    _set_session_cookie(response, sessions, outcome.session)
    return response
