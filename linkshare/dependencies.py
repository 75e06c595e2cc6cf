from fastapi import Request
from pydantic import ValidationError

from linkshare.schemas import SessionUser

SESSION_USER_KEY = "user"


class LoginRequired(Exception):
    """
    Raised by ``current_user`` when the request carries no logged-in
    session.  ``main.py`` maps it to a redirect to the login page.
    """


def start_session(request: Request, user: dict) -> None:
    """
    Bind the browser session to *user*.

    Any previous session content is dropped first so identities never
    leak across logins.  Only the id and username are stored; the
    password hash never leaves the database.
    """
    request.session.clear()
    request.session[SESSION_USER_KEY] = {"id": user["id"], "username": user["username"]}


def end_session(request: Request) -> None:
    request.session.clear()


def optional_user(request: Request) -> SessionUser | None:
    """
    FastAPI dependency returning the logged-in user, or None.

    A tampered or outdated session payload is treated as logged out.
    """
    raw = request.session.get(SESSION_USER_KEY)
    if not raw:
        return None
    try:
        return SessionUser.model_validate(raw)
    except ValidationError:
        request.session.pop(SESSION_USER_KEY, None)
        return None


def current_user(request: Request) -> SessionUser:
    """
    FastAPI dependency for routes that need a login.

    Usage in a router::

        @router.get("/dashboard")
        async def dashboard(user: SessionUser = Depends(current_user)):
            ...
    """
    user = optional_user(request)
    if user is None:
        raise LoginRequired()
    return user
