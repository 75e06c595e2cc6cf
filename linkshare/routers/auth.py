import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from linkshare.database import get_db
from linkshare.dependencies import end_session, start_session
from linkshare.schemas import LoginForm, RegisterForm, describe_validation_error
from linkshare.services import user_service
from linkshare.services.user_service import EmailAlreadyRegisteredError, InvalidCredentialsError
from linkshare.templating import render

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

LOGIN_TEMPLATE = "login_register.html"


def _auth_page(request: Request, mode: str, error: str | None = None, status_code: int = 200):
    return render(request, LOGIN_TEMPLATE, {"mode": mode, "error": error}, status_code=status_code)


@router.get("/register", response_class=HTMLResponse)
async def register_form(request: Request):
    return _auth_page(request, "register")


@router.post("/register", response_class=HTMLResponse)
async def register(
    request: Request,
    username: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    try:
        data = RegisterForm(username=username, email=email, password=password)
    except ValidationError as exc:
        return _auth_page(request, "register", describe_validation_error(exc), status_code=400)

    try:
        await user_service.register_user(db, data)
        await db.commit()
    except EmailAlreadyRegisteredError:
        return _auth_page(request, "register", "Email already registered")
    except SQLAlchemyError:
        logger.exception("Registration failed")
        await db.rollback()
        return _auth_page(request, "register", "Internal server error", status_code=500)

    return RedirectResponse("/login", status_code=303)


@router.get("/login", response_class=HTMLResponse)
async def login_form(request: Request):
    return _auth_page(request, "login")


@router.post("/login", response_class=HTMLResponse)
async def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    try:
        data = LoginForm(email=email, password=password)
    except ValidationError as exc:
        return _auth_page(request, "login", describe_validation_error(exc), status_code=400)

    try:
        user = await user_service.authenticate_user(db, data)
        await db.commit()
    except InvalidCredentialsError:
        return _auth_page(request, "login", "Invalid email or password")
    except SQLAlchemyError:
        logger.exception("Login failed")
        await db.rollback()
        return _auth_page(request, "login", "Internal server error", status_code=500)

    start_session(request, user)
    return RedirectResponse("/dashboard", status_code=303)


@router.get("/logout")
async def logout(request: Request):
    try:
        end_session(request)
    except Exception:
        logger.exception("Failed to clear session")
    return RedirectResponse("/login", status_code=303)
