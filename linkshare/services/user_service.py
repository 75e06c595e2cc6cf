"""
User service — registration and login for the User aggregate.

Emails arrive already normalised (stripped, lower-cased) by the form
models, so lookups are plain equality.  Passwords never touch the
database in clear text: only Argon2 hashes are stored.
"""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from linkshare.models import User
from linkshare.schemas import LoginForm, RegisterForm
from linkshare.security import hash_password, needs_rehash, verify_password

logger = logging.getLogger(__name__)


class EmailAlreadyRegisteredError(Exception):
    """Raised when registering with an email that already has an account."""


class InvalidCredentialsError(Exception):
    """Raised when the email is unknown or the password does not match."""


def _user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def register_user(db: AsyncSession, data: RegisterForm) -> dict:
    """
    Create a new user and return its serialised dict.

    Raises EmailAlreadyRegisteredError when the email is taken, either by
    the up-front lookup or by the unique constraint when two
    registrations race.
    """
    if await get_user_by_email(db, data.email) is not None:
        raise EmailAlreadyRegisteredError(data.email)

    user = User(
        username=data.username,
        email=data.email,
        password_hash=hash_password(data.password),
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise EmailAlreadyRegisteredError(data.email) from None

    logger.info("Registered user id=%s", user.id)
    return _user_to_dict(user)


async def authenticate_user(db: AsyncSession, data: LoginForm) -> dict:
    """
    Return the serialised user for a matching email/password pair.

    Raises InvalidCredentialsError for an unknown email and for a wrong
    password alike.
    """
    user = await get_user_by_email(db, data.email)
    if not verify_password(data.password, user.password_hash if user else None):
        logger.info("Failed login attempt")
        raise InvalidCredentialsError()

    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(data.password)
        await db.flush()

    return _user_to_dict(user)
