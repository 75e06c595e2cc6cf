"""
Registration, login and logout tests — exercised through the HTML forms
exactly as a browser submits them (form-encoded POSTs, 303 redirects,
session cookie kept by the client).
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from linkshare.models import User


async def _register(client: AsyncClient, username: str, email: str, password: str = "hunter22"):
    return await client.post(
        "/register", data={"username": username, "email": email, "password": password}
    )


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register_form_renders(async_client: AsyncClient):
    resp = await async_client.get("/register")
    assert resp.status_code == 200
    assert 'action="/register"' in resp.text


@pytest.mark.asyncio
async def test_register_redirects_to_login(async_client: AsyncClient, db_session: AsyncSession):
    resp = await _register(async_client, "alice", "alice@example.com", "s3cret!")
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login"

    user = (await db_session.execute(select(User))).scalar_one()
    assert user.username == "alice"
    assert user.email == "alice@example.com"
    # Stored as an Argon2 hash, never as the submitted text.
    assert user.password_hash != "s3cret!"
    assert user.password_hash.startswith("$argon2")


@pytest.mark.asyncio
async def test_register_duplicate_email_shows_error(async_client: AsyncClient, db_session: AsyncSession):
    """Registering twice with the same email never creates a second user."""
    first = await _register(async_client, "alice", "alice@example.com")
    assert first.status_code == 303

    second = await _register(async_client, "alice2", "alice@example.com")
    assert second.status_code == 200
    assert "Email already registered" in second.text

    # Same address with different case / padding is the same account.
    third = await _register(async_client, "alice3", "  Alice@Example.COM ")
    assert "Email already registered" in third.text

    count = (await db_session.execute(select(func.count()).select_from(User))).scalar_one()
    assert count == 1


@pytest.mark.asyncio
async def test_register_missing_fields_rerenders_form(async_client: AsyncClient, db_session: AsyncSession):
    resp = await async_client.post("/register", data={"username": "bob", "email": "bob@example.com"})
    assert resp.status_code == 400
    assert "password" in resp.text

    count = (await db_session.execute(select(func.count()).select_from(User))).scalar_one()
    assert count == 0


@pytest.mark.asyncio
async def test_register_rejects_non_email(async_client: AsyncClient):
    resp = await _register(async_client, "bob", "not-an-email")
    assert resp.status_code == 400
    assert "email" in resp.text


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_login_success_opens_dashboard(async_client: AsyncClient):
    await _register(async_client, "carol", "carol@example.com", "pw-carol")

    resp = await async_client.post("/login", data={"email": "carol@example.com", "password": "pw-carol"})
    assert resp.status_code == 303
    assert resp.headers["location"] == "/dashboard"

    dash = await async_client.get("/dashboard")
    assert dash.status_code == 200
    assert "carol" in dash.text


@pytest.mark.asyncio
async def test_login_email_is_case_insensitive(async_client: AsyncClient):
    await _register(async_client, "carol", "carol@example.com", "pw-carol")
    resp = await async_client.post("/login", data={"email": "CAROL@example.com", "password": "pw-carol"})
    assert resp.status_code == 303


@pytest.mark.asyncio
async def test_login_wrong_password_fails(async_client: AsyncClient):
    await _register(async_client, "dave", "dave@example.com", "right-password")

    resp = await async_client.post("/login", data={"email": "dave@example.com", "password": "wrong-password"})
    assert resp.status_code == 200
    assert "Invalid email or password" in resp.text

    dash = await async_client.get("/dashboard")
    assert dash.status_code == 303
    assert dash.headers["location"] == "/login"


@pytest.mark.asyncio
async def test_login_unknown_email_fails_the_same_way(async_client: AsyncClient):
    resp = await async_client.post("/login", data={"email": "ghost@example.com", "password": "whatever"})
    assert resp.status_code == 200
    assert "Invalid email or password" in resp.text


@pytest.mark.asyncio
async def test_login_password_is_not_compared_to_hash_text(async_client: AsyncClient, db_session: AsyncSession):
    """Submitting the stored hash itself as the password must not log in."""
    await _register(async_client, "erin", "erin@example.com", "pw-erin")
    stored = (await db_session.execute(select(User.password_hash))).scalar_one()

    resp = await async_client.post("/login", data={"email": "erin@example.com", "password": stored})
    assert "Invalid email or password" in resp.text


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_protected_routes_redirect_to_login(async_client: AsyncClient):
    for method, path in [
        ("GET", "/dashboard"),
        ("GET", "/like-post/1"),
        ("GET", "/dislike-post/1"),
        ("POST", "/post-link"),
        ("POST", "/post-description"),
        ("POST", "/comment/1"),
    ]:
        resp = await async_client.request(method, path)
        assert resp.status_code == 303, path
        assert resp.headers["location"] == "/login"


@pytest.mark.asyncio
async def test_logout_clears_session(login):
    client = await login("frank")
    assert (await client.get("/dashboard")).status_code == 200

    resp = await client.get("/logout")
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login"

    dash = await client.get("/dashboard")
    assert dash.status_code == 303
    assert dash.headers["location"] == "/login"


@pytest.mark.asyncio
async def test_logout_without_session_still_redirects(async_client: AsyncClient):
    resp = await async_client.get("/logout")
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login"


@pytest.mark.asyncio
async def test_tampered_session_cookie_is_ignored(async_client: AsyncClient):
    async_client.cookies.set("linkshare_session", "not-a-signed-value")
    resp = await async_client.get("/dashboard")
    assert resp.status_code == 303
