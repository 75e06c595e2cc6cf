"""Password hashing and verification (Argon2id, salted per hash)."""

from __future__ import annotations

from argon2 import PasswordHasher, exceptions as argon_exc

_ph = PasswordHasher()

# Verified against when the account does not exist so that a miss costs the
# same as a wrong password.
_DUMMY_HASH = _ph.hash("linkshare-dummy-password")


def hash_password(password: str) -> str:
    return _ph.hash(password)


def verify_password(password: str, stored_hash: str | None) -> bool:
    """Return True when *password* matches *stored_hash*.

    A missing hash still runs a full verification against a dummy hash and
    then reports failure.
    """
    if not stored_hash:
        try:
            _ph.verify(_DUMMY_HASH, password)
        except argon_exc.VerificationError:
            pass
        return False
    try:
        return _ph.verify(stored_hash, password)
    except (argon_exc.VerifyMismatchError, argon_exc.VerificationError, argon_exc.InvalidHashError):
        return False


def needs_rehash(stored_hash: str) -> bool:
    """True when *stored_hash* was made with outdated Argon2 parameters."""
    return _ph.check_needs_rehash(stored_hash)
