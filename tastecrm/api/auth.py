"""
Session auth helpers.

Password hashing is delegated to pwdlib (argon2). The signed session cookie
(starlette SessionMiddleware) carries only the user id; require_user() is
the dependency every protected router declares.
"""

from fastapi import HTTPException, Request
from pwdlib import PasswordHash
from pwdlib.exceptions import UnknownHashError

from tastecrm.db import models

SESSION_USER_KEY = "user_id"

password_hash = PasswordHash.recommended()


def hash_password(password: str) -> str:
    return password_hash.hash(password)


def verify_password(password: str, stored: str) -> bool:
    if not stored:
        return False
    try:
        return password_hash.verify(password, stored)
    except UnknownHashError:
        return False


def login_session(request: Request, user: dict):
    request.session.clear()
    request.session[SESSION_USER_KEY] = user["id"]


def require_user(request: Request) -> dict:
    """FastAPI dependency: the signed-in user, or 401."""
    user_id = request.session.get(SESSION_USER_KEY)
    user = models.get_user(user_id) if user_id else None
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user
