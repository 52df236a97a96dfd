"""Signup, login, logout and session routes."""

import logging
import sqlite3

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from tastecrm.api.auth import hash_password, login_session, require_user, verify_password
from tastecrm.db import models

logger = logging.getLogger("tastecrm.api.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])


class SignupIn(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=8)


class LoginIn(BaseModel):
    email: str
    password: str


@router.post("/signup", status_code=201)
def signup(data: SignupIn, request: Request):
    try:
        user = models.create_user(data.name, data.email, hash_password(data.password))
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail="An account with this email already exists")
    login_session(request, user)
    logger.info("User signed up", extra={"user_id": user["id"]})
    return user


@router.post("/login")
def login(data: LoginIn, request: Request):
    user = models.get_user_by_email(data.email, include_hash=True)
    if not user or not verify_password(data.password, user.pop("passwordHash", None)):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    login_session(request, user)
    return user


@router.post("/logout")
def logout(request: Request):
    request.session.clear()
    return {"ok": True}


@router.get("/session")
def session(request: Request):
    return require_user(request)
