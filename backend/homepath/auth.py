# backend/homepath/auth.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .models import AppUser


@dataclass(frozen=True)
class Principal:
    """Already-resolved caller identity handed to every engine operation."""

    user_id: int
    email: str


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def issue_token(user_id: int, *, now: Optional[datetime] = None) -> str:
    issued = now or datetime.utcnow()
    claims = {
        "sub": str(int(user_id)),
        "iat": issued,
        "exp": issued + timedelta(minutes=int(settings.jwt_exp_minutes)),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _bearer_principal(db: Session, token: str) -> Principal:
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise _unauthorized("token expired")
    except jwt.InvalidTokenError:
        raise _unauthorized("invalid token")

    sub = str(claims.get("sub") or "")
    user = db.get(AppUser, int(sub)) if sub.isdigit() else None
    if user is None:
        raise _unauthorized("token subject is not a known user")
    return Principal(user_id=int(user.id), email=user.email)


def _dev_principal(db: Session, request: Request) -> Principal:
    header = settings.dev_header_user_email
    email = (request.headers.get(header) or "").strip().lower()
    if not email:
        raise _unauthorized(f"missing bearer token or {header} header")

    user = db.scalar(select(AppUser).where(AppUser.email == email))
    if user is None:
        if not settings.dev_auto_provision:
            raise _unauthorized("unknown user")
        user = AppUser(email=email, display_name=email.split("@")[0], created_at=datetime.utcnow())
        db.add(user)
        db.commit()
        db.refresh(user)
    return Principal(user_id=int(user.id), email=user.email)


def get_principal(
    request: Request,
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    Bearer token first (sub = user id); in dev mode the X-User-Email header
    is accepted when no token is sent.
    """
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return _bearer_principal(db, token.strip())

    if settings.auth_mode == "dev":
        return _dev_principal(db, request)

    raise _unauthorized("not authenticated")
