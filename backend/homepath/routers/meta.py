# backend/homepath/routers/meta.py
from __future__ import annotations

from fastapi import APIRouter

from ..config import settings

router = APIRouter(prefix="/meta", tags=["meta"])


@router.get("/health", response_model=dict)
def health():
    return {"ok": True, "version": settings.app_version, "env": settings.app_env}
