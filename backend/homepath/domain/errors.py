# backend/homepath/domain/errors.py
from __future__ import annotations


class HomepathError(Exception):
    """
    Base for every failure the engine reports to callers.

    Each subclass carries the HTTP status the transport maps it to; the
    engine itself never imports FastAPI.
    """

    status_code: int = 500
    public_detail: str | None = None

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail)
        self.detail = detail

    def response_detail(self) -> str:
        return self.public_detail or self.detail


class NotFound(HomepathError):
    # Also raised for records outside the caller's visibility scope, so the
    # caller cannot tell it exists.
    status_code = 404


class Forbidden(HomepathError):
    status_code = 403


class InvalidInput(HomepathError):
    status_code = 400


class DependencyFailure(HomepathError):
    status_code = 500
    public_detail = "internal error"
