"""
Typed API failures.

Each error is an ``HTTPException`` so FastAPI renders it as
``{"detail": ...}`` with the matching status code.
"""

from __future__ import annotations

from fastapi import HTTPException


class ConferenceApiError(HTTPException):
    http_status = 500

    def __init__(self, detail: str):
        super().__init__(status_code=self.http_status, detail=detail)


class BadRequest(ConferenceApiError):
    http_status = 400


class Unauthenticated(ConferenceApiError):
    http_status = 401

    def __init__(self, detail: str = "Authorization required"):
        super().__init__(detail)


class Forbidden(ConferenceApiError):
    http_status = 403


class NotFound(ConferenceApiError):
    http_status = 404


class Conflict(ConferenceApiError):
    http_status = 409
