"""Error kinds shared by the routers and the submission flow.

Only ``ValidationError``, ``AuthError`` and ``NotFoundError`` ever reach a
client. ``PersistenceError`` is raised by the stores and absorbed by the
best-effort persistence steps.
"""
from __future__ import annotations


class AppError(Exception):
    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(AppError):
    status_code = 400


class AuthError(AppError):
    status_code = 401


class NotFoundError(AppError):
    status_code = 404


class PersistenceError(AppError):
    """The durable store is unavailable, failed, or did not answer in time."""

    status_code = 503

    def __init__(self, detail: str, *, timed_out: bool = False) -> None:
        super().__init__(detail)
        self.timed_out = timed_out


class ComputeError(AppError):
    status_code = 500
