# app/core/errors.py
from __future__ import annotations


class LoyaltyError(Exception):
    """
    Базовая ошибка домена лояльности.
    detail уходит клиенту API, context попадает в логи.
    """

    status_code = 400

    def __init__(self, detail: str, **context):
        super().__init__(detail)
        self.detail = detail
        self.context = context

    def __str__(self) -> str:
        if not self.context:
            return self.detail
        ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"{self.detail} ({ctx})"


class NotFoundError(LoyaltyError):
    status_code = 404


class InvalidValueError(LoyaltyError):
    status_code = 400


class ConfigurationError(LoyaltyError):
    status_code = 409


class PersistenceError(LoyaltyError):
    status_code = 503
