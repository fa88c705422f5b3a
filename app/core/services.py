"""
Service layer primitives.

Services return ServiceResult for outcomes the caller branches on (a
webhook for a customer we do not know, a duplicate notification) and raise
core.exceptions errors for anything that must stop the request.

Usage:
    class SubscriptionSynchronizer(BaseService):
        @classmethod
        def mark_deleted(cls, payload: dict) -> ServiceResult[Subscription]:
            subscription = Subscription.objects.filter(...).first()
            if subscription is None:
                return ServiceResult.failure(
                    "No local subscription", error_code="SUBSCRIPTION_NOT_FOUND"
                )
            ...
            return ServiceResult.success(subscription)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of a service call.

    Truthy on success. On failure ``error`` is a human-readable message and
    ``error_code`` the machine-readable code stored on webhook events and
    returned to API clients.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str, error_code: str | None = None) -> ServiceResult[T]:
        return cls(success=False, error=error, error_code=error_code)

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base for stateless service classes exposing classmethods only.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named ``<module>.<ServiceClass>``, under the app's logger."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")
