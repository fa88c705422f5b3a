"""
Core views providing infrastructure endpoints and error translation.
"""

from __future__ import annotations

import logging

from django.db import connection
from django.http import JsonResponse
from rest_framework.response import Response

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for load balancers and container probes.

    Returns 200 when the database answers, 503 otherwise. Cache state is
    reported but never fails the check, since the cache is configured to
    degrade to database reads.
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        logger.exception("Health check: database unreachable")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    from django.core.cache import cache

    cache.set("health_check", "ok", timeout=1)
    health_status["cache"] = (
        "connected" if cache.get("health_check") == "ok" else "disconnected"
    )

    return JsonResponse(health_status, status=200 if is_healthy else 503)


def error_response(exc: BaseApplicationError) -> Response:
    """
    Translate a domain error into a DRF Response.

    Usage:
        try:
            deposit = EscrowService.release(deposit_id)
        except BaseApplicationError as exc:
            return error_response(exc)
    """
    if exc.http_status >= 500:
        logger.error(
            "Request failed: %s",
            exc,
            extra={"error_code": exc.error_code, "details": exc.details},
        )
    else:
        logger.info(
            "Request rejected: %s",
            exc,
            extra={"error_code": exc.error_code},
        )
    return Response(exc.to_dict(), status=exc.http_status)
