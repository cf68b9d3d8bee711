"""
Core views providing infrastructure endpoints.
"""

from django.db import DatabaseError, connection
from django.http import JsonResponse


def health_check(request):
    """
    Health check endpoint for load balancers and orchestration.

    The settlement pipeline is useless without its database, so the
    only component checked is the default connection.

    HTTP Status Codes:
        200: Database reachable
        503: Database unreachable

    Example Response:
        {"status": "healthy", "database": "connected"}
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
    }

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except DatabaseError:
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JsonResponse(health_status, status=status_code)
