# =============================================================================
# Django Project Configuration Package
# =============================================================================
# Settings, URLs, the WSGI application and the Celery app.
#
# Import Celery app to ensure it's loaded when Django starts.
# This is required for shared_task to bind to this app.
# =============================================================================

from config.celery import app as celery_app

__all__ = ("celery_app",)
