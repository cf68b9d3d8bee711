"""
WSGI config for the settlement service.

Exposes the WSGI callable as a module-level variable named `application`.
Webhook deliveries are short synchronous requests, so a plain WSGI server
(gunicorn) is the deployment target.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
