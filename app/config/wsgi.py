"""
WSGI config for the Paddle Billing backend.

Webhook deliveries are handled synchronously inside the request, so a
plain WSGI server (gunicorn, uWSGI) is the primary deployment target.

This file exposes the WSGI callable as a module-level variable named `application`.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/wsgi/
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
