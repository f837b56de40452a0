"""
ASGI config for the Paddle Billing backend.

Provided for deployments behind an ASGI server such as Uvicorn. All views
are synchronous; Django runs them in a thread pool.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_asgi_application()
