"""
WSGI config for the settlement and escrow service.

Provided as a fallback for traditional deployments; the primary entry
point is config.asgi via Uvicorn.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
