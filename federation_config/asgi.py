"""
federation_config/asgi.py
ASGI config for async servers (Uvicorn).
"""
import os
from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "federation_config.settings.production")
application = get_asgi_application()
