"""
ASGI config for the hospital POS project.

Serves HTTP through Django and the department queue websockets through
Channels.  Settings must be configured before any Django import.
"""
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "hospital_pos.settings")

import django  # noqa: E402
django.setup()  # noqa: E402

from django.core.asgi import get_asgi_application  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.auth import AuthMiddlewareStack  # noqa: E402
from django.urls import path  # noqa: E402

from pos.realtime.consumers import DepartmentQueueConsumer  # noqa: E402

django_asgi_app = get_asgi_application()

websocket_urlpatterns = [
    path("ws/queue/<str:department>/", DepartmentQueueConsumer.as_asgi()),
]

application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": AuthMiddlewareStack(URLRouter(websocket_urlpatterns)),
})
