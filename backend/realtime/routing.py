"""WebSocket URL routing for the realtime app."""

from django.urls import re_path

from .consumers.customer_consumer import CustomerConsumer
from .consumers.technician_consumer import TechnicianConsumer

websocket_urlpatterns = [
    # Technician endpoint: job request pushes and accept/reject answers
    # URL: ws://localhost:8000/ws/technician/?token=<jwt>
    re_path(
        r"ws/technician/$",
        TechnicianConsumer.as_asgi(),
        name="technician-ws"
    ),

    # Customer endpoint: job status notifications
    # URL: ws://localhost:8000/ws/customer/?token=<jwt>
    re_path(
        r"ws/customer/$",
        CustomerConsumer.as_asgi(),
        name="customer-ws"
    ),
]
