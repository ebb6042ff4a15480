"""
Realtime app for WebSocket communication around job dispatch.

This app provides:
- WebSocket consumers for technicians and customers
- Notification helpers for job request pushes and job events
- JWT authentication middleware for WebSocket connections

Key Components:
    - consumers/: WebSocket consumers (technician, customer)
    - notifications.py: Push gateway and customer event helpers
    - routing.py: ws/technician/ and ws/customer/ endpoints

Usage:
    from realtime.consumers import TechnicianConsumer, CustomerConsumer
    from realtime.notifications import send_push, notify_customer_event
"""
