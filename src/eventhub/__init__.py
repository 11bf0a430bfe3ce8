"""EventHub — event management with realtime notifications.

Users sign up, log in, create and approve events, and RSVP. Every
domain change is pushed to connected websocket clients so dashboards
stay current without polling.
"""

__version__ = "1.0.0"
