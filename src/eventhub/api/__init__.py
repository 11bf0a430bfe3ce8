"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Routes sit at the root (/auth, /events, /health) because that's
where the browser client looks for them. Auth is enforced per route
rather than per router: listing events needs any logged-in user,
creating needs an organizer, approving needs an admin.
"""

from fastapi import APIRouter

from eventhub.api.auth import router as auth_router
from eventhub.api.events import router as events_router
from eventhub.api.health import router as health_router
from eventhub.api.rsvps import router as rsvps_router

api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(events_router, tags=["events"])
api_router.include_router(rsvps_router, tags=["rsvps"])
