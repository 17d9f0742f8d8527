"""API route aggregation.

All routers registered here get mounted in main.py under /api/v1, and a
second time under the unversioned /api that the payment worker and the
existing admin app already call. Both prefixes serve the same handlers.
There is no auth layer: the relay sits behind the operator's network
boundary, same as the worker that calls it.
"""

from fastapi import APIRouter

from withdrawal_relay.api.admin import router as admin_router
from withdrawal_relay.api.dashboard import router as dashboard_router
from withdrawal_relay.api.health import router as health_router
from withdrawal_relay.api.withdrawals import router as withdrawals_router

API_PREFIX = "/api/v1"
LEGACY_PREFIX = "/api"

_routes = APIRouter()
_routes.include_router(health_router, tags=["health"])
_routes.include_router(withdrawals_router, tags=["withdrawals"])
_routes.include_router(admin_router, tags=["admin"])
_routes.include_router(dashboard_router, tags=["dashboard"])

api_router = APIRouter(prefix=API_PREFIX)
api_router.include_router(_routes)

legacy_router = APIRouter(prefix=LEGACY_PREFIX)
legacy_router.include_router(_routes, include_in_schema=False)


def unversioned(path: str) -> str:
    """/api/v1/health → /api/health; anything else is returned as is."""
    if path.startswith(API_PREFIX + "/"):
        return LEGACY_PREFIX + path[len(API_PREFIX):]
    return path
