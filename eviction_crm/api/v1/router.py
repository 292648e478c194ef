"""API v1 router aggregation."""

from fastapi import APIRouter

from eviction_crm.api.v1 import deployment, email, health, logs, system

api_router = APIRouter()

# Include all sub-routers
# Note: everything except health, ready, metrics and the flagged
# init/health-check variants requires the admin token
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(system.router, tags=["System"])
api_router.include_router(logs.router, prefix="/logs", tags=["Logs"])
api_router.include_router(deployment.router, prefix="/deployment", tags=["Deployment"])
api_router.include_router(email.router, prefix="/email", tags=["Email"])
