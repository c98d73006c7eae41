"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from ambulance_backend.app.api.v1.endpoints import drivers, assignments, ambulances, live

router = APIRouter()

# Driver directory, availability and stats
router.include_router(drivers.hospital_router)
router.include_router(drivers.router)

# Assignment ledger
router.include_router(assignments.router)

# Ambulance registry
router.include_router(ambulances.hospital_router)
router.include_router(ambulances.router)

# Live update streams
router.include_router(live.router)
