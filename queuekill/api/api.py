"""
API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from queuekill.api.endpoints import auth, health, queues, restaurants

api_router = APIRouter()

# Liveness
api_router.include_router(health.router)

# Registration, login, current user
api_router.include_router(auth.router)

# Queues and entries
api_router.include_router(queues.router)

# Restaurant browsing and owner profile
api_router.include_router(restaurants.router)
