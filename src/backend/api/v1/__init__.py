"""
API v1 routes.
"""

from fastapi import APIRouter

from .endpoints.inventory import personal_accounts, resource_pools, seats, subscriptions

api_router = APIRouter()

api_router.include_router(
    resource_pools.router, prefix="/resource-pools", tags=["resource-pools"]
)

api_router.include_router(
    seats.router, prefix="/resource-pool-seats", tags=["resource-pool-seats"]
)

api_router.include_router(
    subscriptions.router, prefix="/subscriptions", tags=["subscriptions"]
)

api_router.include_router(
    personal_accounts.router, prefix="/personal-accounts", tags=["personal-accounts"]
)
