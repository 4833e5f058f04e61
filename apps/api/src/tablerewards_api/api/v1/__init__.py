from fastapi import APIRouter

from .endpoints import (
    accounts,
    customers,
    health,
    observability,
    orders,
    rewards,
    roles,
    settings,
    visits,
)


api_router = APIRouter()
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(accounts.router)
api_router.include_router(customers.router)
api_router.include_router(visits.router)
api_router.include_router(orders.router)
api_router.include_router(rewards.router)
api_router.include_router(settings.router)
api_router.include_router(roles.router)
api_router.include_router(observability.router)
