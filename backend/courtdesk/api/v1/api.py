"""
Main API router aggregator
"""
from fastapi import APIRouter

from courtdesk.api.v1.endpoints import (
    assignments,
    audit,
    calendar,
    cases,
    health,
    motions,
    notifications,
    orders,
)

api_router = APIRouter()

# Include routers
api_router.include_router(cases.router, prefix="/cases", tags=["Cases"])
api_router.include_router(assignments.router, prefix="/assignment-requests", tags=["Assignments"])
api_router.include_router(motions.router, prefix="/motions", tags=["Motions"])
api_router.include_router(orders.router, prefix="/orders", tags=["Orders"])
api_router.include_router(calendar.router, prefix="/calendar", tags=["Calendar"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(audit.router, prefix="/audit-logs", tags=["Audit"])
api_router.include_router(health.router, prefix="/health", tags=["Health"])
