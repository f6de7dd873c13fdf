from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Commissions
    commissions,
    sales_agents,
    # Finance
    accounting,
)

# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Commissions ====================
api_router.include_router(
    commissions.router,
    prefix="/commissions",
    tags=["Commissions"]
)
api_router.include_router(
    sales_agents.router,
    prefix="/sales-agents",
    tags=["Sales Agents"]
)

# ==================== Finance ====================
api_router.include_router(
    accounting.router,
    prefix="/accounting",
    tags=["Accounting"]
)
