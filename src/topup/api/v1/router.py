"""Primary API router definition."""

from fastapi import APIRouter

from . import admin, catalog, game_accounts, transactions, vouchers, webhooks

api_router = APIRouter()

api_router.include_router(admin.router)
api_router.include_router(catalog.router)
api_router.include_router(game_accounts.router)
api_router.include_router(transactions.router)
api_router.include_router(vouchers.router)
api_router.include_router(webhooks.router)


@api_router.get("/health", tags=["health"])
async def healthcheck() -> dict[str, str]:
    """Basic liveness endpoint."""
    return {"status": "ok"}
