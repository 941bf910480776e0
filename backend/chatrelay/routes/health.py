from fastapi import APIRouter, Request

from chatrelay.database import check_connection


router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Health check endpoint"""
    state = request.app.state
    database_ok = await check_connection(state.engine)

    return {
        "status": "healthy" if database_ok else "degraded",
        "model": state.provider.model,
        "provider_configured": state.provider.is_configured(),
        "database": "ok" if database_ok else "unavailable",
    }
