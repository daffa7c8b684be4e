# campuschat/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the API and its features.
    """
    return {
        "message": "Campus Chat - membership core",
        "version": "1.0",
        "features": ["deterministic_ids", "presence_gate", "joined_conversations"],
        "endpoints": {
            "conversations": "/conversations",
            "presence": "/presence",
            "messages": "/messages",
            "ids": "/ids",
            "health": "/health",
            "metrics": "/metrics",
        },
    }
