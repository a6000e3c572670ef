"""Health check and game settings endpoints."""

from fastapi import APIRouter

from transporter.config import game_constants

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings():
    """Game constants the client needs (floor count, move budget)."""
    return game_constants()
