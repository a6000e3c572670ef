"""FastAPI API endpoints under /api.

Endpoint groups: health + settings, and game sessions. Each session's
actions (player message, guide advice, persona switch / rewind) are nested
under /api/sessions/{session_id}/ and all answer with the full session
snapshot: message log, derived game state and the rendered elevator shaft.
"""

from fastapi import APIRouter

from .sessions import router as sessions_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(sessions_router)
