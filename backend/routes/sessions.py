"""Game session endpoints: create, inspect, delete, and play."""

from fastapi import APIRouter, HTTPException, Request

from transporter.session import GameError, GameService, SessionNotFound

from .models import SendMessage

router = APIRouter()


def _game(request: Request) -> GameService:
    return request.app.state.game


def _snapshot(game: GameService, session_id: str) -> dict:
    try:
        return game.snapshot(session_id)
    except SessionNotFound:
        raise HTTPException(404, "Session not found")


@router.get("/sessions")
async def list_sessions(request: Request):
    """List all sessions."""
    return [s.model_dump() for s in _game(request).storage.list_sessions()]


@router.post("/sessions", status_code=201)
async def create_session(request: Request):
    """Start a new game on floor 3."""
    game = _game(request)
    session = game.start()
    return game.snapshot(session.id)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, request: Request):
    """Message log, derived state and elevator shaft."""
    return _snapshot(_game(request), session_id)


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str, request: Request):
    """Delete a session and stop its autonomous conversation."""
    try:
        await _game(request).delete(session_id)
    except SessionNotFound:
        raise HTTPException(404, "Session not found")
    return {"ok": True}


@router.post("/sessions/{session_id}/messages")
async def send_message(session_id: str, body: SendMessage, request: Request):
    """Send a player message to the active persona."""
    game = _game(request)
    try:
        await game.send_message(session_id, body.message)
    except SessionNotFound:
        raise HTTPException(404, "Session not found")
    except GameError as e:
        raise HTTPException(409, str(e))
    return game.snapshot(session_id)


@router.post("/sessions/{session_id}/guide")
async def guide_advice(session_id: str, request: Request):
    """Don't Panic! Ask the guide for a hint."""
    game = _game(request)
    try:
        await game.guide_advice(session_id)
    except SessionNotFound:
        raise HTTPException(404, "Session not found")
    return game.snapshot(session_id)


@router.post("/sessions/{session_id}/switch")
async def persona_switch(session_id: str, request: Request):
    """Bring in Marvin, or rewind to before he joined."""
    game = _game(request)
    try:
        await game.persona_switch(session_id)
    except SessionNotFound:
        raise HTTPException(404, "Session not found")
    except GameError as e:
        raise HTTPException(409, str(e))
    return game.snapshot(session_id)
