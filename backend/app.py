import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from backend.routes import router
from transporter.config import configure_logging, load_settings
from transporter.llm import LLM, ChatLLM
from transporter.session import GameService
from transporter.storage import Storage

load_dotenv(Path(__file__).parent.parent / ".env")
configure_logging()

STATIC_DIR = Path(__file__).parent / "static"


def create_app(data_dir: Path | None = None, llm: LLM | None = None) -> FastAPI:
    settings = load_settings()
    storage = Storage(data_dir or settings.data_dir)
    game = GameService(
        storage,
        llm or ChatLLM.from_settings(settings),
        max_attempts=settings.llm_max_retries,
        base_delay=settings.llm_retry_delay,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await game.runner.shutdown()

    app = FastAPI(title="Happy Vertical People Transporter", lifespan=lifespan)
    app.state.game = game
    app.include_router(router, prefix="/api")

    if STATIC_DIR.exists() and not os.getenv("STATIC_DISABLED", ""):
        # Serve static assets (JS, CSS)
        app.mount("/assets", StaticFiles(directory=STATIC_DIR / "assets"), name="assets")

        # SPA fallback: all non-API routes serve index.html
        @app.get("/{path:path}")
        async def spa_fallback(path: str):
            return FileResponse(STATIC_DIR / "index.html")

    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
