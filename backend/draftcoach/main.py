import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .db import Base, SessionLocal, engine
from .cleanup import purge_older_than
from .settings import settings
from .routers import health, conversations, guidance, drafts, sessions, journal
from . import models  # noqa: F401  (registers tables on Base)

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

MEDIA_DIR = Path(settings.media_dir)
MEDIA_DIR.mkdir(parents=True, exist_ok=True)


def _purge_once() -> None:
	db = SessionLocal()
	try:
		removed = purge_older_than(db, settings.journal_retention_days)
		if removed:
			logger.info("Purged %d stale journal entries", removed)
	except Exception:
		logger.exception("Journal cleanup failed")
	finally:
		db.close()


async def _cleanup_watcher():
	# Startup already ran one pass; repeat daily
	while True:
		await asyncio.sleep(24 * 60 * 60)
		_purge_once()


@asynccontextmanager
async def lifespan(app: FastAPI):
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	_purge_once()
	task = asyncio.create_task(_cleanup_watcher())
	try:
		yield
	finally:
		task.cancel()


app = FastAPI(title="DraftCoach API", lifespan=lifespan)
app.add_middleware(
	CORSMiddleware,
	allow_origins=settings.cors_origin_list,
	allow_methods=["OPTIONS", "POST", "GET", "PUT", "DELETE"],
	allow_headers=["Content-Type", "Authorization"],
)
app.include_router(health.router)
app.include_router(conversations.router)
app.include_router(guidance.router)
app.include_router(drafts.router)
app.include_router(sessions.router)
app.include_router(journal.router)

# Generated audio is served from here unless MEDIA_BASE_URL points at an external host
if settings.media_base_url.startswith("/"):
	app.mount(settings.media_base_url.rstrip("/") or "/media", StaticFiles(directory=MEDIA_DIR), name="media")


@app.get("/info")
def root():
	return {
		"status": "ok",
		"openai_configured": bool(settings.openai_api_key),
		"tts_configured": bool(settings.elevenlabs_api_key),
	}
