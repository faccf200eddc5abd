from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.logging import configure_logging
from app.endpoints import leaderboard, badge, quiz_attempt
from app.realtime import websockets as websocket_events
from fastapi.exceptions import RequestValidationError
from app.middleware.exceptions import global_exception_handler, http_exception_handler, validation_exception_handler
from app.middleware.logging import RequestLoggingMiddleware
from app.core.scheduler import start_scheduler, stop_scheduler
from app.services.badge import badge_service
from app.services.rebuild import rebuild_dispatcher
import socketio
import asyncio
import logging

logger = logging.getLogger(__name__)

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins="*",
    ping_interval=settings.LIVE_PING_INTERVAL_SECONDS,
    ping_timeout=settings.LIVE_PING_INTERVAL_SECONDS,
)
live_fanout = websocket_events.register_websocket_events(sio)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggingMiddleware)

app.mount("/socket.io", socketio.ASGIApp(sio))

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.include_router(leaderboard.router, prefix="/leaderboard", tags=["Leaderboard"])
app.include_router(badge.router, prefix="/badges", tags=["Badges"])
app.include_router(quiz_attempt.router, prefix="/attempts", tags=["Attempts"])


def _bootstrap_badges():
    db = SessionLocal()
    try:
        badge_service.ensure_default_badges(db)
    finally:
        db.close()


@app.on_event("startup")
async def startup_event():
    configure_logging()
    rebuild_dispatcher.bind_loop(asyncio.get_running_loop())
    live_fanout.start()
    try:
        await asyncio.to_thread(_bootstrap_badges)
    except Exception as e:
        # evaluate() bootstraps the catalog again on first use
        logger.error(f"Badge catalog bootstrap failed: {e}")
    start_scheduler()

@app.on_event("shutdown")
async def shutdown_event():
    stop_scheduler()
    await live_fanout.stop()
    rebuild_dispatcher.shutdown()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
