from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from database import Base, engine, change_feed, settings
from api import rooms, players, rounds, websocket
import models  # noqa: F401  (registers the tables on Base.metadata)

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # The room store is the only shared state between clients
    Base.metadata.create_all(bind=engine)
    logger.info(
        f"Room store ready at {engine.url.render_as_string(hide_password=True)} "
        f"({len(settings.word_list)} secret words)"
    )
    yield
    if change_feed.subscription_count:
        logger.warning(f"Shutting down with {change_feed.subscription_count} live view subscription(s)")


app = FastAPI(
    title="Impostor Game API",
    description="Room and round state machine for the 'who is the impostor' party game",
    version="1.0.0",
    lifespan=lifespan
)

# Browser clients poll /state and hold a /ws live view from another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rooms and players: lobby; rounds: clues and votes; websocket: live view
app.include_router(rooms.router)
app.include_router(players.router)
app.include_router(rounds.router)
app.include_router(websocket.router)


@app.get("/")
def root():
    return {"message": "Impostor Game API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy", "live_views": change_feed.subscription_count}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
