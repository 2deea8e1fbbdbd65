# main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import CORS_ORIGINS, CREATE_TABLES, ENVIRONMENT, PORT
from .database import create_tables, engine
from .exceptions import register_exception_handlers
from .logger_config import logger
from .routes import admin, auth, bookings, categories, creator, events


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"App starting up ({ENVIRONMENT})...")
    if CREATE_TABLES:
        await create_tables()
        logger.info("Database tables ensured")
    yield
    await engine.dispose()
    logger.info("App shutting down...")


app = FastAPI(title="Event Ticketing API", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

for module in (auth, events, categories, bookings, creator, admin):
    app.include_router(module.router)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("ticketing.main:app", host="0.0.0.0", port=PORT)
