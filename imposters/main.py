import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from imposters.config import settings
from imposters.database import init_db
from imposters.logging_config import configure_logging
from imposters.routes import game

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    logger.info("🚀 %s %s ready", settings.APP_NAME, settings.VERSION)
    yield


app = FastAPI(title=settings.APP_NAME, version=settings.VERSION, lifespan=lifespan)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include game routes

app.include_router(game.router)


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "imposters"}


if __name__ == "__main__":
    uvicorn.run(
        "imposters.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
