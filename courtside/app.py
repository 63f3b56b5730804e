from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from courtside.config import Environment, config, environment
from courtside.database import database
from courtside.routes import league, matches, players
from courtside.utils.alembic import alembic_run_migrations
from courtside.utils.logging import logger


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    await database.connect()

    if config.auto_run_migrations and environment is not Environment.CI:
        alembic_run_migrations()

    logger.info("Courtside API started: environment=%s", environment)
    yield

    await database.disconnect()


routers = {
    "Leagues": league.router,
    "Matches": matches.router,
    "Players": players.router,
}

app = FastAPI(
    title="Courtside API",
    docs_url="/docs",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in config.cors_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/ping", summary="Healthcheck ping")
async def ping() -> str:
    return "ping"


for tag, router in routers.items():
    app.include_router(router, tags=[tag])


def run() -> None:
    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    run()

