"""
FastAPI application entrypoint.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from api import routes

logging.basicConfig(level=getattr(logging, routes.settings.LOG_LEVEL, logging.DEBUG))


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await routes.shutdown()


app = FastAPI(title="Biometric Health Screening API", version="1.0.0", lifespan=lifespan)
app.include_router(routes.router)

@app.get("/health")
def health() -> dict:
    """
    Health check endpoint.

    Returns:
        dict: Simple status payload.
    """
    return {"status": "ok"}
