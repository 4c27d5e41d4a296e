"""
Stream Booth — FastAPI application entry point.

Loads the client identity and known hosts on startup and serves the REST
API a local shell uses to pair with hosts and start streams.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import init_routes, router
from config import API_HOST, API_PORT, CONFIG_DIR, CORS_ORIGINS
from gamestream.client import GameStreamClient
from hosts.manager import HostManager
from hosts.store import HostStore
from security.identity import ClientIdentity

# --- Logging ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the client and host registry, and persist hosts on shutdown."""
    logger.info("Starting Stream Booth services...")
    store = HostStore(CONFIG_DIR)

    try:
        identity = ClientIdentity(CONFIG_DIR)
        client = GameStreamClient(identity)
        init_routes(HostManager(client, store))

        logger.info(f"Stream Booth ready — API: {API_HOST}:{API_PORT}")

        yield

    except Exception as e:
        logger.error(f"Startup failed: {e}", exc_info=True)
        raise
    finally:
        logger.info("Shutting down Stream Booth services...")
        store.save()


# --- FastAPI app ---
app = FastAPI(
    title="Stream Booth",
    version="1.0.0",
    lifespan=lifespan,
)

if CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=API_HOST,
        port=API_PORT,
        log_level="info",
    )
