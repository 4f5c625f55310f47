# dictation_room/main.py
# Start backend using uvicorn dictation_room.main:app --reload --host 0.0.0.0
import logging
import logging.config
import logging.handlers
import json
import pathlib
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.routing import APIRoute, APIWebSocketRoute

from dictation_room.core.config import settings
from dictation_room.api import auth as auth_router
from dictation_room.api import deps
from dictation_room.api import phrases as phrases_router
from dictation_room.api import rooms as rooms_router
from dictation_room.api import websockets as websocket_router
from dictation_room.services.room_service import RoomService
from dictation_room.stores.factory import build_stores

_queue_handler_instance: Optional[logging.handlers.QueueHandler] = None # Module-level variable


def configure_logging_from_file():
    """Loads logging configuration from the JSON file and identifies the QueueHandler."""
    global _queue_handler_instance
    config_file = pathlib.Path(__file__).parent / "logging_config.json"
    try:
        with open(config_file) as f_in:
            config = json.load(f_in)

        log_dir = pathlib.Path("logs")
        log_dir.mkdir(exist_ok=True)

        logging.config.dictConfig(config)

        # Find the QueueHandler instance to start/stop its listener later
        root_logger = logging.getLogger()
        for handler in root_logger.handlers:
            if isinstance(handler, logging.handlers.QueueHandler):
                _queue_handler_instance = handler
                break

        if not _queue_handler_instance:
            logging.getLogger("dictation_room.main.logging_setup_check").error(
                "QueueHandler not found in root logger. Off-thread logging will not work as intended."
            )
    except FileNotFoundError:
        print(f"ERROR: Logging configuration file not found at {config_file}. Falling back to basic stdout logging.")
        logging.basicConfig(level=logging.INFO, format='%(levelname)-8s [%(name)s] %(message)s')
        logging.getLogger("dictation_room.main.logging_setup_fallback").error("Logging configuration file missing.", exc_info=True)
    except json.JSONDecodeError as e:
        print(f"ERROR: Failed to parse logging configuration file {config_file}: {e}. Falling back to basic stdout logging.")
        logging.basicConfig(level=logging.INFO, format='%(levelname)-8s [%(name)s] %(message)s')
        logging.getLogger("dictation_room.main.logging_setup_fallback").error("Logging configuration JSON error.", exc_info=True)
    except Exception as e:
        print(f"ERROR: Failed to configure logging from file: {e}. Falling back to basic stdout logging.")
        logging.basicConfig(level=logging.INFO, format='%(levelname)-8s [%(name)s] %(message)s')
        logging.getLogger("dictation_room.main.logging_setup_fallback").error("General logging configuration failed.", exc_info=True)


# Configure logging when the module is loaded. Listener is started/stopped by lifespan.
configure_logging_from_file()
logger = logging.getLogger("dictation_room.main") # Logger for this module


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup sequence initiated...")
    if _queue_handler_instance and getattr(_queue_handler_instance, "listener", None):
        try:
            _queue_handler_instance.listener.start()
            logger.info("Logging QueueListener started successfully via lifespan.")
        except Exception as e:
            logger.error(f"Failed to start QueueListener in lifespan: {e}", exc_info=True)
    else:
        logger.warning("QueueHandler or its listener not found during startup; off-thread logging might not be active.")

    # Backend is resolved once here, never per request
    stores = await build_stores(settings)
    room_service = RoomService(stores.rooms, stores.phrases)
    deps.set_services(room_service, stores.phrases)
    app.state.store_backend = stores.backend
    logger.info(f"Room store backend in use: {stores.backend}")

    yield  # This is where the application will run

    logger.info("Application shutdown sequence initiated...")
    await room_service.scheduler.shutdown()
    websocket_router.room_manager.clear()
    await stores.rooms.close()
    deps.set_services(None, None)

    if _queue_handler_instance and getattr(_queue_handler_instance, "listener", None):
        try:
            logger.info("Attempting to stop Logging QueueListener...")
            _queue_handler_instance.listener.stop()
        except Exception as e:
            logger.error(f"Failed to stop QueueListener gracefully in lifespan: {e}", exc_info=True)


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# Include Routers
app.include_router(auth_router.router, prefix=settings.API_V1_STR + "/auth", tags=["Auth"])
app.include_router(rooms_router.router, prefix=settings.API_V1_STR + "/rooms", tags=["Rooms"])
app.include_router(phrases_router.router, prefix=settings.API_V1_STR + "/phrases", tags=["Phrases"])
app.include_router(websocket_router.router, tags=["Room Sockets"]) # WebSockets don't take the API prefix

logger.info("--- FastAPI Registered Routes ---")
for route in app.routes:
    if isinstance(route, APIRoute):
        logger.info(f"Path: {route.path}, Methods: {route.methods}, Name: {route.name}")
    elif isinstance(route, APIWebSocketRoute):
        logger.info(f"WebSocket Path: {route.path}, Name: {route.name}")
logger.info("--- End Registered Routes ---\n")


@app.get(settings.API_V1_STR + "/health", tags=["Health Check"])
async def health_check():
    return {
        "status": "healthy",
        "project": settings.PROJECT_NAME,
        "store_backend": getattr(app.state, "store_backend", None),
    }
