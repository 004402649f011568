from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from connection import Connection
from logging_config import get_logger
from middleware import SecurityHeadersMiddleware
from relay import RelayServer
from routers.relay import relay_router
from schemas.events import Envelope
from settings import RelaySettings

logger = get_logger(__name__)


def decode_frame(message) -> Optional[str]:
    """Text of a websocket.receive message; binary frames must be UTF-8."""
    if message.get("text") is not None:
        return message["text"]
    raw = message.get("bytes")
    if raw is None:
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


async def serve_connection(relay: RelayServer, websocket: WebSocket):
    """Pump envelopes from one client socket into the relay until it closes."""
    await websocket.accept()
    connection = Connection(websocket)
    relay.connect(connection)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected normally for {connection}")
                break

            data = decode_frame(message)
            if data is None:
                logger.warning(f"Dropping undecodable frame from {connection}")
                continue

            try:
                envelope = Envelope.model_validate_json(data)
            except ValidationError as e:
                logger.warning(f"Dropping malformed frame from {connection}: {e.error_count()} error(s)")
                continue

            logger.debug(f"Received '{envelope.event}' on {envelope.channel} from {connection}")
            await relay.dispatch(connection, envelope.channel, envelope.event, envelope.args)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected while sending to {connection}")
    except Exception as e:
        logger.error(f"WebSocket error for {connection}: {e}", exc_info=True)
    finally:
        relay.disconnect(connection)
        try:
            await websocket.close()
        except Exception as e:
            logger.debug(f"Error closing WebSocket: {e}")


def create_app(settings: Optional[RelaySettings] = None, relay: Optional[RelayServer] = None) -> FastAPI:
    settings = settings or RelaySettings.from_env()
    relay = relay or RelayServer(settings)

    app = FastAPI(title="pm-relay")
    app.state.relay = relay

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)

    app.include_router(relay_router)

    @app.websocket(settings.relay_path)
    async def relay_endpoint(websocket: WebSocket):
        await serve_connection(relay, websocket)

    logger.info(f"FastAPI application initialized, relay socket at {settings.relay_path}")
    return app
