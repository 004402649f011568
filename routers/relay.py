from fastapi import APIRouter, HTTPException, Request

from exceptions import UnknownChannelError, UnknownEventError
from logging_config import get_logger
from schemas.events import ChannelStats, HealthResponse, PublishRequest, PublishResponse, StatsResponse

logger = get_logger(__name__)

relay_router = APIRouter(tags=["relay"])


@relay_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    relay = request.app.state.relay
    return HealthResponse(
        status="ok",
        scheme=relay.settings.scheme,
        connections=len(relay.connections),
    )


@relay_router.get("/stats", response_model=StatsResponse)
async def stats(request: Request):
    relay = request.app.state.relay
    channels = {
        namespace: ChannelStats(namespace=namespace, **counts)
        for namespace, counts in relay.stats().items()
    }
    return StatsResponse(connections=len(relay.connections), channels=channels)


@relay_router.post("/publish", status_code=202, response_model=PublishResponse)
async def publish(publish_request: PublishRequest, request: Request):
    """
    Trigger an update event from the application backend.

    The service key is checked exactly like a socket-originated update: a bad
    key is logged and the event dropped, but the response is still 202.
    """
    relay = request.app.state.relay
    client_host = request.client.host if request.client else "unknown"
    logger.info(f"Publish request for '{publish_request.event}' on {publish_request.channel} from {client_host}")
    try:
        await relay.publish(
            publish_request.channel,
            publish_request.event,
            publish_request.room,
            publish_request.secret,
            publish_request.payload,
        )
    except (UnknownChannelError, UnknownEventError) as e:
        logger.warning(f"Publish rejected: {e}")
        raise HTTPException(status_code=404, detail=str(e))
    return PublishResponse(accepted=True, channel=publish_request.channel, event=publish_request.event)
