import asyncio
import json
import logging

from quart import Blueprint, Response, jsonify

from ..common.config import settings
from ..common.redis_client import get_redis
from ..common.result import ErrorKind, Failure

_logger = logging.getLogger(__name__)

bp = Blueprint("realtime", __name__, url_prefix="/api")


async def _close_pubsub(pubsub) -> None:
    if pubsub is None:
        return
    try:
        await pubsub.unsubscribe(settings.REDIS_STOCK_CHANNEL)
        await pubsub.aclose()
    except Exception as e:
        _logger.debug("Ignoring pubsub close error: %s", e)


def _format_stock_event(data) -> str:
    try:
        payload = json.loads(data) if isinstance(data, str) else data
    except ValueError:
        payload = {"raw": data}
    return f"event: stock\ndata: {json.dumps(payload)}\n\n"


@bp.get("/events")
async def stock_events():
    """Server-sent stream of committed stock changes."""
    if not settings.REDIS_ENABLED:
        failure = Failure(ErrorKind.UNAVAILABLE, "Stream de estoque indisponível")
        return jsonify(failure.to_dict()), failure.kind.http_status

    async def gen():
        pubsub = None
        backoff = 1.0
        yield "retry: 3000\n\n"
        try:
            while True:
                try:
                    if pubsub is None:
                        r = await get_redis()
                        pubsub = r.pubsub(ignore_subscribe_messages=True)
                        await pubsub.subscribe(settings.REDIS_STOCK_CHANNEL)
                    message = await pubsub.get_message(timeout=5.0)
                    if message:
                        yield _format_stock_event(message.get("data"))
                    else:
                        # keep-alive for proxies
                        yield ": keep-alive\n\n"
                    backoff = 1.0
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    _logger.warning("Stock stream lost Redis, retrying in %ss | err=%s", int(backoff), e)
                    yield f": redis-error, retrying in {int(backoff)}s\n\n"
                    await _close_pubsub(pubsub)
                    pubsub = None
                    await asyncio.sleep(backoff)
                    backoff = min(backoff * 2, 15.0)
        finally:
            await _close_pubsub(pubsub)

    headers = {
        "Cache-Control": "no-cache",
        "X-Accel-Buffering": "no",
        "Connection": "keep-alive",
    }
    return Response(gen(), mimetype="text/event-stream", headers=headers)
