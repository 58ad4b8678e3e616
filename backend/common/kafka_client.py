import asyncio
import logging
import time
from typing import Optional

from aiokafka import AIOKafkaProducer

from .config import settings

_logger = logging.getLogger(__name__)

_producer: Optional[AIOKafkaProducer] = None
_producer_lock = asyncio.Lock()
_retry_at = 0.0

_START_ATTEMPTS = 3


class ProducerUnavailable(RuntimeError):
    """The producer failed to start recently; no new attempt until the cooldown ends."""


async def get_producer() -> AIOKafkaProducer:
    global _producer, _retry_at
    if _producer is None:
        async with _producer_lock:
            if _producer is None:
                now = time.monotonic()
                if now < _retry_at:
                    raise ProducerUnavailable(f"Kafka producer unavailable, next attempt in {_retry_at - now:.0f}s")
                backoff = 0.5
                last_exc: Optional[BaseException] = None
                for _ in range(_START_ATTEMPTS):
                    producer = AIOKafkaProducer(bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS)
                    try:
                        await producer.start()
                        _producer = producer
                        _retry_at = 0.0
                        _logger.info("Kafka producer started | servers=%s", settings.KAFKA_BOOTSTRAP_SERVERS)
                        break
                    except Exception as e:
                        last_exc = e
                        await producer.stop()
                        await asyncio.sleep(backoff)
                        backoff = min(backoff * 2, 5.0)
                if _producer is None:
                    _retry_at = time.monotonic() + settings.KAFKA_RETRY_COOLDOWN
                    _logger.warning(
                        "Kafka producer start failed, pausing %ss | servers=%s",
                        settings.KAFKA_RETRY_COOLDOWN, settings.KAFKA_BOOTSTRAP_SERVERS,
                    )
                    # Propagate the last error after retries
                    raise last_exc or RuntimeError("Kafka producer start failed")
    return _producer


async def close_producer() -> None:
    global _producer, _retry_at
    _retry_at = 0.0
    if _producer is not None:
        await _producer.stop()
        _producer = None
