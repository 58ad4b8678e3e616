import pytest

from backend.common import kafka_client
from backend.common.config import settings
from backend.common.kafka_client import ProducerUnavailable, get_producer


class BrokerDown:
    starts = 0

    def __init__(self, bootstrap_servers):
        self.bootstrap_servers = bootstrap_servers

    async def start(self):
        BrokerDown.starts += 1
        raise ConnectionError("broker down")

    async def stop(self):
        pass


@pytest.fixture
def broker_down(monkeypatch):
    BrokerDown.starts = 0
    monkeypatch.setattr(kafka_client, "AIOKafkaProducer", BrokerDown)
    monkeypatch.setattr(kafka_client, "_producer", None)
    monkeypatch.setattr(kafka_client, "_retry_at", 0.0)
    monkeypatch.setattr(kafka_client, "_START_ATTEMPTS", 1)
    monkeypatch.setattr(settings, "KAFKA_RETRY_COOLDOWN", 60.0)
    return BrokerDown


async def test_failed_start_pauses_further_attempts(broker_down):
    with pytest.raises(ConnectionError):
        await get_producer()
    with pytest.raises(ProducerUnavailable):
        await get_producer()

    assert broker_down.starts == 1


async def test_start_is_retried_after_cooldown(monkeypatch, broker_down):
    with pytest.raises(ConnectionError):
        await get_producer()

    monkeypatch.setattr(kafka_client, "_retry_at", 0.0)
    with pytest.raises(ConnectionError):
        await get_producer()

    assert broker_down.starts == 2
