"""Shared fixtures: an in-process Redis server per test."""

from __future__ import annotations

import fakeredis
import pytest

from grievance_queue.queue.redis_queue import QueueClient


@pytest.fixture
def server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def redis_factory(server):
    """Client factory handed to QueueClient; every call opens a new client on the same server."""

    def factory() -> fakeredis.FakeRedis:
        return fakeredis.FakeRedis(server=server, decode_responses=True)

    return factory


@pytest.fixture
def store(redis_factory) -> fakeredis.FakeRedis:
    """Direct handle for seeding and inspecting lists."""
    return redis_factory()


@pytest.fixture
def queue_client(redis_factory) -> QueueClient:
    return QueueClient(redis_factory)
