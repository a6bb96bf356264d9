"""Redis list-backed queue client."""
import json
from typing import Any, Callable, List, Optional

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from grievance_queue import settings
from grievance_queue.errors import QueueConnectionError, SerializationError, StoreError
from grievance_queue.logging_conf import logger


def default_client_factory() -> redis.Redis:
    """Build a client for the configured store."""
    return redis.Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
    )


class QueueClient:
    """One connection to the queue store with FIFO list primitives.

    Items are pushed at the tail and popped or peeked at the head. Payloads
    are JSON strings; the client does not look inside them.
    """

    def __init__(self, client_factory: Optional[Callable[[], redis.Redis]] = None):
        self._client_factory = client_factory or default_client_factory
        self._client: Optional[redis.Redis] = None
        self.is_connected = False

    def connect(self) -> None:
        """Open the connection unless it is already open."""
        if self.is_connected:
            return
        try:
            client = self._client_factory()
            client.ping()
        except RedisError as e:
            logger.error(f"Queue store unreachable: {e}")
            raise QueueConnectionError(f"Queue store unreachable: {e}") from e

        self._client = client
        self.is_connected = True
        logger.info("Connected to queue store")

    def disconnect(self) -> None:
        """Close the connection. A later operation connects again."""
        if not self.is_connected:
            return
        self._drop()
        logger.info("Disconnected from queue store")

    def push(self, queue_name: str, item: Any) -> int:
        """Serialize `item` and append it at the tail. Returns the new length."""
        try:
            raw = json.dumps(item)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot encode item for {queue_name}: {e}") from e
        return self.push_raw(queue_name, raw)

    def push_raw(self, queue_name: str, raw: str) -> int:
        """Append an already-serialized string at the tail."""
        return self._execute("push", queue_name, lambda c: c.rpush(queue_name, raw))

    def push_front(self, queue_name: str, raw: str) -> int:
        """Put a serialized string back at the head."""
        return self._execute("push_front", queue_name, lambda c: c.lpush(queue_name, raw))

    def pop(self, queue_name: str) -> Optional[str]:
        """Remove and return the head element, or None when the queue is empty."""
        return _decode(self._execute("pop", queue_name, lambda c: c.lpop(queue_name)))

    def peek(self, queue_name: str, index: int = 0) -> Optional[str]:
        """Return the element at `index` without removing it."""
        return _decode(self._execute("peek", queue_name, lambda c: c.lindex(queue_name, index)))

    def length(self, queue_name: str) -> int:
        """Number of elements; 0 when the list does not exist."""
        return int(self._execute("length", queue_name, lambda c: c.llen(queue_name)))

    def range(self, queue_name: str) -> List[str]:
        """Every element, head first."""
        values = self._execute("range", queue_name, lambda c: c.lrange(queue_name, 0, -1))
        return [_decode(v) for v in values]

    def ping(self) -> bool:
        """Liveness probe against the store."""
        return bool(self._execute("ping", "-", lambda c: c.ping()))

    def _execute(self, op: str, queue_name: str, command: Callable[[redis.Redis], Any]) -> Any:
        """Run a command, reconnecting and retrying once if the connection dropped."""
        self.connect()
        try:
            return command(self._client)
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.warning(f"Connection lost during {op} on {queue_name}: {e}; reconnecting")
            self._drop()
            self.connect()
            try:
                return command(self._client)
            except RedisError as retry_error:
                raise StoreError(f"{op} on {queue_name} failed after reconnect: {retry_error}") from retry_error
        except RedisError as e:
            raise StoreError(f"{op} on {queue_name} failed: {e}") from e

    def _drop(self) -> None:
        client, self._client = self._client, None
        self.is_connected = False
        if client is None:
            return
        try:
            client.close()
        except RedisError as e:
            logger.debug(f"Error while closing queue store connection: {e}")


def _decode(value: Any) -> Optional[str]:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value
