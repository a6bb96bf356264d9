"""Queue length health check."""
from typing import Any, Dict, Mapping

from grievance_queue.errors import QueueError
from grievance_queue.logging_conf import logger
from grievance_queue.queue.redis_queue import QueueClient
from grievance_queue.queue.services import QueueService

OK = "ok"
PARTIAL = "partial"
ERROR = "error"


def store_reachable(client: QueueClient) -> bool:
    """Liveness probe: True when the store answers PING."""
    try:
        return client.ping()
    except QueueError as e:
        logger.warning(f"Queue store ping failed: {e}")
        return False


def check_queues(services: Mapping[str, QueueService]) -> Dict[str, Any]:
    """
    Report the length of every queue and an overall store status.

    A queue whose length cannot be read is reported as an error without
    affecting the others. The overall status is "ok" when every queue
    answered and "partial" when any failed. "error" means no queue was
    registered to check.
    """
    queues: Dict[str, Dict[str, Any]] = {}
    failures = 0

    for name, service in services.items():
        try:
            queues[name] = {"status": OK, "length": service.get_queue_length()}
        except QueueError as e:
            logger.warning(f"Health check failed for {name} queue: {e}")
            queues[name] = {"status": ERROR, "length": None, "error": str(e)}
            failures += 1

    if not queues:
        overall = ERROR
    elif failures:
        overall = PARTIAL
    else:
        overall = OK

    return {"redis": overall, "queues": queues}
