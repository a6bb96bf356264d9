"""Main application - runs the complaint assignment worker."""
import signal
import sys
from typing import Dict

from grievance_queue.logging_conf import logger, redact_url
from grievance_queue import settings
from grievance_queue.assignment_client import AssignmentClient
from grievance_queue.health import check_queues, store_reachable
from grievance_queue.queue.redis_queue import QueueClient
from grievance_queue.queue.services import (
    ComplaintQueueService,
    ProcessedQueueService,
    QueueService,
    UserQueueService,
)
from grievance_queue.worker import AssignmentWorker


def build_services(client: QueueClient = None) -> Dict[str, QueueService]:
    """Create the process-wide queue services, sharing one store connection."""
    client = client or QueueClient()
    return {
        "complaint": ComplaintQueueService(client),
        "user": UserQueueService(client),
        "processed": ProcessedQueueService(client),
    }


class Application:
    """Owns the queue services and the assignment worker."""

    def __init__(self, services: Dict[str, QueueService] = None, worker: AssignmentWorker = None):
        self.services = services or build_services()
        self.worker = worker or AssignmentWorker(
            queue=self.services["processed"],
            client=AssignmentClient(),
        )

    def start(self):
        """Validate config and report queue state."""
        logger.info("=" * 50)
        logger.info("Complaint Assignment Worker")
        logger.info("=" * 50)
        logger.info(f"Queue store: {redact_url(settings.REDIS_URL)}")
        logger.info(f"Assignment service: {settings.ASSIGNMENT_SERVICE_URL}")
        logger.info(f"Allowed municipalities: {', '.join(settings.ALLOWED_MUNICIPALITIES)}")
        logger.info(f"Idle interval: {settings.IDLE_INTERVAL}s, retry interval: {settings.RETRY_INTERVAL}s")
        logger.info("=" * 50)

        settings.validate_config()

        if not store_reachable(self.services["processed"].client):
            logger.warning("Queue store not answering; worker will keep retrying")

        health = check_queues(self.services)
        for name, status in health["queues"].items():
            logger.info(f"Queue {name}: {status['status']} (length {status['length']})")
        logger.info(f"Queue store status: {health['redis']}")

    def stop(self):
        """Stop the worker; the loop exits at its next check."""
        self.worker.stop()

    def run(self):
        """Main loop."""
        self.start()
        try:
            self.worker.run()
        finally:
            self.shutdown()

    def shutdown(self):
        for service in self.services.values():
            service.disconnect()
        self.worker.client.close()
        logger.info("Stopped")


def main():
    """Entry point."""
    app = Application()

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        app.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        app.run()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
