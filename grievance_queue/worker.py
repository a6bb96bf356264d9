"""Worker that drains the processed queue into the assignment service."""
import threading
import time
from typing import Iterable, Optional

from grievance_queue import settings
from grievance_queue.assignment_client import AssignmentClient
from grievance_queue.errors import AssignmentCallFailure, MalformedPayloadError, MissingFieldError, OutOfScopeError
from grievance_queue.logging_conf import logger
from grievance_queue.queue.models import ASSIGNMENT_FAILED_QUEUE, AssignmentRequest
from grievance_queue.queue.services import ProcessedQueueService, parse_payload

# Outcomes of a single iteration
IDLE = "idle"
ASSIGNED = "assigned"
DISCARDED = "discarded"
REDIRECTED = "redirected"
DEAD_LETTERED = "dead_lettered"
RETRY = "retry"


class AssignmentWorker:
    """Peeks the processed queue and removes each complaint only once it is assigned.

    A complaint whose assignment call fails stays at the head and is retried
    after `retry_interval`, so everything behind it waits. Set `max_attempts`
    to move a repeatedly failing complaint to the failed list instead.
    """

    def __init__(
        self,
        queue: Optional[ProcessedQueueService] = None,
        client: Optional[AssignmentClient] = None,
        allowed_municipalities: Optional[Iterable[str]] = None,
        idle_interval: Optional[float] = None,
        retry_interval: Optional[float] = None,
        error_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        unserved_queue: Optional[str] = None,
    ):
        self.queue = queue or ProcessedQueueService()
        self.client = client or AssignmentClient()
        self.allowed_municipalities = frozenset(
            settings.ALLOWED_MUNICIPALITIES if allowed_municipalities is None else allowed_municipalities
        )
        self.idle_interval = settings.IDLE_INTERVAL if idle_interval is None else idle_interval
        self.retry_interval = settings.RETRY_INTERVAL if retry_interval is None else retry_interval
        self.error_interval = settings.ERROR_INTERVAL if error_interval is None else error_interval
        self.max_attempts = settings.MAX_ASSIGNMENT_ATTEMPTS if max_attempts is None else max_attempts
        self.unserved_queue = settings.UNSERVED_QUEUE if unserved_queue is None else unserved_queue

        for name in ("idle_interval", "retry_interval", "error_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {self.max_attempts}")

        self.running = False
        self.thread = None

        # Failed attempts for the element currently at the head
        self._failing_head: Optional[str] = None
        self._failed_attempts = 0

    def start(self):
        """Start the worker in a background thread."""
        if self.running:
            logger.warning("Worker is already running")
            return

        self.running = True
        self.thread = threading.Thread(target=self._run, daemon=True)
        self.thread.start()
        logger.info("Worker started")

    def run(self):
        """Run the worker loop in the calling thread until stopped."""
        if self.running:
            logger.warning("Worker is already running")
            return

        self.running = True
        self._run()

    def stop(self):
        """Ask the loop to exit after the current iteration."""
        if not self.running:
            return

        logger.info("Stopping worker...")
        self.running = False
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=10)
        logger.info("Worker stopped")

    def _run(self):
        """Main worker loop."""
        logger.info(f"Assignment worker loop started (municipalities: {', '.join(sorted(self.allowed_municipalities))})")

        while self.running:
            try:
                outcome = self.process_once()

                if outcome == IDLE:
                    self._sleep(self.idle_interval)
                elif outcome == RETRY:
                    self._sleep(self.retry_interval)

            except Exception as e:
                logger.error(f"Error in worker loop: {e}", exc_info=True)
                self._sleep(self.error_interval)

        logger.info("Assignment worker loop stopped")

    def process_once(self) -> str:
        """Handle the head of the processed queue once and return the outcome."""
        raw = self.queue.peek_raw()
        if raw is None:
            return IDLE

        try:
            payload = parse_payload(raw)
        except MalformedPayloadError as e:
            logger.error(f"Malformed complaint at head of {self.queue.queue_name}, moving to {self.queue.malformed_queue}: {e}")
            self.queue.move_head_to(self.queue.malformed_queue)
            return DEAD_LETTERED

        try:
            request = self._validate(payload)
        except MissingFieldError as e:
            logger.error(f"{e}, removing from queue")
            self.queue.remove_first()
            return DISCARDED
        except OutOfScopeError as e:
            logger.warning(f"{e} (allowed: {', '.join(sorted(self.allowed_municipalities))})")
            if self.unserved_queue:
                self.queue.move_head_to(self.unserved_queue)
                logger.info(f"Moved complaint {e.complaint_id} to {self.unserved_queue}")
                return REDIRECTED
            self.queue.remove_first()
            logger.info(f"Removed complaint {e.complaint_id} from queue")
            return DISCARDED

        logger.info(f"Peeked complaint: {request.complaint_id} ({request.municipality})")

        try:
            self.client.assign(request)
        except AssignmentCallFailure as e:
            return self._handle_failure(raw, request, e)

        # Only acknowledged complaints leave the queue
        self.queue.remove_first()
        self._reset_failures()
        logger.info(f"Successfully processed and removed complaint: {request.complaint_id}")
        return ASSIGNED

    def _validate(self, payload) -> AssignmentRequest:
        request = AssignmentRequest.from_payload(payload)
        if request.municipality not in self.allowed_municipalities:
            raise OutOfScopeError(request.municipality, request.complaint_id)
        return request

    def _handle_failure(self, raw: str, request: AssignmentRequest, error: AssignmentCallFailure) -> str:
        if raw != self._failing_head:
            self._failing_head = raw
            self._failed_attempts = 0
        self._failed_attempts += 1

        logger.error(
            f"Failed to process complaint {request.complaint_id} "
            f"(attempt {self._failed_attempts}): {error}"
        )

        if self.max_attempts and self._failed_attempts >= self.max_attempts:
            self.queue.move_head_to(ASSIGNMENT_FAILED_QUEUE)
            logger.error(
                f"Complaint {request.complaint_id} failed {self._failed_attempts} times, "
                f"moved to {ASSIGNMENT_FAILED_QUEUE}"
            )
            self._reset_failures()
            return DEAD_LETTERED

        logger.info("Complaint remains in queue for retry")
        return RETRY

    def _reset_failures(self):
        self._failing_head = None
        self._failed_attempts = 0

    def _sleep(self, seconds: float):
        """Sleep in steps of at most one second so stop() is noticed promptly."""
        remaining = seconds
        while remaining > 0 and self.running:
            step = min(1, remaining)
            time.sleep(step)
            remaining -= step
