"""Queue services for registered and processed records.

Each service owns one `QueueClient` and a queue name. Construct one
instance per queue at process start and hand it to whatever needs it.
"""
import json
from typing import Any, List, Optional

from grievance_queue.errors import MalformedPayloadError, QueueError
from grievance_queue.logging_conf import logger
from grievance_queue.queue.models import (
    COMPLAINT_MALFORMED_QUEUE,
    COMPLAINT_REGISTRATION_QUEUE,
    PROCESSED_COMPLAINT_QUEUE,
    USER_REGISTRATION_QUEUE,
    malformed_queue_name,
)
from grievance_queue.queue.redis_queue import QueueClient


def parse_payload(raw: str) -> Any:
    """Decode a stored element, raising MalformedPayloadError on bad JSON."""
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedPayloadError(raw, str(e)) from e


class QueueService:
    """Connect-once access to a single named queue."""

    def __init__(self, queue_name: str, malformed_queue: Optional[str] = None, client: Optional[QueueClient] = None):
        self.queue_name = queue_name
        self.malformed_queue = malformed_queue or malformed_queue_name(queue_name)
        self.client = client or QueueClient()

    @property
    def is_connected(self) -> bool:
        return self.client.is_connected

    def connect(self) -> None:
        self.client.connect()

    def disconnect(self) -> None:
        self.client.disconnect()

    def push_to_queue(self, record: Any) -> int:
        """
        Append a record at the tail of the queue.

        Store and connection errors propagate so the caller can fail its
        request.
        """
        self.connect()
        length = self.client.push(self.queue_name, record)
        logger.debug(f"Pushed record to {self.queue_name} (length {length})")
        return length

    def get_queue_length(self) -> int:
        self.connect()
        return self.client.length(self.queue_name)

    def poll_and_pop(self) -> Optional[Any]:
        """
        Pop and parse the head record without blocking.

        Returns None when the queue is empty, when another consumer won the
        pop, when the head was not valid JSON (it is moved to the malformed
        list, or left at the head if that move fails) or when the store
        failed. Never raises.
        """
        try:
            self.connect()
            if self.client.length(self.queue_name) == 0:
                return None

            raw = self.client.pop(self.queue_name)
            if raw is None:
                return None

            try:
                return parse_payload(raw)
            except MalformedPayloadError as e:
                self._relocate(raw, self.malformed_queue)
                logger.error(f"Moved malformed entry from {self.queue_name} to {self.malformed_queue}: {e}")
                return None
        except QueueError as e:
            logger.error(f"Error polling {self.queue_name}: {e}", exc_info=True)
            return None

    def peek_complaint(self) -> Optional[Any]:
        """Parsed head record, or None. Malformed heads are left in place."""
        self.connect()
        if self.client.length(self.queue_name) == 0:
            return None

        raw = self.client.peek(self.queue_name)
        if raw is None:
            return None
        try:
            return parse_payload(raw)
        except MalformedPayloadError as e:
            logger.warning(f"Head of {self.queue_name} is malformed: {e}")
            return None

    peek = peek_complaint

    def _relocate(self, raw: str, target_queue: str) -> None:
        """
        Append a just-popped element to `target_queue`.

        If that push fails the element goes back to the head of this queue
        and the error is re-raised. If the restore fails too, the payload is
        written to the log so it can be recovered by hand.
        """
        try:
            self.client.push_raw(target_queue, raw)
        except QueueError as e:
            logger.error(f"Could not move entry from {self.queue_name} to {target_queue}, restoring it: {e}")
            try:
                self.client.push_front(self.queue_name, raw)
            except QueueError as restore_error:
                logger.critical(
                    f"Entry lost from {self.queue_name} ({restore_error}); payload: {raw}"
                )
            raise


class ComplaintQueueService(QueueService):
    """Newly registered complaints awaiting validation."""

    def __init__(self, client: Optional[QueueClient] = None):
        super().__init__(COMPLAINT_REGISTRATION_QUEUE, COMPLAINT_MALFORMED_QUEUE, client)

    def push_complaint(self, complaint: Any) -> int:
        return self.push_to_queue(complaint)


class UserQueueService(QueueService):
    """Newly registered users."""

    def __init__(self, client: Optional[QueueClient] = None):
        super().__init__(USER_REGISTRATION_QUEUE, client=client)

    def push_user(self, user: Any) -> int:
        return self.push_to_queue(user)


class ProcessedQueueService(QueueService):
    """Validated complaints ready for assignment."""

    def __init__(self, client: Optional[QueueClient] = None):
        super().__init__(PROCESSED_COMPLAINT_QUEUE, client=client)

    def peek_raw(self) -> Optional[str]:
        """Head element as stored, without parsing or removing it."""
        self.connect()
        return self.client.peek(self.queue_name)

    def peek_at(self, index: int) -> Optional[Any]:
        """Parsed element at `index`; None if absent or malformed."""
        self.connect()
        raw = self.client.peek(self.queue_name, index)
        if raw is None:
            return None
        try:
            return parse_payload(raw)
        except MalformedPayloadError:
            logger.warning(f"Element {index} of {self.queue_name} is malformed")
            return None

    def peek_queue(self) -> Optional[Any]:
        return self.peek_at(0)

    def pop_from_queue(self) -> Optional[Any]:
        """Pop and parse the head; a malformed head goes to the malformed list."""
        self.connect()
        raw = self.client.pop(self.queue_name)
        if raw is None:
            return None
        try:
            return parse_payload(raw)
        except MalformedPayloadError as e:
            self._relocate(raw, self.malformed_queue)
            logger.error(f"Moved malformed entry from {self.queue_name} to {self.malformed_queue}: {e}")
            return None

    def remove_first(self) -> Optional[str]:
        """Drop the head element and return it unparsed."""
        self.connect()
        return self.client.pop(self.queue_name)

    def move_head_to(self, target_queue: str) -> Optional[str]:
        """Pop the head and append it verbatim to `target_queue`."""
        self.connect()
        raw = self.client.pop(self.queue_name)
        if raw is None:
            return None
        self._relocate(raw, target_queue)
        return raw

    def get_all_processed_complaints(self) -> List[Any]:
        """Every parseable complaint in the queue, head first."""
        self.connect()
        complaints = []
        for raw in self.client.range(self.queue_name):
            try:
                complaints.append(parse_payload(raw))
            except MalformedPayloadError:
                continue
        return complaints
