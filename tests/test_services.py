"""Tests for the registration and processed queue services."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from grievance_queue.errors import StoreError
from grievance_queue.queue.models import (
    COMPLAINT_MALFORMED_QUEUE,
    COMPLAINT_REGISTRATION_QUEUE,
    PROCESSED_COMPLAINT_QUEUE,
    USER_REGISTRATION_QUEUE,
)
from grievance_queue.queue.redis_queue import QueueClient
from grievance_queue.queue.services import (
    ComplaintQueueService,
    ProcessedQueueService,
    UserQueueService,
)

COMPLAINT = {
    "id": "complaint-1",
    "seq": 1,
    "status": "REGISTERED",
    "categoryId": "cat-1",
    "subCategory": "Water Supply",
    "assignedDepartment": "WATER_SUPPLY_SANITATION",
    "city": "Ranchi",
    "district": "Ranchi",
}


@pytest.fixture
def complaints(queue_client: QueueClient) -> ComplaintQueueService:
    return ComplaintQueueService(queue_client)


@pytest.fixture
def processed(queue_client: QueueClient) -> ProcessedQueueService:
    return ProcessedQueueService(queue_client)


def test_push_complaint_writes_registration_queue(complaints: ComplaintQueueService, store) -> None:
    complaints.push_complaint(COMPLAINT)

    assert store.lrange(COMPLAINT_REGISTRATION_QUEUE, 0, -1) == [json.dumps(COMPLAINT)]


def test_push_auto_connects(redis_factory) -> None:
    service = ComplaintQueueService(QueueClient(redis_factory))
    assert service.is_connected is False

    service.push_to_queue(COMPLAINT)

    assert service.is_connected is True


def test_service_connects_once(redis_factory) -> None:
    factory = MagicMock(side_effect=redis_factory)
    service = ProcessedQueueService(QueueClient(factory))

    service.connect()
    service.connect()
    service.push_to_queue(COMPLAINT)
    service.get_queue_length()

    assert factory.call_count == 1


def test_push_user_writes_user_queue(queue_client: QueueClient, store) -> None:
    users = UserQueueService(queue_client)
    user = {"id": "user-123", "name": "Test User", "email": "test@example.com"}

    assert users.push_user(user) == 1
    assert json.loads(store.lindex(USER_REGISTRATION_QUEUE, 0)) == user


def test_push_failure_propagates(complaints: ComplaintQueueService, store) -> None:
    """Registration callers see store failures so they can fail the request."""
    store.set(COMPLAINT_REGISTRATION_QUEUE, "not a list")

    with pytest.raises(StoreError):
        complaints.push_complaint(COMPLAINT)


def test_get_queue_length(complaints: ComplaintQueueService) -> None:
    assert complaints.get_queue_length() == 0
    for i in range(5):
        complaints.push_complaint({"id": f"c{i}"})
    assert complaints.get_queue_length() == 5


def test_get_queue_length_propagates_errors(complaints: ComplaintQueueService, store) -> None:
    store.set(COMPLAINT_REGISTRATION_QUEUE, "not a list")

    with pytest.raises(StoreError):
        complaints.get_queue_length()


def test_poll_and_pop_empty_queue(complaints: ComplaintQueueService) -> None:
    assert complaints.poll_and_pop() is None


def test_poll_and_pop_returns_parsed_record(complaints: ComplaintQueueService) -> None:
    complaints.push_complaint(COMPLAINT)

    assert complaints.poll_and_pop() == COMPLAINT
    assert complaints.get_queue_length() == 0


def test_poll_and_pop_relocates_malformed_entry(complaints: ComplaintQueueService, store) -> None:
    """Valid record first, then a non-JSON string that lands in the malformed list."""
    store.rpush(COMPLAINT_REGISTRATION_QUEUE, json.dumps(COMPLAINT), "invalid-json")

    assert complaints.poll_and_pop() == COMPLAINT
    assert complaints.poll_and_pop() is None

    assert store.lrange(COMPLAINT_MALFORMED_QUEUE, 0, -1) == ["invalid-json"]
    assert complaints.get_queue_length() == 0


def test_user_queue_malformed_list_name(queue_client: QueueClient, store) -> None:
    users = UserQueueService(queue_client)
    store.rpush(USER_REGISTRATION_QUEUE, "{broken")

    assert users.poll_and_pop() is None
    assert store.lrange(f"{USER_REGISTRATION_QUEUE}:malformed", 0, -1) == ["{broken"]


def test_poll_and_pop_lost_race_returns_none() -> None:
    """Another consumer emptied the queue between the length check and the pop."""
    client = MagicMock(spec=QueueClient)
    client.length.return_value = 1
    client.pop.return_value = None
    service = ComplaintQueueService(client)

    assert service.poll_and_pop() is None
    client.push_raw.assert_not_called()


def test_poll_and_pop_swallows_store_errors(server, redis_factory) -> None:
    service = ComplaintQueueService(QueueClient(redis_factory))
    server.connected = False

    assert service.poll_and_pop() is None


def test_poll_and_pop_swallows_mid_operation_errors() -> None:
    client = MagicMock(spec=QueueClient)
    client.length.side_effect = StoreError("Redis connection failed")
    service = ComplaintQueueService(client)

    assert service.poll_and_pop() is None


def test_peek_complaint_does_not_remove(complaints: ComplaintQueueService) -> None:
    complaints.push_complaint(COMPLAINT)

    assert complaints.peek_complaint() == COMPLAINT
    assert complaints.peek_complaint() == COMPLAINT
    assert complaints.get_queue_length() == 1


def test_peek_complaint_empty_queue(complaints: ComplaintQueueService) -> None:
    assert complaints.peek_complaint() is None


def test_peek_leaves_malformed_head_in_place(complaints: ComplaintQueueService, store) -> None:
    store.rpush(COMPLAINT_REGISTRATION_QUEUE, "invalid-json")

    assert complaints.peek_complaint() is None
    assert complaints.get_queue_length() == 1
    assert store.llen(COMPLAINT_MALFORMED_QUEUE) == 0


def test_processed_peek_queue(processed: ProcessedQueueService) -> None:
    processed.push_to_queue({"id": "1"})
    processed.push_to_queue({"id": "2"})

    assert processed.peek_queue() == {"id": "1"}
    assert processed.peek_at(1) == {"id": "2"}
    assert processed.peek_at(2) is None
    assert processed.get_queue_length() == 2


def test_processed_peek_malformed_returns_none(processed: ProcessedQueueService, store) -> None:
    store.rpush(PROCESSED_COMPLAINT_QUEUE, "invalid-json")

    assert processed.peek_queue() is None
    assert processed.peek_raw() == "invalid-json"


def test_processed_pop_from_queue(processed: ProcessedQueueService, store) -> None:
    store.rpush(PROCESSED_COMPLAINT_QUEUE, json.dumps({"id": "1"}), "invalid-json")

    assert processed.pop_from_queue() == {"id": "1"}
    assert processed.pop_from_queue() is None
    assert processed.pop_from_queue() is None
    assert store.lrange(f"{PROCESSED_COMPLAINT_QUEUE}:malformed", 0, -1) == ["invalid-json"]


def test_processed_remove_first(processed: ProcessedQueueService) -> None:
    processed.push_to_queue({"id": "1"})
    processed.push_to_queue({"id": "2"})

    assert json.loads(processed.remove_first()) == {"id": "1"}
    assert processed.peek_queue() == {"id": "2"}


def test_processed_move_head_to(processed: ProcessedQueueService, store) -> None:
    processed.push_to_queue({"id": "1"})

    raw = processed.move_head_to("complaint:unserved:queue")

    assert store.lrange("complaint:unserved:queue", 0, -1) == [raw]
    assert processed.get_queue_length() == 0
    assert processed.move_head_to("complaint:unserved:queue") is None


def test_get_all_processed_complaints_skips_malformed(processed: ProcessedQueueService, store) -> None:
    store.rpush(
        PROCESSED_COMPLAINT_QUEUE,
        json.dumps({"id": "1"}),
        "invalid-json",
        json.dumps({"id": "2"}),
    )

    result = processed.get_all_processed_complaints()

    assert [c["id"] for c in result] == ["1", "2"]
    assert processed.get_queue_length() == 3


def test_get_all_processed_complaints_empty(processed: ProcessedQueueService) -> None:
    assert processed.get_all_processed_complaints() == []


def _failing_push_raw(queue_name: str, raw: str) -> int:
    raise StoreError("connection blip")


def test_poll_and_pop_keeps_malformed_entry_when_dead_letter_push_fails(
    complaints: ComplaintQueueService, queue_client: QueueClient, store, monkeypatch
) -> None:
    """A failed move to the malformed list puts the entry back at the head."""
    store.rpush(COMPLAINT_REGISTRATION_QUEUE, "not-json", json.dumps(COMPLAINT))
    monkeypatch.setattr(queue_client, "push_raw", _failing_push_raw)

    assert complaints.poll_and_pop() is None

    assert store.lrange(COMPLAINT_REGISTRATION_QUEUE, 0, -1) == ["not-json", json.dumps(COMPLAINT)]
    assert store.llen(COMPLAINT_MALFORMED_QUEUE) == 0


def test_lost_entry_payload_is_logged(complaints: ComplaintQueueService, queue_client: QueueClient,
                                      store, monkeypatch, caplog) -> None:
    """When the restore fails as well, the raw payload ends up in the log."""
    store.rpush(COMPLAINT_REGISTRATION_QUEUE, "not-json")
    monkeypatch.setattr(queue_client, "push_raw", _failing_push_raw)
    monkeypatch.setattr(queue_client, "push_front", _failing_push_raw)

    assert complaints.poll_and_pop() is None

    assert any("not-json" in r.getMessage() and r.levelname == "CRITICAL" for r in caplog.records)


def test_move_head_to_restores_head_on_failure(processed: ProcessedQueueService, queue_client: QueueClient,
                                               monkeypatch) -> None:
    processed.push_to_queue({"id": "1"})
    processed.push_to_queue({"id": "2"})
    monkeypatch.setattr(queue_client, "push_raw", _failing_push_raw)

    with pytest.raises(StoreError):
        processed.move_head_to("complaint:unserved:queue")

    assert processed.peek_queue() == {"id": "1"}
    assert processed.get_queue_length() == 2


def test_pop_from_queue_restores_malformed_head_on_failure(processed: ProcessedQueueService,
                                                           queue_client: QueueClient, store, monkeypatch) -> None:
    store.rpush(PROCESSED_COMPLAINT_QUEUE, "invalid-json")
    monkeypatch.setattr(queue_client, "push_raw", _failing_push_raw)

    with pytest.raises(StoreError):
        processed.pop_from_queue()

    assert store.lrange(PROCESSED_COMPLAINT_QUEUE, 0, -1) == ["invalid-json"]
