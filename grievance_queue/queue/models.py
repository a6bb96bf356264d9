"""Queue names and payload models."""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional

from grievance_queue.errors import MissingFieldError

# Queue names shared with the producer processes
COMPLAINT_REGISTRATION_QUEUE = "complaint:registration:queue"
USER_REGISTRATION_QUEUE = "user:registration:queue"
PROCESSED_COMPLAINT_QUEUE = "complaint:processed:queue"

COMPLAINT_MALFORMED_QUEUE = "complaint:assignment:malformed"
ASSIGNMENT_FAILED_QUEUE = "complaint:assignment:failed"


def malformed_queue_name(queue_name: str) -> str:
    """Dead-letter list that sits next to `queue_name`."""
    return f"{queue_name}:malformed"


class PayloadShape(str, Enum):
    """Complaint layouts written by the different producer versions."""

    CANONICAL = "canonical"  # id, municipality, department
    LOCATION = "location"  # id, location.city / location.municipal, assignedDepartment
    LEGACY = "legacy"  # complaintId or _id instead of id

    @classmethod
    def detect(cls, payload: Dict[str, Any]) -> "PayloadShape":
        """Use the explicit `schemaVersion` tag, or infer the shape from the keys."""
        tag = payload.get("schemaVersion")
        if tag is not None:
            try:
                return cls(tag)
            except ValueError:
                raise MissingFieldError("known schemaVersion", _first_id(payload)) from None

        if "id" not in payload and ("complaintId" in payload or "_id" in payload):
            return cls.LEGACY
        if isinstance(payload.get("location"), dict):
            return cls.LOCATION
        return cls.CANONICAL


@dataclass(frozen=True)
class AssignmentRequest:
    """Body of the auto-assign call for one complaint."""

    complaint_id: Optional[str]
    municipality: str
    department: Optional[str]

    @classmethod
    def from_payload(cls, payload: Any) -> "AssignmentRequest":
        """
        Decode a processed-queue complaint into an assignment request.

        Raises:
            MissingFieldError: payload is not an object, has an unknown
                schemaVersion, or carries no municipality.
        """
        if not isinstance(payload, dict):
            raise MissingFieldError("object body")

        shape = PayloadShape.detect(payload)
        location = payload.get("location") if isinstance(payload.get("location"), dict) else {}

        if shape is PayloadShape.CANONICAL:
            complaint_id = payload.get("id")
            municipality = payload.get("municipality")
            department = payload.get("department") or payload.get("assignedDepartment")
        elif shape is PayloadShape.LOCATION:
            complaint_id = payload.get("id")
            municipality = location.get("city") or location.get("municipal") or payload.get("municipality")
            department = payload.get("assignedDepartment") or payload.get("department")
        elif shape is PayloadShape.LEGACY:
            complaint_id = _first_id(payload)
            municipality = location.get("city") or location.get("municipal") or payload.get("municipality")
            department = payload.get("assignedDepartment") or payload.get("department")
        else:
            raise MissingFieldError("known schemaVersion", _first_id(payload))

        complaint_id = str(complaint_id) if complaint_id is not None else None
        if not municipality or not isinstance(municipality, str):
            raise MissingFieldError("municipality", complaint_id)

        return cls(complaint_id=complaint_id, municipality=municipality, department=department)

    def to_body(self) -> Dict[str, Any]:
        return {
            "id": self.complaint_id,
            "municipality": self.municipality,
            "department": self.department,
        }


def _first_id(payload: Dict[str, Any]) -> Optional[str]:
    for key in ("id", "complaintId", "_id"):
        if payload.get(key) is not None:
            return str(payload[key])
    return None
