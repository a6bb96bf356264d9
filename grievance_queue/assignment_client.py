"""HTTP client for the agent auto-assignment service."""
from typing import Optional
import requests

from grievance_queue import settings
from grievance_queue.errors import AssignmentCallFailure
from grievance_queue.logging_conf import logger
from grievance_queue.queue.models import AssignmentRequest

AUTO_ASSIGN_PATH = "/api/agent/complaints/auto-assign"


class AssignmentClient:
    """Asks the admin backend to assign a complaint to an agent."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = (base_url or settings.ASSIGNMENT_SERVICE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.ASSIGNMENT_TIMEOUT
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json"
        })

    def assign(self, request: AssignmentRequest) -> None:
        """
        POST the complaint to the auto-assign endpoint.

        Args:
            request: Complaint id, municipality and department

        Raises:
            AssignmentCallFailure: non-2xx status, timeout or transport error
        """
        url = f"{self.base_url}{AUTO_ASSIGN_PATH}"
        logger.info(f"Requesting auto-assign for {request.complaint_id} ({request.municipality})")

        try:
            response = self.session.post(url, json=request.to_body(), timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise AssignmentCallFailure(f"Auto-assign timed out after {self.timeout}s: {e}") from e
        except requests.exceptions.RequestException as e:
            raise AssignmentCallFailure(f"Auto-assign request failed: {e}") from e

        logger.debug(f"Auto-assign response {response.status_code}: {response.text[:500]}")

        if not 200 <= response.status_code < 300:
            raise AssignmentCallFailure(
                f"HTTP {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
                body=response.text,
            )

    def close(self) -> None:
        self.session.close()
