"""HTTP client for the drift-approval listener service."""

from __future__ import annotations

import logging
from enum import Enum

import requests

from action_allegro.core.errors import NetworkError, ParseError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-KEY"
DEFAULT_TIMEOUT_SECONDS = 10.0


class Decision(str, Enum):
    APPROVE = "Approve"
    REJECT = "Reject"


class ListenerClient:
    """Fetch pending jobs and post user decisions.

    Every call is bounded by ``timeout``; nothing is retried.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url.strip():
            raise ValueError("Listener URL is required")

        self._base_url = base_url.strip().rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({API_KEY_HEADER: api_key, "Accept": "application/json"})

    @property
    def base_url(self) -> str:
        return self._base_url

    def clone(self) -> ListenerClient:
        """Same listener and key over a fresh session."""

        return ListenerClient(base_url=self._base_url, api_key=self._api_key, timeout=self._timeout)

    def get_pending_jobs(self) -> list[str]:
        url = f"{self._base_url}/get-pending-jobs"
        try:
            resp = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as e:
            raise NetworkError(f"Failed to reach listener: {e}") from e

        if not resp.ok:
            raise NetworkError(
                f"Listener returned HTTP {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise ParseError("Listener response is not JSON") from e
        if not isinstance(payload, list) or not all(isinstance(r, str) for r in payload):
            raise ParseError("Listener response is not a list of strings")

        logger.debug("Fetched pending jobs", extra={"count": len(payload)})
        return payload

    def post_decision(self, job_id: str, decision: Decision) -> None:
        if not job_id.strip():
            raise ValueError("job_id is required")

        choice = Decision(decision)
        url = f"{self._base_url}/post-user-decision/{job_id}"
        try:
            resp = self._session.post(url, json={"decision": choice.value}, timeout=self._timeout)
        except requests.RequestException as e:
            raise NetworkError(f"Failed to reach listener: {e}") from e

        if not resp.ok:
            raise NetworkError(
                f"Decision for job {job_id} rejected with HTTP {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )
        logger.info("Submitted decision", extra={"job_id": job_id, "decision": choice.value})

    def close(self) -> None:
        self._session.close()
