"""Background polling of the approval listener.

The UI thread owns a single result slot holding at most one
:class:`concurrent.futures.Future`. Starting a poll while the slot is occupied
(in flight, or finished but not yet consumed) is a no-op, so there is never
more than one outstanding request. The worker thread never touches application
state; it only resolves its future.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field

from action_allegro.approvals.client import Decision, ListenerClient
from action_allegro.approvals.records import DriftInfo, extract_drift, parse_pending_jobs
from action_allegro.core.errors import NetworkError, ParseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PollResult:
    records: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ApprovalPoller:
    """Single-slot poller plus the last consumed view of pending jobs."""

    def __init__(
        self,
        client: ListenerClient,
        *,
        decision_client: ListenerClient | None = None,
        executor: Executor | None = None,
    ) -> None:
        # Polls run on the worker thread and decisions on the caller's, so
        # they never share a requests.Session.
        self._client = client
        self._decision_client = decision_client or client.clone()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="approval-poll"
        )
        self._slot: Future[PollResult] | None = None

        self._records: list[str] = []
        self._jobs: dict[str, list[str]] = {}

    @property
    def client(self) -> ListenerClient:
        return self._client

    @property
    def decision_client(self) -> ListenerClient:
        return self._decision_client

    @property
    def in_flight(self) -> bool:
        return self._slot is not None and not self._slot.done()

    @property
    def fetched_jobs(self) -> dict[str, list[str]]:
        """Job ids grouped by job name, as of the last consumed poll."""

        return {name: list(ids) for name, ids in self._jobs.items()}

    @property
    def records(self) -> list[str]:
        return list(self._records)

    def poll(self) -> PollResult:
        """Fetch pending records once. Runs on the worker thread."""

        try:
            records = self._client.get_pending_jobs()
        except (NetworkError, ParseError) as e:
            logger.warning("Pending-job poll failed", extra={"error": str(e)})
            return PollResult(error=str(e))
        except Exception as e:
            logger.exception("Pending-job poll crashed")
            return PollResult(error=str(e))
        return PollResult(records=records)

    def start_pending_jobs_fetch(self) -> bool:
        """Start a background poll unless the slot is already occupied.

        Returns:
            True if a new poll was started.
        """

        if self._slot is not None:
            return False
        self._slot = self._executor.submit(self.poll)
        return True

    def take_result(self) -> PollResult | None:
        """Consume a finished poll and clear the slot; ``None`` if nothing is ready."""

        slot = self._slot
        if slot is None or not slot.done():
            return None

        self._slot = None
        result = slot.result()
        if result.ok:
            self._records = list(result.records)
            self._jobs = parse_pending_jobs(result.records)
        return result

    def wait(self, timeout: float | None = None) -> PollResult | None:
        """Block until the in-flight poll finishes, then consume it."""

        slot = self._slot
        if slot is None:
            return None
        try:
            slot.result(timeout=timeout)
        except FutureTimeoutError:
            return None
        return self.take_result()

    def extract_drift(self, job_id: str) -> DriftInfo:
        return extract_drift(self._records, job_id)

    def submit_decision(self, job_id: str, decision: Decision) -> None:
        """Post the user's decision synchronously; failures propagate, no retry."""

        self._decision_client.post_decision(job_id, decision)

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
        self._client.close()
        self._decision_client.close()
