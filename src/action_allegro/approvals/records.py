"""Adapter for the listener service's pending-job records.

The listener reports each pending job as one opaque string. Two payload shapes
are accepted after the ``"<job_id>: "`` prefix:

* delimited: ``"<job_name> - Decision: <decision> - Drift Info: <base64>"``
* JSON: ``{"job_name": ..., "decision": ..., "drift_info": <base64>}``

Everything that knows about this format lives in this module.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from action_allegro.core.errors import ParseError

logger = logging.getLogger(__name__)

ID_SEPARATOR = ": "
DECISION_SEPARATOR = " - Decision: "
DRIFT_SEPARATOR = " - Drift Info: "


@dataclass(frozen=True, slots=True)
class PendingJob:
    """A parsed record; ``drift_blob`` is still base64-encoded."""

    job_id: str
    job_name: str
    decision: str | None = None
    drift_blob: str | None = None


@dataclass(frozen=True, slots=True)
class DriftInfo:
    job_id: str
    job_name: str
    decision: str
    drift_text: str


def _split_id(record: str) -> tuple[str, str]:
    job_id, sep, payload = record.partition(ID_SEPARATOR)
    if not sep or not job_id.strip():
        raise ParseError(f"Record has no job id: {record[:80]!r}")
    return job_id.strip(), payload


def _parse_json_payload(job_id: str, payload: str) -> PendingJob:
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ParseError(f"Job {job_id}: payload is not valid JSON") from e
    if not isinstance(data, dict):
        raise ParseError(f"Job {job_id}: payload is not a JSON object")

    job_name = data.get("job_name")
    if not isinstance(job_name, str) or not job_name.strip():
        raise ParseError(f"Job {job_id}: missing job_name")

    decision = data.get("decision")
    drift = data.get("drift_info", data.get("drift"))
    return PendingJob(
        job_id=job_id,
        job_name=job_name.strip(),
        decision=decision if isinstance(decision, str) else None,
        drift_blob=drift if isinstance(drift, str) else None,
    )


def _parse_delimited_payload(job_id: str, payload: str) -> PendingJob:
    job_name, has_decision, rest = payload.partition(DECISION_SEPARATOR)
    decision: str | None = None
    drift_blob: str | None = None
    if has_decision:
        decision, has_drift, blob = rest.partition(DRIFT_SEPARATOR)
        decision = decision.strip()
        if has_drift:
            drift_blob = blob.strip()

    if not job_name.strip():
        raise ParseError(f"Job {job_id}: missing job name")
    return PendingJob(
        job_id=job_id, job_name=job_name.strip(), decision=decision, drift_blob=drift_blob
    )


def parse_record(record: str) -> PendingJob:
    """Parse one raw record.

    Raises:
        ParseError: The record is malformed.
    """

    job_id, payload = _split_id(record)
    if payload.lstrip().startswith("{"):
        return _parse_json_payload(job_id, payload)
    return _parse_delimited_payload(job_id, payload)


def parse_pending_jobs(records: Iterable[str]) -> dict[str, list[str]]:
    """Group job ids by job name.

    Malformed records are logged and skipped; they never abort the batch.
    """

    grouped: dict[str, list[str]] = {}
    for record in records:
        try:
            job = parse_record(record)
        except ParseError as e:
            logger.warning("Skipping malformed pending-job record", extra={"error": str(e)})
            continue
        grouped.setdefault(job.job_name, []).append(job.job_id)
    return grouped


def decode_drift(blob: str) -> str:
    try:
        raw = base64.b64decode("".join(blob.split()), validate=True)
    except binascii.Error as e:
        raise ParseError("Drift info is not valid base64") from e
    return raw.decode("utf-8", errors="replace")


def extract_drift(records: Iterable[str], job_id: str) -> DriftInfo:
    """Find the record for ``job_id`` and decode its drift payload.

    Raises:
        ParseError: No record matches, or the matching record carries no
            decodable drift information.
    """

    for record in records:
        prefix, sep, _ = record.partition(ID_SEPARATOR)
        if not sep or prefix.strip() != job_id:
            continue

        job = parse_record(record)
        if job.drift_blob is None:
            raise ParseError(f"Job {job_id}: record has no drift information")
        return DriftInfo(
            job_id=job.job_id,
            job_name=job.job_name,
            decision=job.decision or "",
            drift_text=decode_drift(job.drift_blob),
        )

    raise ParseError(f"No pending job with id {job_id}")
