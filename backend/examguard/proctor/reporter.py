"""
Violation Reporter - best-effort delivery of violation deltas to the API
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..core.violations import ViolationType, counts_to_wire
from ..schemas.cheating_log import Evidence

logger = logging.getLogger(__name__)


@dataclass
class BestEffortResult:
    """Outcome of a fire-and-forget call; a failure was logged and ignored"""
    ok: bool
    error: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    @classmethod
    def success(cls, data=None) -> "BestEffortResult":
        return cls(ok=True, data=data)

    @classmethod
    def failed(cls, error: str) -> "BestEffortResult":
        return cls(ok=False, error=error)


class ViolationReporter:
    """
    Client-side view of the session's cheating log.

    The server merges deltas, so the reporter only ever sends increments that
    have not been acknowledged yet. Unsent increments and evidence stay pending
    and ride along with the next report or autosave. While a request is in
    flight its share is held apart, so two overlapping sends never carry the
    same increment; on failure it goes back to pending.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        exam_id: str,
        email: str,
        username: str,
        endpoint: str = "/cheatingLogs",
    ):
        self.client = client
        self.exam_id = exam_id
        self.email = email
        self.username = username
        self.endpoint = endpoint

        self.totals: Counter = Counter()
        self.pending: Counter = Counter()
        self.pending_evidence: List[Evidence] = []
        self.server_log: Optional[Dict[str, Any]] = None

    def record(self, violation_type: ViolationType, evidence: Optional[Evidence] = None):
        self.totals[violation_type] += 1
        self.pending[violation_type] += 1
        if evidence is not None:
            self.pending_evidence.append(evidence)

    async def report(self, violation_type: ViolationType, evidence: Optional[Evidence] = None) -> BestEffortResult:
        """Record one occurrence and save immediately"""
        self.record(violation_type, evidence)
        return await self.flush()

    async def autosave(self) -> BestEffortResult:
        """Push whatever is pending; with nothing pending this only creates or touches the log"""
        return await self.flush()

    async def flush(self) -> BestEffortResult:
        deltas, self.pending = self.pending, Counter()
        evidence, self.pending_evidence = self.pending_evidence, []

        payload = self._payload(deltas, evidence)
        try:
            response = await self.client.post(self.endpoint, json=payload)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self._restore(deltas, evidence)
            logger.warning(f"Violation report for exam {self.exam_id} failed, kept for next save: {e}")
            return BestEffortResult.failed(str(e))
        except Exception as e:
            self._restore(deltas, evidence)
            logger.error(f"Unexpected error reporting violations for exam {self.exam_id}: {e}", exc_info=True)
            return BestEffortResult.failed(f"{type(e).__name__}: {e}")

        self.server_log = body.get("data") if isinstance(body, dict) else None
        return BestEffortResult.success(self.server_log)

    def _restore(self, deltas: Counter, evidence: List[Evidence]):
        self.pending.update(deltas)
        self.pending_evidence[:0] = evidence

    def _payload(self, deltas: Counter, evidence: List[Evidence]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "examId": self.exam_id,
            "email": self.email,
            "username": self.username,
        }
        payload.update({
            field: value for field, value in counts_to_wire(deltas).items() if value > 0
        })
        if evidence:
            payload["screenshots"] = [item.model_dump(mode="json") for item in evidence]
        return payload

    def counts(self) -> Dict[str, int]:
        return counts_to_wire(self.totals)
