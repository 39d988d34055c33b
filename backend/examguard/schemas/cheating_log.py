from pydantic import BaseModel, Field, ValidationError
from datetime import datetime
from typing import Optional, List, Dict, Any
import logging
import math

from ..core.violations import ViolationType, COUNT_FIELDS
from ..utils.timezone import utc_now, to_naive_utc

logger = logging.getLogger(__name__)

# count columns are 32-bit integers on PostgreSQL
MAX_COUNT_DELTA = 2**31 - 1


class MissingIdentityError(ValueError):
    pass


class Evidence(BaseModel):
    url: str = Field(min_length=1)
    type: str = Field(min_length=1)
    detectedAt: Optional[datetime] = None
    confidence: Optional[float] = Field(default=None, ge=0, le=1)


class CheatingLogReport(BaseModel):
    """A normalized violation report: identity, count deltas and new evidence."""
    examId: str
    email: str
    username: str
    counts: Dict[ViolationType, int] = {}
    screenshots: List[Evidence] = []

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CheatingLogReport":
        payload = payload or {}
        identity = {key: payload.get(key) for key in ("examId", "email", "username")}
        if not all(isinstance(value, str) and value.strip() for value in identity.values()):
            raise MissingIdentityError("examId, email, username are required")

        counts = {}
        for field, violation_type in COUNT_FIELDS.items():
            delta = _as_count_delta(payload.get(field))
            if delta:
                counts[violation_type] = delta

        return cls(
            examId=identity["examId"].strip(),
            email=identity["email"].strip(),
            username=identity["username"].strip(),
            counts=counts,
            screenshots=_parse_screenshots(payload.get("screenshots")),
        )


def _as_count_delta(value: Any) -> Optional[int]:
    # bool is an int subclass but never a count
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and (not math.isfinite(value) or not value.is_integer()):
        return None
    if value < 0 or value > MAX_COUNT_DELTA:
        return None
    return int(value)


def _parse_screenshots(raw: Any) -> List[Evidence]:
    if isinstance(raw, dict):
        raw = [raw]
    if not isinstance(raw, list):
        return []

    evidence = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("url") or not item.get("type"):
            continue
        try:
            evidence.append(Evidence.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Dropping malformed evidence entry of type {item.get('type')}: {e.error_count()} errors")
    return evidence


def evidence_detected_at(evidence: Evidence) -> datetime:
    return to_naive_utc(evidence.detectedAt) if evidence.detectedAt else utc_now()


def serialize_cheating_log(log) -> Dict[str, Any]:
    data = {
        "id": log.id,
        "examId": log.exam_id,
        "email": log.email,
        "username": log.username,
    }
    for violation_type in ViolationType:
        data[violation_type.count_field] = log.count_for(violation_type)
    data["screenshots"] = [
        {
            "url": shot.url,
            "type": shot.type,
            "detectedAt": shot.detected_at.isoformat(),
            "confidence": shot.confidence,
        }
        for shot in log.screenshots
    ]
    data["createdAt"] = log.created_at.isoformat()
    data["updatedAt"] = log.updated_at.isoformat()
    return data
