"""
Proctoring Logger - structured log lines for session and violation events
"""

import logging
from typing import Dict, Any, Optional

logger = logging.getLogger("examguard.proctor")


def log_proctor_event(
    session_id: str,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log a proctoring event.

    Args:
        session_id: Proctoring session ID
        event_type: Type of event (session_start, violation, report_failed, ...)
        details: Optional event details
        level: Log level (debug, info, warning, error)
    """
    message = f"[PROCTOR] session={session_id} event={event_type}"

    if details:
        detail_str = " ".join(f"{k}={v}" for k, v in details.items())
        message += f" {detail_str}"

    if level == "debug":
        logger.debug(message)
    elif level == "warning":
        logger.warning(message)
    elif level == "error":
        logger.error(message)
    else:
        logger.info(message)


def log_session_start(session_id: str, exam_id: str, email: str, capabilities: Dict[str, str]):
    log_proctor_event(
        session_id=session_id,
        event_type="session_start",
        details={"exam_id": exam_id, "email": email, **capabilities}
    )


def log_session_end(session_id: str, counts: Dict[str, int]):
    log_proctor_event(
        session_id=session_id,
        event_type="session_end",
        details={"violations": sum(counts.values()), **{k: v for k, v in counts.items() if v}}
    )


def log_violation(session_id: str, violation_type: str, confidence: Optional[float]):
    details = {"type": violation_type}
    if confidence is not None:
        details["confidence"] = round(confidence, 2)
    log_proctor_event(session_id, "violation", details, level="warning")


def log_suppressed_failure(session_id: str, channel: str, error: str):
    """A best-effort call failed and was ignored"""
    log_proctor_event(session_id, f"{channel}_failed", {"error": error}, level="warning")
