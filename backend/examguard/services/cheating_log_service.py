from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, insert
from sqlalchemy.dialects import postgresql, sqlite
from typing import Optional, List, Dict, Any, Mapping, Sequence
import logging

from ..models.cheating_log import CheatingLog, CheatingLogScreenshot
from ..core.violations import ViolationType
from ..schemas.cheating_log import Evidence, CheatingLogReport, evidence_detected_at
from ..utils.timezone import utc_now

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class ViolationAggregator:
    """Folds violation reports into the one CheatingLog row per (exam, email)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _upsert_insert(self):
        dialect = self.db.get_bind().dialect.name
        try:
            return _UPSERT_DIALECTS[dialect](CheatingLog)
        except KeyError:
            raise NotImplementedError(f"Atomic upsert is not supported on dialect '{dialect}'")

    async def record(
        self,
        exam_id: str,
        email: str,
        username: str,
        delta: Mapping[ViolationType, int],
        new_evidence: Sequence[Evidence] = (),
    ) -> CheatingLog:
        """
        Increment the counts named in ``delta`` and append ``new_evidence``.

        The counts are merged with a single INSERT .. ON CONFLICT DO UPDATE so
        concurrent reports for the same key serialize on the row and never lose
        an increment. Counts missing from ``delta`` are left untouched.
        """
        now = utc_now()
        table = CheatingLog.__table__

        values = {
            "exam_id": exam_id,
            "email": email,
            "username": username,
            "created_at": now,
            "updated_at": now,
        }
        for violation_type in ViolationType:
            values[violation_type.column] = int(delta.get(violation_type, 0))

        stmt = self._upsert_insert().values(**values)
        increments = {"updated_at": now}
        for violation_type, amount in delta.items():
            if amount:
                column = violation_type.column
                increments[column] = table.c[column] + stmt.excluded[column]

        stmt = stmt.on_conflict_do_update(
            index_elements=["exam_id", "email"],
            set_=increments,
        ).returning(CheatingLog.id)

        try:
            log_id = (await self.db.execute(stmt)).scalar_one()
            if new_evidence:
                await self.db.execute(
                    insert(CheatingLogScreenshot),
                    [
                        {
                            "log_id": log_id,
                            "url": item.url,
                            "type": item.type,
                            "detected_at": evidence_detected_at(item),
                            "confidence": item.confidence,
                        }
                        for item in new_evidence
                    ],
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        applied = ",".join(f"{vt.value}+{n}" for vt, n in delta.items() if n) or "none"
        logger.debug(f"Recorded violations exam={exam_id} email={email} delta={applied} evidence={len(new_evidence)}")
        return await self._load(log_id)

    async def record_report(self, report: CheatingLogReport) -> CheatingLog:
        return await self.record(
            report.examId, report.email, report.username, report.counts, report.screenshots
        )

    async def _load(self, log_id: int) -> CheatingLog:
        result = await self.db.execute(
            select(CheatingLog)
            .where(CheatingLog.id == log_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().one()

    async def get_log(self, exam_id: str, email: str) -> Optional[CheatingLog]:
        result = await self.db.execute(
            select(CheatingLog).filter(CheatingLog.exam_id == exam_id, CheatingLog.email == email)
        )
        return result.scalars().first()

    async def list_by_exam(self, exam_id: str) -> List[CheatingLog]:
        result = await self.db.execute(
            select(CheatingLog)
            .filter(CheatingLog.exam_id == exam_id)
            .order_by(CheatingLog.updated_at.desc(), CheatingLog.id.desc())
        )
        return list(result.scalars().all())

    async def detailed(self, exam_id: str) -> Dict[str, Any]:
        logs = await self.list_by_exam(exam_id)
        return {
            "logs": logs,
            "analytics": summarize_logs(logs),
        }


def summarize_logs(logs: Sequence[CheatingLog]) -> Dict[str, int]:
    return {
        "totalLogs": len(logs),
        "totalViolations": sum(log.total_violations for log in logs),
    }
